# backend/routes/orders.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from database import get_db
from models.order import Order, OrderItem
from models.stock import Stock
from schemas.order import OrderCreate, OrderItemIn, OrderItemOut, OrderOut, OrderPage, OrderResponse, OrderUpdate
from schemas.stock import StockBrief
from schemas.user import TokenData
from utils.audit import client_ip, write_log
from utils.query import apply_search, apply_sort, apply_time_range, page_params, paginate
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/api/order", tags=["Orders"])
logger = logging.getLogger(__name__)

# Orders in these states are closed
FINAL_STATUSES = {"delivered", "cancelled"}

SORT_FIELDS = {
    "time": Order.time,
    "total": Order.total,
    "status": Order.status,
    "customerName": Order.customer_name,
    "id": Order.id,
}


def _load_order(db: Session, order_id: int) -> Optional[Order]:
    return (
        db.query(Order)
        .options(selectinload(Order.items).joinedload(OrderItem.stock))
        .filter(Order.id == order_id)
        .first()
    )


def get_order_or_404(order_id: int, db: Session = Depends(get_db)) -> Order:
    order = _load_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# Map Order model to OrderOut schema
def _order_to_out(order: Order) -> OrderOut:
    items: List[OrderItemOut] = []
    for it in order.items:
        items.append(OrderItemOut(
            id=it.id,
            stock_id=it.stock_id,
            name=it.name,
            quantity=it.quantity,
            unit_price=it.unit_price,
            line_total=round(it.quantity * it.unit_price, 2),
            stock=StockBrief.model_validate(it.stock) if it.stock else None,
        ))
    return OrderOut(
        id=order.id,
        status=order.status,
        total=round(order.total, 2),
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        address=order.address,
        note=order.note,
        user_id=order.user_id,
        created_by=order.created_by,
        updated_by=order.updated_by,
        time=order.time,
        items=items,
    )


def _build_items(db: Session, lines: List[OrderItemIn]) -> List[OrderItem]:
    """Resolve each line against its stock; the discounted price is the default unit price."""
    ids = {line.stock_id for line in lines}
    stocks = {s.id: s for s in db.query(Stock).filter(Stock.id.in_(ids)).all()}
    items = []
    for line in lines:
        stock = stocks.get(line.stock_id)
        if stock is None:
            raise HTTPException(status_code=400, detail=f"Stock {line.stock_id} not found")
        unit_price = line.unit_price
        if unit_price is None:
            unit_price = round(stock.price * (1 - (stock.discount_percentage or 0) / 100), 2)
        items.append(OrderItem(stock_id=stock.id, name=stock.name, quantity=line.quantity, unit_price=unit_price))
    return items


def _total(items: List[OrderItem]) -> float:
    return round(sum(it.quantity * it.unit_price for it in items), 2)


def _commit(db: Session, what: str):
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not %s order", what)
        raise HTTPException(status_code=500, detail=f"Could not {what} order")


@router.get("", response_model=OrderPage)
def list_orders(
    page: Optional[str] = Query(None),
    perpage: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    time: Optional[str] = Query(None),
    sort: Optional[str] = Query("time"),
    order: Optional[str] = Query("desc"),
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user),
):
    page, perpage = page_params(page, perpage)
    query = db.query(Order).options(selectinload(Order.items).joinedload(OrderItem.stock))
    query = apply_search(query, [Order.customer_name, Order.customer_email], search)
    if status:
        query = query.filter(Order.status == status.lower())
    query = apply_time_range(query, Order.time, time)
    query, sort_key, direction = apply_sort(query, SORT_FIELDS, sort, order, default="time")
    rows, total, pages = paginate(query, page, perpage)
    return {
        "total": total, "page": page, "perpage": perpage, "pages": pages,
        "sort": sort_key, "order": direction, "data": [_order_to_out(o) for o in rows],
    }


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    current_user: TokenData = Depends(get_current_user),
    order: Order = Depends(get_order_or_404),
):
    return {"message": "Successful", "data": _order_to_out(order)}


@router.post("", response_model=OrderResponse, status_code=201)
def create_order(
    payload: OrderCreate,
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items = _build_items(db, payload.items)
    order = Order(
        user_id=current_user.id,
        status=payload.status,
        customer_name=payload.customer_name,
        customer_email=payload.customer_email,
        address=payload.address,
        note=payload.note,
        total=_total(items),
        items=items,
        created_by=current_user.name,
    )
    db.add(order)
    _commit(db, "create")
    order_id = order.id

    write_log(db, actor=current_user.name, action="ORDER_CREATE", resource="orders",
              ip=client_ip(request), meta={"id": order_id, "total": order.total})
    return {"message": "Order created successfully", "data": _order_to_out(_load_order(db, order_id))}


@router.put("/{order_id}", response_model=OrderResponse)
def update_order(
    payload: OrderUpdate,
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    order: Order = Depends(get_order_or_404),
    db: Session = Depends(get_db),
):
    old_status = order.status
    if old_status in FINAL_STATUSES and payload.status is not None and payload.status != old_status:
        raise HTTPException(status_code=400, detail=f"Cannot change status from {old_status}")

    for field in ("customer_name", "customer_email", "address", "note", "status"):
        value = getattr(payload, field)
        if value is not None:
            setattr(order, field, value)

    if payload.items is not None:
        order.items = _build_items(db, payload.items)
        order.total = _total(order.items)

    order.updated_by = current_user.name
    order_id = order.id
    _commit(db, "update")

    write_log(db, actor=current_user.name, action="ORDER_UPDATE", resource="orders",
              ip=client_ip(request), meta={"id": order_id, "old": old_status, "new": payload.status})
    return {"message": "Order updated successfully", "data": _order_to_out(_load_order(db, order_id))}


@router.delete("/{order_id}")
def delete_order(
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    order: Order = Depends(get_order_or_404),
    db: Session = Depends(get_db),
):
    order_id = order.id
    db.delete(order)
    _commit(db, "delete")

    write_log(db, actor=current_user.name, action="ORDER_DELETE", resource="orders",
              ip=client_ip(request), meta={"id": order_id})
    return {"message": "Order deleted successfully"}
