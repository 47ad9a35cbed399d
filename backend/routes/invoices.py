# backend/routes/invoices.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from database import get_db
from models.invoice import Invoice, PaymentStatus
from models.order import Order
from schemas.invoice import InvoiceCreate, InvoicePage, InvoiceResponse, InvoiceUpdate
from schemas.user import TokenData
from utils.audit import client_ip, write_log
from utils.query import apply_sort, apply_time_range, page_params, paginate
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/api/invoice", tags=["Invoices"])
logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "time": Invoice.time,
    "number": Invoice.number,
    "amount": Invoice.amount,
    "dueDate": Invoice.due_date,
}


def _load_invoice(db: Session, invoice_id: int) -> Optional[Invoice]:
    return db.query(Invoice).options(joinedload(Invoice.order)).filter(Invoice.id == invoice_id).first()


def get_invoice_or_404(invoice_id: int, db: Session = Depends(get_db)) -> Invoice:
    invoice = _load_invoice(db, invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


def _commit(db: Session, what: str):
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not %s invoice", what)
        raise HTTPException(status_code=500, detail=f"Could not {what} invoice")


@router.get("", response_model=InvoicePage)
def list_invoices(
    page: Optional[str] = Query(None),
    perpage: Optional[str] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    order_id: Optional[int] = Query(None, alias="orderId"),
    time: Optional[str] = Query(None),
    sort: Optional[str] = Query("time"),
    order: Optional[str] = Query("desc"),
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user),
):
    page, perpage = page_params(page, perpage)
    query = db.query(Invoice).options(joinedload(Invoice.order))
    if payment_status is not None:
        query = query.filter(Invoice.payment_status == payment_status)
    if order_id is not None:
        query = query.filter(Invoice.order_id == order_id)
    query = apply_time_range(query, Invoice.time, time)
    query, sort_key, direction = apply_sort(query, SORT_FIELDS, sort, order, default="time")
    items, total, pages = paginate(query, page, perpage)
    return {
        "total": total, "page": page, "perpage": perpage, "pages": pages,
        "sort": sort_key, "order": direction, "data": items,
    }


@router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(
    current_user: TokenData = Depends(get_current_user),
    invoice: Invoice = Depends(get_invoice_or_404),
):
    return {"message": "Successful", "data": invoice}


@router.post("", response_model=InvoiceResponse, status_code=201)
def create_invoice(
    payload: InvoiceCreate,
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order = db.query(Order).filter(Order.id == payload.order_id).first()
    if not order:
        raise HTTPException(status_code=400, detail=f"Order {payload.order_id} not found")

    # Determine next invoice number
    last_number = db.query(func.max(Invoice.number)).scalar()

    invoice = Invoice(
        number=(last_number or 0) + 1,
        order_id=order.id,
        amount=payload.amount if payload.amount is not None else order.total,
        tax_rate=payload.tax_rate,
        payment_status=payload.payment_status,
        due_date=payload.due_date,
        created_by=current_user.name,
    )
    db.add(invoice)
    _commit(db, "create")
    invoice_id = invoice.id

    write_log(db, actor=current_user.name, action="INVOICE_CREATE", resource="invoices",
              ip=client_ip(request), meta={"id": invoice_id, "order_id": order.id, "number": invoice.number})
    return {"message": "Invoice created successfully", "data": _load_invoice(db, invoice_id)}


@router.put("/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(
    payload: InvoiceUpdate,
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    invoice: Invoice = Depends(get_invoice_or_404),
    db: Session = Depends(get_db),
):
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(invoice, field, value)

    invoice.updated_by = current_user.name
    invoice_id = invoice.id
    _commit(db, "update")

    write_log(db, actor=current_user.name, action="INVOICE_UPDATE", resource="invoices",
              ip=client_ip(request), meta={"id": invoice_id})
    return {"message": "Invoice updated successfully", "data": _load_invoice(db, invoice_id)}


@router.delete("/{invoice_id}")
def delete_invoice(
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    invoice: Invoice = Depends(get_invoice_or_404),
    db: Session = Depends(get_db),
):
    invoice_id, number = invoice.id, invoice.full_number
    db.delete(invoice)
    _commit(db, "delete")

    write_log(db, actor=current_user.name, action="INVOICE_DELETE", resource="invoices",
              ip=client_ip(request), meta={"id": invoice_id})
    return {"message": f"Invoice {number} deleted"}
