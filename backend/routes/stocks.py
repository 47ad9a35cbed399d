# backend/routes/stocks.py
import logging
from datetime import datetime
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import Response
from sqlalchemy import String, cast
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from config import settings
from database import get_db
from models.category import Category
from models.stock import Stock
from schemas.stock import (
    StockDeleteResponse, StockDetail, StockImportResponse, StockPage, StockResponse,
)
from schemas.user import TokenData
from utils.attachments import AttachmentManager, get_attachments
from utils.audit import client_ip, write_log
from utils.query import apply_search, apply_sort, apply_time_range, page_params, paginate, to_float, to_int
from utils.spreadsheet import read_rows, row_to_stock_fields, stocks_to_xlsx
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/api/stocks", tags=["Stocks"])
logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SORT_FIELDS = {
    "time": Stock.time,
    "code": Stock.code,
    "name": Stock.name,
    "price": Stock.price,
    "inStock": Stock.in_stock,
    "rating": Stock.rating,
    "status": Stock.status,
    "discountPercentage": Stock.discount_percentage,
    "reorderLevel": Stock.reorder_level,
}


# ---- HELPERS ----
def _load_stock(db: Session, stock_id: int) -> Optional[Stock]:
    return db.query(Stock).options(joinedload(Stock.category)).filter(Stock.id == stock_id).first()


# Load-by-id stage shared by GET/PUT/DELETE
def get_stock_or_404(stock_id: int, db: Session = Depends(get_db)) -> Stock:
    stock = _load_stock(db, stock_id)
    if not stock:
        raise HTTPException(status_code=404, detail="Stock not found")
    return stock


def _resolve_category(db: Session, raw: Optional[str]) -> Optional[int]:
    """Empty input means no category; anything else must name an existing one."""
    if raw is None or str(raw).strip() in ("", "null"):
        return None
    category_id = to_int(raw)
    if category_id is None:
        raise HTTPException(status_code=400, detail="Invalid categoryId")
    if not db.query(Category.id).filter(Category.id == category_id).first():
        raise HTTPException(status_code=400, detail="Category not found")
    return category_id


# Names of the form fields actually sent; FastAPI reports empty ones as missing
async def sent_form_fields(request: Request) -> set:
    form = await request.form()
    return set(form.keys())


def _check_images(images: List[UploadFile]):
    error = AttachmentManager.check(images, settings.MAX_IMAGES)
    if error:
        raise HTTPException(status_code=400, detail=error)


# Another stock may still point at files in the directory behind url
def _directory_in_use(db: Session, attachments: AttachmentManager, url: str) -> bool:
    directory = attachments.directory_of(url)
    if directory is None:
        return False
    marker = f"/{attachments.upload_root.name}/{quote(directory.name)}/"
    rows = (
        db.query(Stock.images)
        .filter(cast(Stock.images, String).contains(marker, autoescape=True))
        .all()
    )
    return any(attachments.directory_of(other) == directory for (urls,) in rows for other in (urls or []))


# =========================
# LIST
# =========================
@router.get("", response_model=StockPage)
def list_stocks(
    page: Optional[str] = Query(None),
    perpage: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    time: Optional[str] = Query(None, description="Time range: <from>,<to>"),
    category: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    sort: Optional[str] = Query("time"),
    order: Optional[str] = Query("desc"),
    db: Session = Depends(get_db),
):
    page, perpage = page_params(page, perpage)

    query = db.query(Stock).options(joinedload(Stock.category))
    query = apply_search(query, [Stock.code, Stock.name, Stock.description], search)
    query = apply_time_range(query, Stock.time, time)

    category_id = to_int(category)
    if category_id is not None:
        query = query.filter(Stock.category_id == category_id)
    status_value = to_int(status)
    if status_value is not None:
        query = query.filter(Stock.status == status_value)

    query, sort_key, direction = apply_sort(query, SORT_FIELDS, sort, order, default="time")
    items, total, pages = paginate(query, page, perpage)

    return {
        "total": total, "page": page, "perpage": perpage, "pages": pages,
        "sort": sort_key, "order": direction, "data": items,
    }


# =========================
# EXPORT / IMPORT
# =========================
@router.get("/export")
def export_stocks(
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    stocks = db.query(Stock).options(joinedload(Stock.category)).order_by(Stock.id.asc()).all()
    content = stocks_to_xlsx(stocks)
    filename = f"stocks-{datetime.now():%Y%m%d-%H%M%S}.xlsx"

    write_log(db, actor=current_user.name, action="STOCK_EXPORT", resource="stocks",
              ip=client_ip(request), meta={"count": len(stocks)})
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", response_model=StockImportResponse, status_code=201)
def import_stocks(
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    """Insert every row of the first sheet in one commit; any bad row aborts the batch."""
    try:
        content = file.file.read()
    finally:
        file.file.close()

    try:
        rows = read_rows(content)
    except Exception as e:
        logger.warning("Unreadable stock spreadsheet %s: %s", file.filename, e)
        raise HTTPException(status_code=400, detail="Could not read spreadsheet")
    if not rows:
        raise HTTPException(status_code=400, detail="Spreadsheet has no rows")

    known_categories = {cid for (cid,) in db.query(Category.id).all()}
    records = []
    # Row 1 is the header
    for row_number, row in enumerate(rows, start=2):
        fields = row_to_stock_fields(row, current_user.name)
        if fields["category_id"] is not None and fields["category_id"] not in known_categories:
            raise HTTPException(
                status_code=400,
                detail=f"Row {row_number}: category {fields['category_id']} not found",
            )
        records.append(Stock(**fields))

    db.add_all(records)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Stock import of %d rows failed", len(records))
        raise HTTPException(status_code=500, detail="Import failed, no rows were saved")

    write_log(db, actor=current_user.name, action="STOCK_IMPORT", resource="stocks",
              ip=client_ip(request), meta={"count": len(records), "file": file.filename})
    return {"message": "Stock items imported successfully", "count": len(records)}


# =========================
# SINGLE STOCK
# =========================
@router.get("/{stock_id}", response_model=StockDetail)
def get_stock(stock: Stock = Depends(get_stock_or_404)):
    return {"message": "Successful", "stock": stock}


@router.post("", response_model=StockResponse, status_code=201)
def create_stock(
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    code: str = Form(...),
    name: str = Form(...),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    discount_percentage: Optional[str] = Form(None, alias="discountPercentage"),
    in_stock: Optional[str] = Form(None, alias="inStock"),
    reorder_level: Optional[str] = Form(None, alias="reorderLevel"),
    category_id: Optional[str] = Form(None, alias="categoryId"),
    status: Optional[str] = Form(None),
    rating: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    attachments: AttachmentManager = Depends(get_attachments),
):
    code = code.strip()
    if not code:
        raise HTTPException(status_code=400, detail="code is required")
    uploads = images or []
    _check_images(uploads)
    category = _resolve_category(db, category_id)

    try:
        batch = attachments.save(code, uploads)
    except OSError:
        logger.exception("Could not store images for stock %s", code)
        raise HTTPException(status_code=500, detail="Could not store images")

    stock = Stock(
        code=code,
        name=name,
        description=description or "",
        price=to_float(price, 0.0),
        discount_percentage=to_float(discount_percentage, 0.0),
        in_stock=to_int(in_stock, 0),
        reorder_level=to_int(reorder_level, 0),
        category_id=category,
        status=to_int(status, 0),
        rating=to_float(rating, 3.0),
        images=batch.urls,
        created_by=current_user.name,
    )
    db.add(stock)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        batch.rollback()
        logger.exception("Could not save stock %s", code)
        raise HTTPException(status_code=500, detail="Could not save stock")

    write_log(db, actor=current_user.name, action="STOCK_CREATE", resource="stocks",
              ip=client_ip(request), meta={"id": stock.id, "code": code, "images": len(batch.urls)})
    return {"message": "Stock item added successfully", "data": _load_stock(db, stock.id)}


@router.put("/{stock_id}", response_model=StockResponse)
def update_stock(
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    stock: Stock = Depends(get_stock_or_404),
    code: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    discount_percentage: Optional[str] = Form(None, alias="discountPercentage"),
    in_stock: Optional[str] = Form(None, alias="inStock"),
    reorder_level: Optional[str] = Form(None, alias="reorderLevel"),
    category_id: Optional[str] = Form(None, alias="categoryId"),
    status: Optional[str] = Form(None),
    rating: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    sent: set = Depends(sent_form_fields),
    db: Session = Depends(get_db),
    attachments: AttachmentManager = Depends(get_attachments),
):
    uploads = images or []
    _check_images(uploads)

    # Merge provided fields onto the loaded record
    if code is not None and code.strip():
        stock.code = code.strip()
    if name is not None:
        stock.name = name
    if description is not None or "description" in sent:
        stock.description = description or ""
    if price is not None:
        stock.price = to_float(price, stock.price)
    if discount_percentage is not None:
        stock.discount_percentage = to_float(discount_percentage, stock.discount_percentage)
    if in_stock is not None:
        stock.in_stock = to_int(in_stock, stock.in_stock)
    if reorder_level is not None:
        stock.reorder_level = to_int(reorder_level, stock.reorder_level)
    if category_id is not None or "categoryId" in sent:
        stock.category_id = _resolve_category(db, category_id)
    if status is not None:
        stock.status = to_int(status, stock.status)
    if rating is not None:
        stock.rating = to_float(rating, stock.rating)

    previous_images = list(stock.images or [])
    batch = None
    if uploads:
        try:
            batch = attachments.save(stock.code, uploads)
        except OSError:
            db.rollback()
            logger.exception("Could not store images for stock %s", stock.id)
            raise HTTPException(status_code=500, detail="Could not store images")
        stock.images = batch.urls

    stock.updated_by = current_user.name
    stock_id = stock.id
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        if batch:
            batch.rollback()
        logger.exception("Could not update stock %s", stock_id)
        raise HTTPException(status_code=500, detail="Could not update stock")

    # Old files go only once the record points at the new ones
    warnings = attachments.remove(previous_images, keep=batch.urls) if batch else []
    if batch:
        # A code change leaves the old per-code directory empty
        for url in previous_images:
            attachments.prune_directory_of(url)
    for warning in warnings:
        logger.warning("Stock %s image cleanup: %s", stock_id, warning)

    write_log(db, actor=current_user.name, action="STOCK_UPDATE", resource="stocks",
              ip=client_ip(request), meta={"id": stock_id, "images_replaced": bool(batch)})
    return {
        "message": "Stock item updated successfully",
        "data": _load_stock(db, stock_id),
        "warnings": warnings,
    }


@router.delete("/{stock_id}", response_model=StockDeleteResponse)
def delete_stock(
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    stock: Stock = Depends(get_stock_or_404),
    db: Session = Depends(get_db),
    attachments: AttachmentManager = Depends(get_attachments),
):
    stock_id, code, images = stock.id, stock.code, list(stock.images or [])
    db.delete(stock)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not delete stock %s", stock_id)
        raise HTTPException(status_code=500, detail="Could not delete stock")

    # All images of a stock share one per-code directory; it goes only when
    # no other stock still points into it
    warnings = []
    if images:
        if _directory_in_use(db, attachments, images[0]):
            warnings = attachments.remove(images)
        else:
            warnings = attachments.remove_directory_of(images[0])
    for warning in warnings:
        logger.warning("Stock %s image cleanup: %s", stock_id, warning)

    write_log(db, actor=current_user.name, action="STOCK_DELETE", resource="stocks",
              ip=client_ip(request), meta={"id": stock_id, "code": code})
    return {"message": "Stock item deleted successfully", "warnings": warnings}
