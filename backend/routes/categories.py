# backend/routes/categories.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import get_db
from models.category import Category
from models.stock import Stock
from schemas.category import CategoryCreate, CategoryOut, CategoryPage, CategoryResponse, CategoryUpdate
from schemas.user import TokenData
from utils.audit import client_ip, write_log
from utils.query import apply_search, apply_sort, apply_time_range, page_params, paginate
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/api/category", tags=["Categories"])
logger = logging.getLogger(__name__)

SORT_FIELDS = {"time": Category.time, "name": Category.name, "id": Category.id}


def get_category_or_404(category_id: int, db: Session = Depends(get_db)) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


# Attach the number of stocks referencing each category
def _with_counts(db: Session, categories):
    ids = [c.id for c in categories]
    counts = dict(
        db.query(Stock.category_id, func.count(Stock.id))
        .filter(Stock.category_id.in_(ids))
        .group_by(Stock.category_id)
        .all()
    ) if ids else {}
    out = []
    for c in categories:
        item = CategoryOut.model_validate(c)
        item.stock_count = counts.get(c.id, 0)
        out.append(item)
    return out


def _name_taken(db: Session, name: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(Category.id).filter(func.lower(Category.name) == name.strip().lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first() is not None


def _commit(db: Session, what: str):
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not %s category", what)
        raise HTTPException(status_code=500, detail=f"Could not {what} category")


@router.get("", response_model=CategoryPage)
def list_categories(
    page: Optional[str] = Query(None),
    perpage: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    time: Optional[str] = Query(None),
    sort: Optional[str] = Query("name"),
    order: Optional[str] = Query("asc"),
    db: Session = Depends(get_db),
):
    page, perpage = page_params(page, perpage)
    query = apply_search(db.query(Category), [Category.name, Category.description], search)
    query = apply_time_range(query, Category.time, time)
    query, sort_key, direction = apply_sort(query, SORT_FIELDS, sort, order, default="name")
    items, total, pages = paginate(query, page, perpage)
    return {
        "total": total, "page": page, "perpage": perpage, "pages": pages,
        "sort": sort_key, "order": direction, "data": _with_counts(db, items),
    }


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category(category: Category = Depends(get_category_or_404), db: Session = Depends(get_db)):
    return {"message": "Successful", "data": _with_counts(db, [category])[0]}


@router.post("", response_model=CategoryResponse, status_code=201)
def create_category(
    payload: CategoryCreate,
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if _name_taken(db, payload.name):
        raise HTTPException(status_code=409, detail="Category name already exists")

    category = Category(name=payload.name, description=payload.description, created_by=current_user.name)
    db.add(category)
    _commit(db, "create")
    db.refresh(category)

    write_log(db, actor=current_user.name, action="CATEGORY_CREATE", resource="category",
              ip=client_ip(request), meta={"id": category.id, "name": category.name})
    return {"message": "Category added successfully", "data": _with_counts(db, [category])[0]}


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    payload: CategoryUpdate,
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    category: Category = Depends(get_category_or_404),
    db: Session = Depends(get_db),
):
    if payload.name is not None:
        if _name_taken(db, payload.name, exclude_id=category.id):
            raise HTTPException(status_code=409, detail="Category name already exists")
        category.name = payload.name
    if payload.description is not None:
        category.description = payload.description

    _commit(db, "update")
    db.refresh(category)

    write_log(db, actor=current_user.name, action="CATEGORY_UPDATE", resource="category",
              ip=client_ip(request), meta={"id": category.id})
    return {"message": "Category updated successfully", "data": _with_counts(db, [category])[0]}


@router.delete("/{category_id}")
def delete_category(
    request: Request,
    current_user: TokenData = Depends(get_current_user),
    category: Category = Depends(get_category_or_404),
    db: Session = Depends(get_db),
):
    category_id, name = category.id, category.name
    # Stocks keep existing without a category
    detached = (
        db.query(Stock)
        .filter(Stock.category_id == category_id)
        .update({Stock.category_id: None}, synchronize_session=False)
    )
    db.delete(category)
    _commit(db, "delete")

    write_log(db, actor=current_user.name, action="CATEGORY_DELETE", resource="category",
              ip=client_ip(request), meta={"id": category_id, "detached_stocks": detached})
    return {"message": f"Category '{name}' deleted", "detachedStocks": detached}
