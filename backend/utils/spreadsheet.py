# utils/spreadsheet.py
"""Excel export/import of stock rows (pandas + openpyxl).

The two directions use separate column sets: the export resolves the
category name and lists image URLs, the import takes a categoryId and a
reorderLevel and never carries images.
"""
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from utils.query import to_float, to_int

EXPORT_SHEET = "Stocks"

EXPORT_COLUMNS = [
    "code", "name", "description", "price", "discountPercentage", "inStock",
    "category", "images", "status", "rating", "createdBy", "updatedBy", "time",
]

IMPORT_COLUMNS = [
    "code", "name", "description", "price", "discountPercentage", "inStock",
    "categoryId", "status", "rating", "reorderLevel", "createdBy",
]


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    # openpyxl refuses timezone-aware datetimes
    if value is not None and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


def export_row(stock) -> Dict[str, Any]:
    return {
        "code": stock.code,
        "name": stock.name,
        "description": stock.description or "",
        "price": stock.price,
        "discountPercentage": stock.discount_percentage,
        "inStock": stock.in_stock,
        "category": stock.category.name if stock.category else "",
        "images": ", ".join(stock.images or []),
        "status": stock.status,
        "rating": stock.rating,
        "createdBy": stock.created_by or "",
        "updatedBy": stock.updated_by or "",
        "time": _naive(stock.time),
    }


def stocks_to_xlsx(stocks: Iterable) -> bytes:
    df = pd.DataFrame([export_row(s) for s in stocks], columns=EXPORT_COLUMNS)
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=EXPORT_SHEET)
    return buffer.getvalue()


def read_rows(content: bytes) -> List[Dict[str, Any]]:
    """Parse the first sheet into one dict per row; empty cells become None."""
    df = pd.read_excel(BytesIO(content), sheet_name=0, engine="openpyxl")
    df.columns = [str(c).strip() for c in df.columns]
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    # Numeric codes come back from Excel as floats
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def row_to_stock_fields(row: Dict[str, Any], default_creator: str) -> Dict[str, Any]:
    """Map one imported row onto Stock column values, defaulting every field."""
    return {
        "code": _text(row.get("code")),
        "name": _text(row.get("name")),
        "description": _text(row.get("description")),
        "price": to_float(row.get("price"), 0.0),
        "discount_percentage": to_float(row.get("discountPercentage"), 0.0),
        "in_stock": to_int(row.get("inStock"), 0),
        "category_id": to_int(row.get("categoryId"), None),
        "status": to_int(row.get("status"), 0),
        "rating": to_float(row.get("rating"), 3.0),
        "reorder_level": to_int(row.get("reorderLevel"), 0),
        "created_by": _text(row.get("createdBy")) or default_creator,
        "images": [],
    }
