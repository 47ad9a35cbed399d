# backend/schemas/stock.py
from typing import List, Optional
from datetime import datetime

from schemas.base import ORMBase, PageMeta
from schemas.category import CategoryRef


# Full stock representation with its category populated
class StockOut(ORMBase):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    price: float = 0
    discount_percentage: float = 0
    in_stock: int = 0
    reorder_level: int = 0
    category_id: Optional[int] = None
    category: Optional[CategoryRef] = None
    images: List[str] = []
    status: int = 0
    rating: float = 3
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    time: Optional[datetime] = None


# Short form used when stocks are populated into order lines
class StockBrief(ORMBase):
    id: int
    code: str
    name: str
    price: float


# Paginated response for stock listings
class StockPage(PageMeta):
    data: List[StockOut]


class StockDetail(ORMBase):
    message: str
    stock: StockOut


# Result of a create/update; warnings carry file removals that failed
class StockResponse(ORMBase):
    message: str
    data: StockOut
    warnings: List[str] = []


class StockDeleteResponse(ORMBase):
    message: str
    warnings: List[str] = []


class StockImportResponse(ORMBase):
    message: str
    count: int
