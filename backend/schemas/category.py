# backend/schemas/category.py
from pydantic import StringConstraints
from typing import Annotated, List, Optional
from datetime import datetime

from schemas.base import ORMBase, PageMeta

# Surrounding whitespace is dropped before the length check
CategoryName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CategoryCreate(ORMBase):
    name: CategoryName
    description: Optional[str] = None


# Schema for partial category updates
class CategoryUpdate(ORMBase):
    name: Optional[CategoryName] = None
    description: Optional[str] = None


# Populated form embedded in stock responses
class CategoryRef(ORMBase):
    id: int
    name: str


class CategoryOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    created_by: Optional[str] = None
    time: Optional[datetime] = None
    stock_count: int = 0


class CategoryPage(PageMeta):
    data: List[CategoryOut]


class CategoryResponse(ORMBase):
    message: str
    data: CategoryOut
