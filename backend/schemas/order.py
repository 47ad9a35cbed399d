from pydantic import Field
from typing import List, Literal, Optional
from datetime import datetime

from schemas.base import ORMBase, PageMeta
from schemas.stock import StockBrief

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]


# Input schema for a single order line; unit price defaults to the discounted stock price
class OrderItemIn(ORMBase):
    stock_id: int
    quantity: int = Field(gt=0)
    unit_price: Optional[float] = Field(None, ge=0)


class OrderCreate(ORMBase):
    customer_name: str = Field(min_length=1)
    customer_email: Optional[str] = None
    address: Optional[str] = None
    note: Optional[str] = None
    status: OrderStatus = "pending"
    items: List[OrderItemIn] = Field(min_length=1)


# Schema for partial order updates; items, when given, replace the current lines
class OrderUpdate(ORMBase):
    customer_name: Optional[str] = Field(None, min_length=1)
    customer_email: Optional[str] = None
    address: Optional[str] = None
    note: Optional[str] = None
    status: Optional[OrderStatus] = None
    items: Optional[List[OrderItemIn]] = Field(None, min_length=1)


# Output schema for an individual order line item
class OrderItemOut(ORMBase):
    id: int
    stock_id: Optional[int] = None
    name: str
    quantity: int
    unit_price: float
    line_total: float
    stock: Optional[StockBrief] = None


# Output schema representing the full order details
class OrderOut(ORMBase):
    id: int
    status: str
    total: float
    customer_name: str
    customer_email: Optional[str] = None
    address: Optional[str] = None
    note: Optional[str] = None
    user_id: Optional[int] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    time: Optional[datetime] = None
    items: List[OrderItemOut]


# Short form populated into invoices
class OrderBrief(ORMBase):
    id: int
    status: str
    total: float
    customer_name: str


class OrderPage(PageMeta):
    data: List[OrderOut]


class OrderResponse(ORMBase):
    message: str
    data: OrderOut
