# schemas/invoice.py
from pydantic import Field
from typing import List, Optional
from datetime import datetime

from models.invoice import PaymentStatus
from schemas.base import ORMBase, PageMeta
from schemas.order import OrderBrief

# Input schema for issuing an invoice; amount defaults to the order total
class InvoiceCreate(ORMBase):
    order_id: int
    amount: Optional[float] = Field(None, ge=0)
    tax_rate: float = Field(0, ge=0, le=100)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    due_date: Optional[datetime] = None

class InvoiceUpdate(ORMBase):
    amount: Optional[float] = Field(None, ge=0)
    tax_rate: Optional[float] = Field(None, ge=0, le=100)
    payment_status: Optional[PaymentStatus] = None
    due_date: Optional[datetime] = None

# Output schema for the invoice with its order populated
class InvoiceOut(ORMBase):
    id: int
    number: int
    full_number: str
    order_id: int
    order: Optional[OrderBrief] = None
    amount: float
    tax_rate: float
    total_gross: float
    payment_status: PaymentStatus
    due_date: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    time: Optional[datetime] = None

# Paginated response wrapper for invoice lists
class InvoicePage(PageMeta):
    data: List[InvoiceOut]

class InvoiceResponse(ORMBase):
    message: str
    data: InvoiceOut
