# backend/models/invoice.py
from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, func, Enum
from sqlalchemy.orm import relationship
from database import Base
import enum

# Enum for invoice payment states
class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"

# Represents an invoice issued for an order
class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(Integer, index=True, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True, nullable=False)
    payment_status = Column(Enum(PaymentStatus, values_callable=lambda e: [m.value for m in e]),
                            default=PaymentStatus.PENDING, nullable=False)

    amount = Column(Float, nullable=False)
    tax_rate = Column(Float, nullable=False, default=0)
    due_date = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(String(255), nullable=True)
    updated_by = Column(String(255), nullable=True)
    time = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), index=True)

    order = relationship("Order", back_populates="invoices")

    @property
    def full_number(self):
        return f"INV-{self.number}"

    @property
    def total_gross(self):
        return round(self.amount * (1 + (self.tax_rate or 0) / 100), 2)
