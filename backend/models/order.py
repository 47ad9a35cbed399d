# backend/models/order.py
from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
from database import Base

class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(String, nullable=False, default="pending", index=True)
    total = Column(Float, nullable=False, default=0)

    # Customer details
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=True)
    address = Column(String, nullable=True)
    note = Column(String, nullable=True)

    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)
    time = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), index=True)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    user = relationship("User")
    invoices = relationship("Invoice", back_populates="order", cascade="all, delete-orphan")

class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    stock_id = Column(Integer, ForeignKey("stocks.id", ondelete="SET NULL"), nullable=True)
    # Snapshot of the stock name at order time
    name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
    stock = relationship("Stock")
