# backend/models/category.py
from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from database import Base

# Groups stock items; referenced by Stock.category_id
class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    description = Column(String, nullable=True)
    created_by = Column(String, nullable=True)
    time = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), index=True)

    stocks = relationship("Stock", back_populates="category")
