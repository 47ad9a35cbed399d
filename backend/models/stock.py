# backend/models/stock.py
from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, JSON, func
from sqlalchemy.orm import relationship
from database import Base

# A stock item. Uploaded images live under public/uploads/<code>/ and
# their public URLs are kept, in upload order, in the images list.
class Stock(Base):
    __tablename__ = "stocks"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True, default="")

    price = Column(Float, nullable=False, default=0)
    discount_percentage = Column(Float, nullable=False, default=0)

    # Stock levels
    in_stock = Column(Integer, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=0)

    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    images = Column(JSON, nullable=False, default=list)

    status = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=False, default=3)

    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)
    time = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), index=True)

    category = relationship("Category", back_populates="stocks")
