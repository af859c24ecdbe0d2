import math

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import validates

from ..database import Base, new_id, utcnow
from ..errors import ValidationError


class Product(Base):
    """SQLAlchemy model for catalog products."""

    __tablename__ = "products"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    category = Column(String, nullable=False, index=True)
    image = Column(String, nullable=False)
    in_stock = Column(Boolean, default=True, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @validates("name", "category")
    def _validate_trimmed(self, key, value):
        if value is None or not str(value).strip():
            raise ValidationError(f"{key} is required")
        return str(value).strip()

    @validates("description", "image")
    def _validate_required(self, key, value):
        if value is None or not str(value).strip():
            raise ValidationError(f"{key} is required")
        return value

    @validates("price")
    def _validate_price(self, key, value):
        if value is None or not math.isfinite(value) or value < 0:
            raise ValidationError("price must be a non-negative number")
        return float(value)

    @validates("quantity")
    def _validate_quantity(self, key, value):
        if value is None or int(value) != value or value < 0:
            raise ValidationError("quantity must be a non-negative integer")
        return int(value)
