"""SQLAlchemy models for the product catalog."""

from product_service.models.category import Category
from product_service.models.product import Product

__all__ = [
    "Category",
    "Product",
]
