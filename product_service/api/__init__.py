"""FastAPI routes for the product catalog."""

from product_service.api.categories import router as categories_router
from product_service.api.products import router as products_router

__all__ = ["categories_router", "products_router"]
