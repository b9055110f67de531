"""Errors raised by the product catalog.

Every error carries a human-readable ``message``. The application turns
any :class:`ProductServiceError` into an HTTP 400 response with the body
``{"error": message}``.
"""


class ProductServiceError(Exception):
    """Base class for all catalog errors."""

    default_message = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ProductNotFoundError(ProductServiceError):
    """Raised when a product (or a product listing) cannot be found."""

    default_message = "Product not found"


class CategoryNotFoundError(ProductServiceError):
    """Raised when a category cannot be found."""

    default_message = "Category does not exist"


class FieldValidationError(ProductServiceError):
    """Raised when submitted fields are missing or malformed."""

    default_message = "All fields are required"


class UploadError(ProductServiceError):
    """Raised when a multipart submission cannot be parsed."""

    default_message = "Image upload failed"


class SizeLimitError(ProductServiceError):
    """Raised when an uploaded photo exceeds the size limit."""

    default_message = "Image should be smaller than 1mb in size"


class DatabaseError(ProductServiceError):
    """Raised when a write is rejected by the database."""


class GenericFailure(ProductServiceError):
    """Catch-all for unexpected faults."""


class StockUpdateError(ProductServiceError):
    """Raised when a stock adjustment batch cannot be applied."""

    default_message = "Could not update product"


class InsufficientStockError(StockUpdateError):
    """Raised when an adjustment would drive a quantity below zero."""

    def __init__(self, product_id: object, available: int, requested: int) -> None:
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"{available} available, {requested} requested"
        )
