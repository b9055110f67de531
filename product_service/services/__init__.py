"""Business logic services for the product catalog."""

from product_service.services.catalog import (
    FILTERABLE_FIELDS,
    SORTABLE_COLUMNS,
    ListingOptions,
    SortOrder,
    build_filter_clauses,
    list_product_categories,
    list_products,
    list_related_products,
    search_products,
    search_products_by_name,
)
from product_service.services.db_errors import db_error_message
from product_service.services.products import (
    PhotoUpload,
    ProductSubmission,
    build_submission,
    create_product,
    get_product,
    remove_product,
    update_product,
)
from product_service.services.stock import (
    LineItem,
    StockAdjustment,
    decrease_quantity,
)

__all__ = [
    "FILTERABLE_FIELDS",
    "SORTABLE_COLUMNS",
    "LineItem",
    "ListingOptions",
    "PhotoUpload",
    "ProductSubmission",
    "SortOrder",
    "StockAdjustment",
    "build_filter_clauses",
    "build_submission",
    "create_product",
    "db_error_message",
    "decrease_quantity",
    "get_product",
    "list_product_categories",
    "list_products",
    "list_related_products",
    "remove_product",
    "search_products",
    "search_products_by_name",
    "update_product",
]
