"""FastAPI routes for the product catalog."""

import logging
from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from product_service.api.categories import CategoryResponse, CategorySummary
from product_service.config import settings
from product_service.database import get_db
from product_service.exceptions import ProductNotFoundError, UploadError
from product_service.models import Product
from product_service.services.catalog import (
    ListingOptions,
    SortOrder,
    list_product_categories,
    list_products,
    list_related_products,
    search_products,
    search_products_by_name,
)
from product_service.services.products import (
    ProductSubmission,
    build_submission,
    create_product,
    get_product,
    load_photo,
    remove_product,
    update_product,
)
from product_service.services.stock import LineItem, StockAdjustment, decrease_quantity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


# --- Pydantic Schemas ---


class ProductResponse(BaseModel):
    """Response schema for a product. The photo is never included."""

    id: UUID = Field(description="Product UUID")
    name: str = Field(description="Product name")
    description: str = Field(description="Product description")
    price: float = Field(description="Unit price")
    category_id: UUID = Field(description="Category UUID")
    quantity: int = Field(description="Units in stock")
    sold: int = Field(description="Units sold so far")
    shipping: bool = Field(description="Whether the product ships")
    created_at: datetime = Field(description="When the product was created")
    updated_at: datetime = Field(description="When the product was last updated")

    model_config = {"from_attributes": True}


class ProductWithCategory(ProductResponse):
    """Product with its full category populated."""

    category: CategoryResponse


class RelatedProduct(ProductResponse):
    """Product with the id and name of its category populated."""

    category: CategorySummary


class ProductUpdateResponse(BaseModel):
    """Response schema for the update endpoint."""

    result: ProductResponse


class ProductMessage(BaseModel):
    """Confirmation message."""

    message: str


class ProductSearchRequest(BaseModel):
    """Request body for the filtered product search."""

    order: SortOrder = Field(default=SortOrder.DESC, description="asc or desc")
    sort_by: str = Field(default="_id", alias="sortBy", description="Column to sort by")
    limit: int = Field(
        default=settings.default_search_limit,
        ge=0,
        description="Maximum results, 0 for the default",
    )
    skip: int = Field(default=0, ge=0, description="Results to skip")
    filters: dict[str, list[Any]] = Field(
        default_factory=dict,
        description="Filter key to accepted values, e.g. {'price': [0, 10]}",
    )

    model_config = ConfigDict(populate_by_name=True)


class ProductSearchResponse(BaseModel):
    """Response schema for the filtered product search."""

    size: int = Field(description="Number of products returned")
    data: list[ProductWithCategory]


class OrderLineItem(BaseModel):
    """A purchased product within an order."""

    product_id: UUID = Field(alias="_id", description="Product UUID")
    count: int = Field(gt=0, description="Units purchased")

    model_config = ConfigDict(populate_by_name=True)


class OrderProducts(BaseModel):
    """The purchased products of an order."""

    products: list[OrderLineItem] = Field(min_length=1)


class StockUpdateRequest(BaseModel):
    """Request body for the stock decrement step."""

    order: OrderProducts


class StockAdjustmentResponse(BaseModel):
    """Stock levels of one product after an adjustment."""

    product_id: UUID
    count: int
    quantity: int
    sold: int

    model_config = {"from_attributes": True}


class StockUpdateResponse(BaseModel):
    """Response schema for the stock decrement step."""

    updated: list[StockAdjustmentResponse]


# --- Dependencies ---


async def get_product_or_404(
    product_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Product:
    """Resolve the product named in the path.

    Raises:
        ProductNotFoundError: If no product has this id.
        GenericFailure: If the id is malformed or the lookup fails.
    """
    product = await get_product(db, product_id)
    if product is None:
        raise ProductNotFoundError()
    return product


async def product_submission(request: Request) -> ProductSubmission:
    """Parse and validate a multipart product submission.

    Raises:
        UploadError: If the multipart body cannot be parsed.
        FieldValidationError: If a required field is missing or malformed.
        SizeLimitError: If the photo is too large.
    """
    try:
        form = await request.form()
    except (MultiPartException, StarletteHTTPException) as e:
        logger.warning("Could not parse product form: %s", e)
        raise UploadError() from e
    try:
        return await build_submission(form)
    finally:
        await form.close()


async def apply_stock_decrease(
    payload: StockUpdateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[StockAdjustment]:
    """Decrease stock for every product of a completed order.

    Runs as a dependency so checkout handlers only execute once stock has
    been adjusted.
    """
    items = [
        LineItem(product_id=item.product_id, count=item.count)
        for item in payload.order.products
    ]
    return await decrease_quantity(db, items)


# --- API Endpoints ---


@router.get("", response_model=list[ProductWithCategory])
async def list_all_products(
    db: Annotated[AsyncSession, Depends(get_db)],
    sort_by: Annotated[str, Query(alias="sortBy", description="Column to sort by")] = "_id",
    order: Annotated[SortOrder, Query(description="asc or desc")] = SortOrder.ASC,
    limit: Annotated[
        int, Query(ge=0, description="Maximum number of products, 0 for no cap")
    ] = settings.default_list_limit,
) -> list[ProductWithCategory]:
    """List products with their category, sorted and capped.

    Best sellers: ``?sortBy=sold&order=desc&limit=4``.
    New arrivals: ``?sortBy=createdAt&order=desc&limit=4``.
    """
    options = ListingOptions(sort_by=sort_by, order=order, limit=limit)
    try:
        products = await list_products(db, options)
    except SQLAlchemyError as e:
        logger.error("Product listing failed: %s", e)
        raise ProductNotFoundError("Products not found") from e
    return [ProductWithCategory.model_validate(p) for p in products]


@router.get("/search", response_model=list[ProductResponse])
async def search_by_name(
    db: Annotated[AsyncSession, Depends(get_db)],
    search: Annotated[
        str | None, Query(description="Case-insensitive name substring")
    ] = None,
    category: Annotated[
        str | None, Query(description="Category UUID, or 'All'")
    ] = None,
) -> list[ProductResponse]:
    """Search products by name for the storefront search bar.

    Without a search term every product (of the category, if given) is
    returned.
    """
    try:
        products = await search_products_by_name(db, search, category)
    except SQLAlchemyError as e:
        logger.error("Product name search failed: %s", e)
        raise ProductNotFoundError("Products not found") from e
    return [ProductResponse.model_validate(p) for p in products]


@router.get("/categories", response_model=list[UUID])
async def list_used_categories(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[UUID]:
    """List the distinct categories that have at least one product."""
    try:
        return await list_product_categories(db)
    except SQLAlchemyError as e:
        logger.error("Category listing failed: %s", e)
        raise ProductNotFoundError("Categories not found") from e


@router.post("/by/search", response_model=ProductSearchResponse)
async def search_by_filters(
    payload: ProductSearchRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProductSearchResponse:
    """Search products by price range, category and shipping.

    Used by the shop page: categories are checkboxes and price ranges are
    radio buttons. ``skip`` drives the "load more" button.
    """
    options = ListingOptions(
        sort_by=payload.sort_by,
        order=payload.order,
        limit=payload.limit or settings.default_search_limit,
        skip=payload.skip,
    )
    try:
        products = await search_products(db, payload.filters, options)
    except SQLAlchemyError as e:
        logger.error("Product search failed: %s", e)
        raise ProductNotFoundError("Products not found") from e
    return ProductSearchResponse(
        size=len(products),
        data=[ProductWithCategory.model_validate(p) for p in products],
    )


@router.post("/decrease-quantity", response_model=StockUpdateResponse)
async def decrease_stock(
    adjustments: Annotated[list[StockAdjustment], Depends(apply_stock_decrease)],
) -> StockUpdateResponse:
    """Remove purchased units from stock after checkout."""
    return StockUpdateResponse(
        updated=[StockAdjustmentResponse.model_validate(a) for a in adjustments]
    )


@router.get("/related/{product_id}", response_model=list[RelatedProduct])
async def list_related(
    product: Annotated[Product, Depends(get_product_or_404)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: Annotated[
        int, Query(ge=0, description="Maximum number of products, 0 for no cap")
    ] = settings.default_list_limit,
) -> list[RelatedProduct]:
    """List other products from the same category."""
    try:
        products = await list_related_products(db, product, limit)
    except SQLAlchemyError as e:
        logger.error("Related product listing failed: %s", e)
        raise ProductNotFoundError("Products not found") from e
    return [RelatedProduct.model_validate(p) for p in products]


@router.get("/photo/{product_id}")
async def serve_photo(
    product: Annotated[Product, Depends(get_product_or_404)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Response:
    """Serve the product photo with its stored content type.

    Products without a photo answer 204 No Content.
    """
    photo = await load_photo(db, product)
    if photo is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return Response(content=photo.data, media_type=photo.content_type)


@router.post("", response_model=ProductResponse)
async def create(
    submission: Annotated[ProductSubmission, Depends(product_submission)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProductResponse:
    """Create a product from a multipart form with an optional photo."""
    product = await create_product(db, submission)
    return ProductResponse.model_validate(product)


@router.get("/{product_id}", response_model=ProductResponse)
async def read(
    product: Annotated[Product, Depends(get_product_or_404)],
) -> ProductResponse:
    """Return a single product without its photo."""
    return ProductResponse.model_validate(product)


@router.put("/{product_id}", response_model=ProductUpdateResponse)
async def update(
    product: Annotated[Product, Depends(get_product_or_404)],
    submission: Annotated[ProductSubmission, Depends(product_submission)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProductUpdateResponse:
    """Update a product from a multipart form with an optional new photo."""
    updated = await update_product(db, product, submission)
    return ProductUpdateResponse(result=ProductResponse.model_validate(updated))


@router.delete("/{product_id}", response_model=ProductMessage)
async def remove(
    product: Annotated[Product, Depends(get_product_or_404)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProductMessage:
    """Delete a product."""
    await remove_product(db, product)
    return ProductMessage(message="Product deleted successfully")
