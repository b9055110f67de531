"""FastAPI routes for product categories."""

import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from product_service.database import get_db
from product_service.exceptions import (
    CategoryNotFoundError,
    DatabaseError,
    FieldValidationError,
    GenericFailure,
)
from product_service.models import Category, Product
from product_service.services.catalog import parse_uuid
from product_service.services.db_errors import db_error_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])


# --- Pydantic Schemas ---


class CategorySummary(BaseModel):
    """Category id and name, as embedded in related-product listings."""

    id: UUID = Field(description="Category UUID")
    name: str = Field(description="Category name")

    model_config = {"from_attributes": True}


class CategoryResponse(CategorySummary):
    """Full category record."""

    created_at: datetime = Field(description="When the category was created")
    updated_at: datetime = Field(description="When the category was last updated")


class CategoryRequest(BaseModel):
    """Request schema for creating or renaming a category."""

    name: str = Field(min_length=1, max_length=32, description="Category name")


class CategoryMessage(BaseModel):
    """Confirmation message."""

    message: str


# --- Dependencies ---


async def get_category_or_404(
    category_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Category:
    """Resolve the category named in the path."""
    try:
        category = await db.get(Category, parse_uuid(category_id))
    except (ValueError, SQLAlchemyError) as e:
        logger.error("Category lookup failed for %s: %s", category_id, e)
        raise GenericFailure() from e

    if category is None:
        raise CategoryNotFoundError()
    return category


async def _flush(db: AsyncSession, action: str) -> None:
    try:
        await db.flush()
    except SQLAlchemyError as e:
        logger.error("Failed to %s category: %s", action, e)
        await db.rollback()
        raise DatabaseError(db_error_message(e)) from e


# --- API Endpoints ---


@router.post("", response_model=CategoryResponse)
async def create_category(
    payload: CategoryRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CategoryResponse:
    """Create a category. Names are unique."""
    category = Category(name=payload.name.strip())
    db.add(category)
    await _flush(db, "create")
    logger.info("Created category %s (%s)", category.id, category.name)
    return CategoryResponse.model_validate(category)


@router.get("", response_model=list[CategoryResponse])
async def list_categories(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[CategoryResponse]:
    """List all categories ordered by name."""
    result = await db.execute(select(Category).order_by(Category.name))
    return [CategoryResponse.model_validate(c) for c in result.scalars().all()]


@router.get("/{category_id}", response_model=CategoryResponse)
async def read_category(
    category: Annotated[Category, Depends(get_category_or_404)],
) -> CategoryResponse:
    """Return a single category."""
    return CategoryResponse.model_validate(category)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    payload: CategoryRequest,
    category: Annotated[Category, Depends(get_category_or_404)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CategoryResponse:
    """Rename a category."""
    category.name = payload.name.strip()
    await _flush(db, "update")
    logger.info("Updated category %s", category.id)
    return CategoryResponse.model_validate(category)


@router.delete("/{category_id}", response_model=CategoryMessage)
async def remove_category(
    category: Annotated[Category, Depends(get_category_or_404)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CategoryMessage:
    """Delete a category that no product refers to."""
    in_use = await db.execute(
        select(func.count()).select_from(Product).where(Product.category_id == category.id)
    )
    product_count = in_use.scalar() or 0
    if product_count:
        raise FieldValidationError(
            f"Cannot delete {category.name}: it has {product_count} associated products"
        )

    await db.delete(category)
    await _flush(db, "delete")
    logger.info("Deleted category %s", category.id)
    return CategoryMessage(message="Category deleted successfully")
