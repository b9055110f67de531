"""Product create, update and remove operations.

Submissions arrive as multipart forms. Text fields are checked for
presence first, then converted to their column types; an optional photo
is size-checked and read into memory before anything is written.
"""

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from product_service.config import settings
from product_service.exceptions import (
    CategoryNotFoundError,
    DatabaseError,
    FieldValidationError,
    GenericFailure,
    SizeLimitError,
    UploadError,
)
from product_service.models import Category, Product
from product_service.services.catalog import parse_bool, parse_uuid
from product_service.services.db_errors import db_error_message

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "description", "price", "category", "quantity", "shipping")

PHOTO_FIELD = "photo"
DEFAULT_PHOTO_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class PhotoUpload:
    """A photo read from a multipart submission."""

    data: bytes
    content_type: str


@dataclass(frozen=True)
class ProductFields:
    """Typed product fields taken from a submission."""

    name: str
    description: str
    price: float
    category_id: uuid.UUID
    quantity: int
    shipping: bool


@dataclass(frozen=True)
class ProductSubmission:
    """A validated create or update submission."""

    fields: ProductFields
    photo: PhotoUpload | None = None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def validate_product_fields(form: Mapping[str, Any]) -> ProductFields:
    """Check that every required field is present and convert it.

    Args:
        form: Submitted text fields keyed by name.

    Returns:
        The typed product fields.

    Raises:
        FieldValidationError: If a field is missing, empty, or cannot be
            converted to its column type.
    """
    if any(_is_blank(form.get(name)) for name in REQUIRED_FIELDS):
        raise FieldValidationError("All fields are required")

    name = str(form["name"]).strip()
    if len(name) > 32:
        raise FieldValidationError("Name must be at most 32 characters")

    description = str(form["description"]).strip()
    if len(description) > 2000:
        raise FieldValidationError("Description must be at most 2000 characters")

    try:
        price = float(form["price"])
    except (TypeError, ValueError) as e:
        raise FieldValidationError("Invalid value for price") from e
    if price < 0:
        raise FieldValidationError("Price must not be negative")

    try:
        quantity = int(form["quantity"])
    except (TypeError, ValueError) as e:
        raise FieldValidationError("Invalid value for quantity") from e
    if quantity < 0:
        raise FieldValidationError("Quantity must not be negative")

    try:
        shipping = parse_bool(form["shipping"])
    except ValueError as e:
        raise FieldValidationError("Invalid value for shipping") from e

    try:
        category_id = parse_uuid(form["category"])
    except ValueError as e:
        raise FieldValidationError("Invalid value for category") from e

    return ProductFields(
        name=name,
        description=description,
        price=price,
        category_id=category_id,
        quantity=quantity,
        shipping=shipping,
    )


async def read_photo(
    upload: Any,
    max_size: int | None = None,
) -> PhotoUpload | None:
    """Read an uploaded photo, enforcing the size limit.

    Browsers submit an empty file part when no photo was chosen; that is
    treated the same as no photo at all, as is an empty text value.

    Args:
        upload: The value of the photo form field.
        max_size: Largest accepted photo in bytes. Defaults to settings.

    Returns:
        The photo, or None when nothing was uploaded.

    Raises:
        UploadError: If the photo field holds text instead of a file.
        SizeLimitError: If the photo is larger than max_size.
    """
    if upload is None or upload == "":
        return None
    if not isinstance(upload, UploadFile):
        logger.warning("Photo field submitted as text, not a file")
        raise UploadError()

    limit = settings.max_photo_size if max_size is None else max_size

    # Reject early when the parser already knows the size
    if upload.size is not None and upload.size > limit:
        raise SizeLimitError()

    contents = await upload.read()
    if not contents and not upload.filename:
        return None
    if len(contents) > limit:
        raise SizeLimitError()

    return PhotoUpload(
        data=contents,
        content_type=upload.content_type or DEFAULT_PHOTO_CONTENT_TYPE,
    )


async def build_submission(form: Mapping[str, Any]) -> ProductSubmission:
    """Validate text fields and read the photo of a multipart form."""
    fields = validate_product_fields(form)
    photo = await read_photo(form.get(PHOTO_FIELD))
    return ProductSubmission(fields=fields, photo=photo)


async def get_product(
    session: AsyncSession,
    product_id: str | uuid.UUID,
) -> Product | None:
    """Fetch a product by id.

    Raises:
        GenericFailure: If the id is malformed or the lookup fails.
    """
    try:
        key = parse_uuid(product_id)
        result = await session.execute(select(Product).where(Product.id == key))
    except (ValueError, SQLAlchemyError) as e:
        logger.error("Product lookup failed for %s: %s", product_id, e)
        raise GenericFailure() from e
    return result.scalar_one_or_none()


async def _ensure_category(session: AsyncSession, category_id: uuid.UUID) -> None:
    if await session.get(Category, category_id) is None:
        raise CategoryNotFoundError()


def _apply_submission(product: Product, submission: ProductSubmission) -> None:
    fields = submission.fields
    product.name = fields.name
    product.description = fields.description
    product.price = fields.price
    product.category_id = fields.category_id
    product.quantity = fields.quantity
    product.shipping = fields.shipping
    if submission.photo is not None:
        product.photo_data = submission.photo.data
        product.photo_content_type = submission.photo.content_type


async def _flush(session: AsyncSession, action: str) -> None:
    try:
        await session.flush()
    except SQLAlchemyError as e:
        logger.error("Failed to %s product: %s", action, e)
        await session.rollback()
        raise DatabaseError(db_error_message(e)) from e


async def create_product(
    session: AsyncSession,
    submission: ProductSubmission,
) -> Product:
    """Persist a new product.

    Args:
        session: Database session
        submission: Validated fields and optional photo

    Returns:
        The saved product.

    Raises:
        CategoryNotFoundError: If the referenced category does not exist.
        DatabaseError: If the insert is rejected.
    """
    await _ensure_category(session, submission.fields.category_id)

    product = Product()
    _apply_submission(product, submission)
    session.add(product)
    await _flush(session, "create")

    logger.info("Created product %s (%s)", product.id, product.name)
    return product


async def update_product(
    session: AsyncSession,
    product: Product,
    submission: ProductSubmission,
) -> Product:
    """Merge a submission over an existing product and persist it.

    Fields present in the submission overwrite the stored values; the
    photo is only replaced when a new one was uploaded.

    Raises:
        CategoryNotFoundError: If the referenced category does not exist.
        DatabaseError: If the update is rejected.
    """
    if submission.fields.category_id != product.category_id:
        await _ensure_category(session, submission.fields.category_id)

    _apply_submission(product, submission)
    await _flush(session, "update")

    logger.info("Updated product %s", product.id)
    return product


async def remove_product(session: AsyncSession, product: Product) -> None:
    """Delete a product.

    Raises:
        DatabaseError: If the delete is rejected.
    """
    await session.delete(product)
    await _flush(session, "delete")
    logger.info("Deleted product %s", product.id)


async def load_photo(session: AsyncSession, product: Product) -> PhotoUpload | None:
    """Load the stored photo of a product, if it has one."""
    await session.refresh(product, attribute_names=["photo_data", "photo_content_type"])
    if not product.photo_data:
        return None
    return PhotoUpload(
        data=product.photo_data,
        content_type=product.photo_content_type or DEFAULT_PHOTO_CONTENT_TYPE,
    )
