"""Product listing and search queries.

This module provides functions for:
- Translating sort parameters into ORDER BY clauses over a fixed set of columns
- Building WHERE clauses from a mapping of filter key to accepted values
- Listing, related-product lookup, distinct categories and name search

Photo columns are deferred on the mapper, so none of the queries below
ever load photo bytes.
"""

import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import Any

from sqlalchemy import ColumnElement, Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from product_service.exceptions import FieldValidationError
from product_service.models import Category, Product

# Sentinel sent by the storefront search bar for "any category"
ALL_CATEGORIES = "All"

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


class SortOrder(StrEnum):
    """Valid sort directions."""

    ASC = "asc"
    DESC = "desc"


class FilterKind(Enum):
    """How a filter's accepted values constrain a column."""

    RANGE = "range"
    MEMBERSHIP = "membership"


def parse_bool(value: Any) -> bool:
    """Interpret a form or JSON value as a boolean.

    Raises:
        ValueError: If the value is not a recognised boolean spelling.
    """
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def parse_uuid(value: Any) -> uuid.UUID:
    """Interpret a value as a UUID.

    Raises:
        ValueError: If the value is not a valid UUID.
    """
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


# Accepted sortBy values. The camelCase and "_id" spellings are what the
# storefront sends; the snake_case ones match the JSON responses.
SORTABLE_COLUMNS: dict[str, Any] = {
    "_id": Product.id,
    "id": Product.id,
    "name": Product.name,
    "price": Product.price,
    "quantity": Product.quantity,
    "sold": Product.sold,
    "shipping": Product.shipping,
    "category": Product.category_id,
    "createdAt": Product.created_at,
    "created_at": Product.created_at,
    "updatedAt": Product.updated_at,
    "updated_at": Product.updated_at,
}


@dataclass(frozen=True)
class FilterField:
    """A filterable product column.

    Attributes:
        column: The mapped column the filter applies to
        kind: Range or set-membership constraint
        coerce: Converts one raw value to the column's Python type
    """

    column: Any
    kind: FilterKind
    coerce: Callable[[Any], Any]


FILTERABLE_FIELDS: dict[str, FilterField] = {
    "price": FilterField(Product.price, FilterKind.RANGE, float),
    "category": FilterField(Product.category_id, FilterKind.MEMBERSHIP, parse_uuid),
    "shipping": FilterField(Product.shipping, FilterKind.MEMBERSHIP, parse_bool),
}


@dataclass(frozen=True)
class ListingOptions:
    """Sorting and pagination for a product listing.

    Attributes:
        sort_by: Name of the column to sort by (see SORTABLE_COLUMNS)
        order: Sort direction
        limit: Maximum number of products to return, 0 for no cap
        skip: Number of leading products to discard
    """

    sort_by: str = "_id"
    order: SortOrder = SortOrder.ASC
    limit: int = 6
    skip: int = 0


def resolve_sort(sort_by: str, order: SortOrder) -> list[ColumnElement[Any]]:
    """Build the ORDER BY clauses for a listing.

    The product id is appended as a tie-breaker so pages stay stable.

    Raises:
        FieldValidationError: If sort_by is not a sortable column.
    """
    column = SORTABLE_COLUMNS.get(sort_by)
    if column is None:
        raise FieldValidationError(f"Cannot sort by '{sort_by}'")

    primary = column.desc() if order == SortOrder.DESC else column.asc()
    if column is Product.id:
        return [primary]
    return [primary, Product.id.asc()]


def build_filter_clauses(
    filters: Mapping[str, Sequence[Any]] | None,
) -> list[ColumnElement[bool]]:
    """Translate a filter mapping into WHERE clauses.

    Keys with an empty value list add no constraint. ``price`` takes a
    two-element ``[low, high]`` list and becomes an inclusive range; the
    other keys become set-membership constraints.

    Args:
        filters: Mapping of filter key to accepted values.

    Returns:
        The clauses to AND together.

    Raises:
        FieldValidationError: On an unknown key, a malformed range, or a value
            that cannot be converted to the column type.
    """
    clauses: list[ColumnElement[bool]] = []
    if not filters:
        return clauses

    for key, values in filters.items():
        field = FILTERABLE_FIELDS.get(key)
        if field is None:
            raise FieldValidationError(f"Cannot filter by '{key}'")
        if not values:
            continue

        try:
            coerced = [field.coerce(value) for value in values]
        except (TypeError, ValueError) as e:
            raise FieldValidationError(f"Invalid value for filter '{key}'") from e

        if field.kind is FilterKind.RANGE:
            if len(coerced) != 2:
                raise FieldValidationError(
                    f"Filter '{key}' needs exactly two values: [min, max]"
                )
            low, high = coerced
            clauses.append(field.column >= low)
            clauses.append(field.column <= high)
        else:
            clauses.append(field.column.in_(coerced))

    return clauses


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def products_query() -> Select[tuple[Product]]:
    """Base product query with the full category populated."""
    return select(Product).options(selectinload(Product.category))


def list_products_query(options: ListingOptions) -> Select[tuple[Product]]:
    """Query for the sorted, capped listing of all products."""
    return (
        products_query()
        .order_by(*resolve_sort(options.sort_by, options.order))
        .limit(options.limit or None)
    )


def related_products_query(product: Product, limit: int) -> Select[tuple[Product]]:
    """Query for other products sharing ``product``'s category.

    Only the id and name of the category are populated. A limit of 0
    returns every related product.
    """
    return (
        select(Product)
        .where(
            Product.id != product.id,
            Product.category_id == product.category_id,
        )
        .options(selectinload(Product.category).load_only(Category.id, Category.name))
        .order_by(Product.id)
        .limit(limit or None)
    )


def filtered_products_query(
    filters: Mapping[str, Sequence[Any]] | None,
    options: ListingOptions,
) -> Select[tuple[Product]]:
    """Query for the filtered, sorted and paginated product search."""
    query = products_query()
    clauses = build_filter_clauses(filters)
    if clauses:
        query = query.where(*clauses)
    return (
        query.order_by(*resolve_sort(options.sort_by, options.order))
        .offset(options.skip)
        .limit(options.limit or None)
    )


def name_search_query(
    search: str | None,
    category: str | None = None,
) -> Select[tuple[Product]]:
    """Query for products whose name contains ``search``, ignoring case.

    Args:
        search: Substring to look for. Empty or None matches every product.
        category: Category id to restrict to. None, empty or "All" means
            any category.

    Raises:
        FieldValidationError: If category is not a valid category id.
    """
    query = select(Product)
    if search:
        query = query.where(Product.name.ilike(f"%{escape_like(search)}%", escape="\\"))
    if category and category != ALL_CATEGORIES:
        try:
            category_id = parse_uuid(category)
        except ValueError as e:
            raise FieldValidationError("Invalid category") from e
        query = query.where(Product.category_id == category_id)
    return query.order_by(Product.name, Product.id)


async def list_products(
    session: AsyncSession,
    options: ListingOptions,
) -> list[Product]:
    """List products sorted by a column and capped at a limit."""
    result = await session.execute(list_products_query(options))
    return list(result.scalars().all())


async def list_related_products(
    session: AsyncSession,
    product: Product,
    limit: int,
) -> list[Product]:
    """List products in the same category as ``product``, excluding it."""
    result = await session.execute(related_products_query(product, limit))
    return list(result.scalars().all())


async def list_product_categories(session: AsyncSession) -> list[uuid.UUID]:
    """Return each category id referenced by at least one product, once."""
    result = await session.execute(
        select(Product.category_id).distinct().order_by(Product.category_id)
    )
    return list(result.scalars().all())


async def search_products(
    session: AsyncSession,
    filters: Mapping[str, Sequence[Any]] | None,
    options: ListingOptions,
) -> list[Product]:
    """Search products with range and membership filters."""
    result = await session.execute(filtered_products_query(filters, options))
    return list(result.scalars().all())


async def search_products_by_name(
    session: AsyncSession,
    search: str | None,
    category: str | None = None,
) -> list[Product]:
    """Search products by a case-insensitive name substring."""
    result = await session.execute(name_search_query(search, category))
    return list(result.scalars().all())
