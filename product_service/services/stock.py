"""Stock adjustment after checkout.

A completed order decrements each purchased product's quantity and
increments its sold counter. All line items are applied in one
transaction: either every product is adjusted or none is.
"""

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from product_service.exceptions import InsufficientStockError, StockUpdateError
from product_service.models import Product

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineItem:
    """A purchased product and how many units were bought."""

    product_id: uuid.UUID
    count: int


@dataclass(frozen=True)
class StockAdjustment:
    """The result of adjusting one product.

    Attributes:
        product_id: The adjusted product
        count: Units removed from stock
        quantity: Stock on hand after the adjustment
        sold: Cumulative units sold after the adjustment
    """

    product_id: uuid.UUID
    count: int
    quantity: int
    sold: int


def merge_line_items(items: Iterable[LineItem]) -> dict[uuid.UUID, int]:
    """Sum the counts of line items that refer to the same product.

    Order of first appearance is preserved.
    """
    totals: dict[uuid.UUID, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.count
    return totals


async def decrease_quantity(
    session: AsyncSession,
    items: Iterable[LineItem],
) -> list[StockAdjustment]:
    """Remove purchased units from stock and add them to the sold counters.

    Every product is checked before anything is written. Each update is
    conditional on enough stock remaining, so a concurrent checkout that
    drained a product between the check and the write is still caught, and
    the reported levels are the ones the update actually wrote.

    Args:
        session: Database session
        items: Purchased line items

    Returns:
        One adjustment per distinct product, in order of first appearance.

    Raises:
        StockUpdateError: If a product does not exist or the write fails.
        InsufficientStockError: If a product does not have enough stock.
    """
    totals = merge_line_items(items)
    if not totals:
        return []

    try:
        result = await session.execute(
            select(Product.id, Product.quantity, Product.sold).where(
                Product.id.in_(list(totals))
            )
        )
        current = {row.id: (row.quantity, row.sold) for row in result}

        missing = [product_id for product_id in totals if product_id not in current]
        if missing:
            logger.warning("Stock update references unknown products: %s", missing)
            raise StockUpdateError()

        for product_id, count in totals.items():
            available = current[product_id][0]
            if available < count:
                raise InsufficientStockError(product_id, available, count)

        adjustments: list[StockAdjustment] = []
        for product_id, count in totals.items():
            update_result = await session.execute(
                update(Product)
                .where(Product.id == product_id, Product.quantity >= count)
                .values(
                    quantity=Product.quantity - count,
                    sold=Product.sold + count,
                )
                .returning(Product.quantity, Product.sold)
                .execution_options(synchronize_session=False)
            )
            row = update_result.one_or_none()
            if row is None:
                # Drained by another checkout after the stock check
                available = await session.scalar(
                    select(Product.quantity).where(Product.id == product_id)
                )
                raise InsufficientStockError(product_id, available or 0, count)

            adjustments.append(
                StockAdjustment(
                    product_id=product_id,
                    count=count,
                    quantity=row.quantity,
                    sold=row.sold,
                )
            )
    except StockUpdateError:
        await session.rollback()
        raise
    except SQLAlchemyError as e:
        logger.error("Stock update failed: %s", e)
        await session.rollback()
        raise StockUpdateError() from e

    logger.info(
        "Decreased stock for %d products (%d units)",
        len(adjustments),
        sum(totals.values()),
    )
    return adjustments
