"""Product model for the storefront catalog."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    LargeBinary,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from product_service.database import Base
from product_service.models.category import Category


class Product(Base):
    """Product model representing a sellable catalog item.

    The photo is stored inline with the record and is never loaded by
    listing queries; it is only read by the photo endpoint.

    Attributes:
        id: Unique identifier (UUID)
        name: Product name
        description: Free-form product description
        price: Unit price
        category_id: Foreign key to the category
        quantity: Units currently in stock
        sold: Cumulative units sold
        shipping: Whether the product can be shipped
        photo_data: Raw photo bytes (optional)
        photo_content_type: MIME type of the photo (optional)
        created_at: Timestamp when the record was created
        updated_at: Timestamp of the last modification
    """

    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        CheckConstraint("sold >= 0", name="ck_products_sold_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    price: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False),
        nullable=False,
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    sold: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        index=True,
    )
    shipping: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    photo_data: Mapped[bytes | None] = mapped_column(
        LargeBinary,
        nullable=True,
        deferred=True,
        deferred_group="photo",
    )
    photo_content_type: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        deferred=True,
        deferred_group="photo",
    )
    created_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow,
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    category: Mapped[Category] = relationship(lazy="raise")

    def __repr__(self) -> str:
        return f"<Product(name={self.name!r}, quantity={self.quantity!r})>"
