"""Category model for grouping products."""

import uuid
from datetime import datetime

from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from product_service.database import Base


class Category(Base):
    """Category model referenced by products.

    Attributes:
        id: Unique identifier (UUID)
        name: Human-readable category name (e.g., 'Books')
        created_at: Timestamp when the record was created
        updated_at: Timestamp of the last modification
    """

    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(
        String(32),
        unique=True,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Category(name={self.name!r})>"
