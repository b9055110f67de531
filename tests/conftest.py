"""Shared fixtures: an in-memory SQLite catalog and an HTTP client bound to it."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from product_service.database import Base, get_db
from product_service.main import app
from product_service.models import Category, Product

ProductFactory = Callable[..., Awaitable[Product]]


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh in-memory database with the catalog schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client for the app, with get_db pointed at the test database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_category(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[str], Awaitable[Category]]:
    """Factory that stores a category."""

    async def _make(name: str) -> Category:
        async with session_factory() as session:
            category = Category(name=name)
            session.add(category)
            await session.commit()
        return category

    return _make


@pytest.fixture
def make_product(session_factory: async_sessionmaker[AsyncSession]) -> ProductFactory:
    """Factory that stores a product in a category."""

    async def _make(category: Category, **overrides: Any) -> Product:
        values: dict[str, Any] = {
            "name": "Widget",
            "description": "A sturdy widget",
            "price": 10.0,
            "quantity": 10,
            "sold": 0,
            "shipping": True,
        }
        values.update(overrides)
        async with session_factory() as session:
            product = Product(category_id=category.id, **values)
            session.add(product)
            await session.commit()
        return product

    return _make


@pytest_asyncio.fixture
async def books(make_category: Callable[[str], Awaitable[Category]]) -> Category:
    """A 'Books' category."""
    return await make_category("Books")


@pytest_asyncio.fixture
async def games(make_category: Callable[[str], Awaitable[Category]]) -> Category:
    """A 'Games' category."""
    return await make_category("Games")


@pytest.fixture
def fetch_product(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[Any], Awaitable[Product | None]]:
    """Read a product back in a fresh session."""

    async def _fetch(product_id: Any) -> Product | None:
        async with session_factory() as session:
            return await session.get(Product, product_id)

    return _fetch
