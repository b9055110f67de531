"""Tests for product listing and search queries."""

import operator
import uuid
from collections.abc import Awaitable, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import operators

from product_service.exceptions import FieldValidationError
from product_service.models import Category, Product
from product_service.services.catalog import (
    ALL_CATEGORIES,
    ListingOptions,
    SortOrder,
    build_filter_clauses,
    escape_like,
    list_product_categories,
    list_products,
    list_related_products,
    name_search_query,
    parse_bool,
    resolve_sort,
    search_products,
    search_products_by_name,
)

ProductFactory = Callable[..., Awaitable[Product]]


class TestParseBool:
    """Tests for boolean form values."""

    @pytest.mark.parametrize("value", [True, "true", "TRUE", "1", "yes", " on "])
    def test_true_values(self, value: object) -> None:
        """Test spellings that mean true."""
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", [False, "false", "0", "no", "off"])
    def test_false_values(self, value: object) -> None:
        """Test spellings that mean false."""
        assert parse_bool(value) is False

    def test_unknown_value_raises(self) -> None:
        """Test that other values are rejected."""
        with pytest.raises(ValueError):
            parse_bool("maybe")


class TestResolveSort:
    """Tests for sort parameter translation."""

    def test_sort_by_id_has_single_clause(self) -> None:
        """Test that sorting by id needs no tie-breaker."""
        clauses = resolve_sort("_id", SortOrder.ASC)
        assert len(clauses) == 1
        assert str(clauses[0]) == "products.id ASC"

    def test_sort_desc_adds_id_tie_breaker(self) -> None:
        """Test descending sort with the id tie-breaker."""
        clauses = resolve_sort("sold", SortOrder.DESC)
        assert [str(c) for c in clauses] == ["products.sold DESC", "products.id ASC"]

    def test_camel_case_alias(self) -> None:
        """Test that createdAt maps to the created_at column."""
        clauses = resolve_sort("createdAt", SortOrder.DESC)
        assert str(clauses[0]) == "products.created_at DESC"

    def test_unknown_column_raises(self) -> None:
        """Test that unknown sort columns are rejected."""
        with pytest.raises(FieldValidationError, match="Cannot sort by 'photo_data'"):
            resolve_sort("photo_data", SortOrder.ASC)


class TestBuildFilterClauses:
    """Tests for filter mapping translation."""

    def test_no_filters(self) -> None:
        """Test that missing or empty filters add no clauses."""
        assert build_filter_clauses(None) == []
        assert build_filter_clauses({}) == []

    def test_empty_value_list_is_skipped(self) -> None:
        """Test that a key with no values adds no constraint."""
        assert build_filter_clauses({"price": [], "category": []}) == []

    def test_price_range(self) -> None:
        """Test that price becomes an inclusive range."""
        low, high = build_filter_clauses({"price": [10, 50]})
        assert low.left.name == "price"
        assert low.operator is operator.ge
        assert low.right.value == 10.0
        assert high.operator is operator.le
        assert high.right.value == 50.0

    def test_category_membership(self) -> None:
        """Test that category becomes a membership constraint."""
        first, second = uuid.uuid4(), uuid.uuid4()
        (clause,) = build_filter_clauses({"category": [str(first), str(second)]})
        assert clause.left.name == "category_id"
        assert clause.operator is operators.in_op
        assert clause.right.value == [first, second]

    def test_price_and_category_combined(self) -> None:
        """Test that each key contributes its own clauses."""
        category_id = uuid.uuid4()
        clauses = build_filter_clauses(
            {"price": [10, 50], "category": [str(category_id)]}
        )
        assert len(clauses) == 3

    def test_shipping_membership(self) -> None:
        """Test that shipping values are parsed as booleans."""
        (clause,) = build_filter_clauses({"shipping": ["true"]})
        assert clause.left.name == "shipping"
        assert clause.right.value == [True]

    def test_unknown_key_raises(self) -> None:
        """Test that unknown filter keys are rejected."""
        with pytest.raises(FieldValidationError, match="Cannot filter by 'color'"):
            build_filter_clauses({"color": ["red"]})

    def test_malformed_range_raises(self) -> None:
        """Test that a range needs exactly two values."""
        with pytest.raises(FieldValidationError, match="exactly two values"):
            build_filter_clauses({"price": [10]})

    def test_invalid_value_raises(self) -> None:
        """Test that unconvertible values are rejected."""
        with pytest.raises(FieldValidationError, match="Invalid value for filter 'category'"):
            build_filter_clauses({"category": ["not-a-uuid"]})


class TestNameSearchQuery:
    """Tests for the name search query builder."""

    def test_escape_like(self) -> None:
        """Test that LIKE wildcards are escaped."""
        assert escape_like("50%_off\\") == "50\\%\\_off\\\\"

    def test_no_term_has_no_where_clause(self) -> None:
        """Test that an absent term matches every product."""
        query = name_search_query(None)
        assert query.whereclause is None

    def test_all_categories_is_not_a_filter(self) -> None:
        """Test that the 'All' sentinel does not restrict the category."""
        query = name_search_query(None, ALL_CATEGORIES)
        assert query.whereclause is None

    def test_invalid_category_raises(self) -> None:
        """Test that a malformed category id is rejected."""
        with pytest.raises(FieldValidationError, match="Invalid category"):
            name_search_query("book", "nope")


class TestCatalogQueries:
    """Tests running the catalog queries against a database."""

    @pytest.mark.asyncio
    async def test_list_products_sorted_and_capped(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        books: Category,
        make_product: ProductFactory,
    ) -> None:
        """Test best-seller style listing."""
        for sold in (5, 50, 0, 20, 35):
            await make_product(books, name=f"Book {sold}", sold=sold)

        options = ListingOptions(sort_by="sold", order=SortOrder.DESC, limit=4)
        async with session_factory() as session:
            products = await list_products(session, options)
            assert [p.sold for p in products] == [50, 35, 20, 5]
            assert all(p.category.name == "Books" for p in products)

    @pytest.mark.asyncio
    async def test_list_related_products(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        books: Category,
        games: Category,
        make_product: ProductFactory,
    ) -> None:
        """Test that related products share the category and exclude the product."""
        product = await make_product(books, name="Dune")
        await make_product(books, name="Emma")
        await make_product(books, name="Ulysses")
        await make_product(games, name="Chess")

        async with session_factory() as session:
            related = await list_related_products(session, product, limit=6)
            assert {p.name for p in related} == {"Emma", "Ulysses"}
            assert all(p.category.name == "Books" for p in related)

    @pytest.mark.asyncio
    async def test_list_related_products_respects_limit(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        books: Category,
        make_product: ProductFactory,
    ) -> None:
        """Test that the related listing is capped."""
        product = await make_product(books, name="Dune")
        for i in range(4):
            await make_product(books, name=f"Other {i}")

        async with session_factory() as session:
            related = await list_related_products(session, product, limit=2)
            assert len(related) == 2

    @pytest.mark.asyncio
    async def test_list_product_categories_is_distinct(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        books: Category,
        games: Category,
        make_category: Callable[[str], Awaitable[Category]],
        make_product: ProductFactory,
    ) -> None:
        """Test that each used category appears once and unused ones not at all."""
        await make_category("Unused")
        await make_product(books, name="Dune")
        await make_product(books, name="Emma")
        await make_product(games, name="Chess")

        async with session_factory() as session:
            categories = await list_product_categories(session)
            assert sorted(categories) == sorted([books.id, games.id])

    @pytest.mark.asyncio
    async def test_search_products_price_and_category(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        books: Category,
        games: Category,
        make_product: ProductFactory,
    ) -> None:
        """Test that results satisfy every filter."""
        await make_product(books, name="Cheap", price=5.0)
        await make_product(books, name="Mid", price=25.0)
        await make_product(books, name="Edge", price=50.0)
        await make_product(books, name="Pricey", price=80.0)
        await make_product(games, name="Game", price=25.0)

        filters = {"price": [10, 50], "category": [str(books.id)]}
        options = ListingOptions(sort_by="price", order=SortOrder.ASC, limit=100)
        async with session_factory() as session:
            products = await search_products(session, filters, options)
            assert [p.name for p in products] == ["Mid", "Edge"]

    @pytest.mark.asyncio
    async def test_search_products_skip_and_limit(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        books: Category,
        make_product: ProductFactory,
    ) -> None:
        """Test "load more" pagination."""
        for price in (1.0, 2.0, 3.0, 4.0, 5.0):
            await make_product(books, name=f"P{int(price)}", price=price)

        options = ListingOptions(sort_by="price", order=SortOrder.ASC, limit=2, skip=2)
        async with session_factory() as session:
            products = await search_products(session, {"price": []}, options)
            assert [p.name for p in products] == ["P3", "P4"]

    @pytest.mark.asyncio
    async def test_search_by_name_is_case_insensitive(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        books: Category,
        games: Category,
        make_product: ProductFactory,
    ) -> None:
        """Test substring matching regardless of case and category scoping."""
        await make_product(books, name="Python Tricks")
        await make_product(books, name="Learning python")
        await make_product(games, name="Python Quest")
        await make_product(books, name="Dune")

        async with session_factory() as session:
            everywhere = await search_products_by_name(session, "PYTHON", ALL_CATEGORIES)
            assert len(everywhere) == 3

            in_books = await search_products_by_name(session, "python", str(books.id))
            assert {p.name for p in in_books} == {"Python Tricks", "Learning python"}

    @pytest.mark.asyncio
    async def test_search_by_name_treats_wildcards_literally(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        books: Category,
        make_product: ProductFactory,
    ) -> None:
        """Test that % in the term only matches a literal percent sign."""
        await make_product(books, name="100% Cotton")
        await make_product(books, name="Wool")

        async with session_factory() as session:
            products = await search_products_by_name(session, "%")
            assert [p.name for p in products] == ["100% Cotton"]

    @pytest.mark.asyncio
    async def test_search_by_name_without_term(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        books: Category,
        games: Category,
        make_product: ProductFactory,
    ) -> None:
        """Test that an absent term lists the category unfiltered."""
        await make_product(books, name="Dune")
        await make_product(games, name="Chess")

        async with session_factory() as session:
            assert len(await search_products_by_name(session, None)) == 2
            in_games = await search_products_by_name(session, "", str(games.id))
            assert [p.name for p in in_games] == ["Chess"]
