import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, text

from retail_dashboard.domain.errors import QueryError
from retail_dashboard.domain.filters import DashboardFilters
from retail_dashboard.infra import db
from retail_dashboard.repositories import SqlRecordRepository, queries
from retail_dashboard.repositories.sql_repository import build_select

SCHEMA = [
    """CREATE TABLE sales (
        id TEXT PRIMARY KEY, sale_date TEXT, total_amount NUMERIC, discount_amount NUMERIC,
        final_amount NUMERIC, payment_method TEXT, payment_status TEXT, client_id TEXT,
        marked_for_delivery BOOLEAN, delivery_status TEXT, created_at TEXT
    )""",
    """CREATE TABLE sale_items (
        id INTEGER PRIMARY KEY, sale_id TEXT, product_id TEXT, product_name TEXT,
        quantity INTEGER, unit_price NUMERIC, subtotal NUMERIC
    )""",
    """CREATE TABLE products (
        id INTEGER PRIMARY KEY, codigo TEXT, nome TEXT, price NUMERIC, stock INTEGER,
        active BOOLEAN, category_id TEXT, created_at TEXT
    )""",
    "CREATE TABLE categories (id TEXT PRIMARY KEY, name TEXT)",
]

ROWS = [
    "INSERT INTO sales VALUES ('s1', '2024-05-14T10:00:00', 100, 0, 100, 'pix', 'paid', 'c1', 0, NULL, '2024-05-14T10:00:00')",
    "INSERT INTO sales VALUES ('s2', '2024-05-13T10:00:00', 50, 0, 50, 'cash', 'pending', NULL, 1, 'unread', '2024-05-13T10:00:00')",
    "INSERT INTO sale_items VALUES (1, 's1', '1', 'Café', 2, 25, 50)",
    "INSERT INTO sale_items VALUES (2, 'ghost', '2', 'Leite', 1, 8, 8)",
    "INSERT INTO products VALUES (1, 'A1', 'Café', 25, 4, 1, 'cat1', NULL)",
    "INSERT INTO products VALUES (2, 'B2', 'Leite', 8, 0, 1, NULL, NULL)",
    "INSERT INTO categories VALUES ('cat2', 'Limpeza')",
    "INSERT INTO categories VALUES ('cat1', 'Bebidas')",
]


@pytest.fixture
def repository(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'store.db'}", future=True, connect_args={"check_same_thread": False}
    )
    with engine.begin() as conn:
        for statement in SCHEMA + ROWS:
            conn.execute(text(statement))
    db.set_engine(engine)
    yield SqlRecordRepository(timeout_ms=1000)
    db.set_engine(None)
    engine.dispose()


def test_build_select_joins_embedded_relation():
    sql, params = build_select(queries.SALE_ITEMS_QUERY)
    assert "LEFT JOIN sales e ON e.id = t.sale_id" in sql
    assert "e.payment_status AS embed__payment_status" in sql
    assert params == {}


def test_build_select_applies_conditions_and_order():
    sql, params = build_select(queries.products_query(DashboardFilters(category="cat1")))
    assert sql.endswith("WHERE t.category_id = :p0_category_id")
    assert params == {"p0_category_id": "cat1"}

    sql, _ = build_select(queries.CATEGORIES_QUERY)
    assert sql.endswith("ORDER BY t.name ASC")


def test_sale_items_are_nested(repository):
    items = asyncio.run(repository.fetch_sale_items())
    by_sale = {item.sale_id: item for item in items}
    assert by_sale["s1"].sale.payment_status.value == "paid"
    assert by_sale["s1"].counts_as_sold
    assert by_sale["ghost"].sale is None


def test_products_by_category(repository):
    everything = asyncio.run(repository.fetch_products(DashboardFilters()))
    scoped = asyncio.run(repository.fetch_products(DashboardFilters(category="cat1")))
    orphans = asyncio.run(repository.fetch_products(DashboardFilters(category="uncategorized")))

    assert {p.id for p in everything} == {"1", "2"}
    assert [p.name for p in scoped] == ["Café"]
    assert scoped[0].price == Decimal(25)
    assert [p.code for p in orphans] == ["B2"]


def test_deliveries_only_marked_sales(repository):
    deliveries = asyncio.run(repository.fetch_deliveries())
    assert [d.id for d in deliveries] == ["s2"]
    assert deliveries[0].marked_for_delivery is True


def test_categories_sorted_by_name(repository):
    categories = asyncio.run(repository.fetch_categories())
    assert [c.name for c in categories] == ["Bebidas", "Limpeza"]


def test_missing_table_is_query_error(repository):
    with pytest.raises(QueryError) as info:
        asyncio.run(repository.fetch_clients())
    assert info.value.collection == "clients"
