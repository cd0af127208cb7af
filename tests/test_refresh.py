import asyncio
from datetime import datetime
from decimal import Decimal

import pytest

from retail_dashboard.core import config
from retail_dashboard.domain.errors import InvalidFilterError
from retail_dashboard.domain.models import ClientMetrics, DiagnosticKind, ProductMetrics, SalesMetrics
from retail_dashboard.domain.users import ViewerContext
from retail_dashboard.infra import db
from retail_dashboard.repositories import SqlRecordRepository
from retail_dashboard.services import metrics
from retail_dashboard.services.refresh import GROUP_INPUTS
from tests.factories import (
    NOW,
    FakeRecordSource,
    make_category,
    make_client,
    make_item,
    make_product,
    make_promotion,
    make_sale,
    query_error,
)


def _source(**kwargs) -> FakeRecordSource:
    defaults = dict(
        sales=[
            make_sale("s1", amount=100, client_id="c1", method="pix"),
            make_sale("s2", amount=200, client_id="c2", status="pending"),
            make_sale("s3", amount=500, status="cancelled"),
            make_sale(
                "s4",
                amount=50,
                delivery=True,
                delivery_status="preparing",
                created_at=datetime(2024, 5, 10, 9, 0),
            ),
        ],
        sale_items=[
            make_item("p1", product_name="Café", quantity=2, subtotal=40),
            make_item("p2", product_name="Biscoito", quantity=1, subtotal=15),
        ],
        products=[
            make_product("p1", name="Café", stock=0, category_id="cat1"),
            make_product("p2", name="Biscoito", stock=3, category_id="cat2"),
            make_product("p3", name="Sabão", stock=20),
        ],
        clients=[make_client("c1", name="Ana"), make_client("c2", name="Bruno")],
        promotions=[make_promotion("p1", original=25, promotional=20)],
        categories=[make_category("cat1", "Bebidas"), make_category("cat2", "Mercearia")],
    )
    defaults.update(kwargs)
    return FakeRecordSource(**defaults)


def test_refresh_builds_complete_snapshot(make_coordinator):
    source = _source()
    coordinator = make_coordinator(source, monthly_goal=Decimal(1000))

    snapshot = asyncio.run(coordinator.refresh())

    assert snapshot is not None
    assert coordinator.latest is snapshot
    assert snapshot.generation == 1
    assert snapshot.computed_at == NOW
    assert snapshot.period == "month" and snapshot.category == "all"
    assert snapshot.diagnostics == ()
    assert snapshot.sales.month_total == Decimal(350)
    assert snapshot.sales.goal_percentage == Decimal(35)
    assert snapshot.deliveries.delayed_deliveries == 1
    assert snapshot.products.out_of_stock_products == 1
    assert snapshot.products.low_stock_products == 1
    assert snapshot.products.total_savings_from_promotions == Decimal(10)
    assert snapshot.clients.clients_with_pending_payments == 1
    assert len(snapshot.daily_sales) == 15
    assert [c.category for c in snapshot.category_sales] == ["Bebidas", "Mercearia"]
    assert len(snapshot.low_stock_trend.points) == 7
    assert {a.id for a in snapshot.alerts} == {
        "out-of-stock",
        "low-stock",
        "pending-payments",
        "delayed-deliveries",
    }
    assert sorted(source.calls) == sorted(
        ["sales", "sale_items", "products", "clients", "deliveries", "promotions", "categories"]
    )


def test_failed_collection_only_zeroes_dependent_groups(make_coordinator):
    coordinator = make_coordinator(_source(failures={"clients": query_error("clients")}))

    snapshot = asyncio.run(coordinator.refresh())

    assert snapshot.clients == ClientMetrics()
    assert snapshot.sales.month_total == Decimal(350)
    assert snapshot.products.active_products == 3
    assert len(snapshot.diagnostics) == 1
    diagnostic = snapshot.diagnostics[0]
    assert diagnostic.group == "clients"
    assert diagnostic.kind is DiagnosticKind.QUERY_ERROR
    assert diagnostic.collections == ("clients",)
    assert not snapshot.is_available("clients")
    assert snapshot.is_available("sales")


def test_failed_sales_skips_only_sales_based_rules(make_coordinator):
    coordinator = make_coordinator(_source(failures={"sales": query_error("sales")}))

    snapshot = asyncio.run(coordinator.refresh())

    assert snapshot.sales == SalesMetrics()
    assert snapshot.unavailable_groups == {"sales", "clients", "daily_sales", "alerts"}
    assert snapshot.daily_sales == ()
    ids = {a.id for a in snapshot.alerts}
    assert "pending-payments" not in ids
    assert {"out-of-stock", "low-stock", "delayed-deliveries"} <= ids


def test_fetch_timeout_becomes_diagnostic(make_coordinator):
    source = _source(delays={"products": 0.5})
    coordinator = make_coordinator(source, timeout=0.05)

    snapshot = asyncio.run(coordinator.refresh())

    assert snapshot is not None
    assert snapshot.products == ProductMetrics()
    kinds = {d.group: d.kind for d in snapshot.diagnostics}
    assert kinds == {
        "products": DiagnosticKind.TIMEOUT,
        "category_sales": DiagnosticKind.TIMEOUT,
        "low_stock_trend": DiagnosticKind.TIMEOUT,
        "alerts": DiagnosticKind.TIMEOUT,
    }
    assert snapshot.sales.month_total == Decimal(350)
    assert snapshot.category_sales == ()


def test_calculator_failure_yields_zero_state(make_coordinator, monkeypatch):
    def boom(*args):
        raise ArithmeticError("dados inconsistentes")

    monkeypatch.setattr(metrics, "compute_product_metrics", boom)
    coordinator = make_coordinator(_source())

    snapshot = asyncio.run(coordinator.refresh())

    assert snapshot.products == ProductMetrics()
    assert [(d.group, d.kind) for d in snapshot.diagnostics] == [("products", DiagnosticKind.COMPUTATION_ERROR)]
    assert "dados inconsistentes" in snapshot.diagnostics[0].message
    assert snapshot.sales.month_total == Decimal(350)


def test_stale_refresh_is_discarded(make_coordinator):
    coordinator = make_coordinator(_source(delays={"sales": 0.05}))

    async def overlapping():
        return await asyncio.gather(coordinator.refresh(), coordinator.refresh(period="week"))

    first, second = asyncio.run(overlapping())

    assert first is None
    assert second is not None
    assert second.generation == 2
    assert coordinator.latest is second
    assert coordinator.latest.period == "week"


def test_refresh_is_idempotent(make_coordinator):
    coordinator = make_coordinator(_source())

    first = asyncio.run(coordinator.refresh())
    second = asyncio.run(coordinator.refresh())

    assert second.generation == first.generation + 1
    assert first.sales == second.sales
    assert first.deliveries == second.deliveries
    assert first.products == second.products
    assert first.clients == second.clients
    assert first.daily_sales == second.daily_sales
    assert first.category_sales == second.category_sales
    assert first.alerts == second.alerts


def test_category_filter_scopes_product_groups(make_coordinator):
    source = _source()
    coordinator = make_coordinator(source)

    snapshot = asyncio.run(coordinator.refresh(category="cat2"))

    assert source.product_filters[-1].category == "cat2"
    assert snapshot.products.total_products == 1
    assert snapshot.products.total_savings_from_promotions == 0
    assert [(c.category, c.total) for c in snapshot.category_sales] == [("Mercearia", Decimal(15))]
    # métricas de vendas não dependem da categoria
    assert snapshot.sales.month_total == Decimal(350)


def test_uncategorized_filter(make_coordinator):
    snapshot = asyncio.run(make_coordinator(_source()).refresh(category="uncategorized"))
    assert snapshot.products.total_products == 1
    assert snapshot.category_sales == ()


def test_invalid_filter_is_rejected_before_fetching(make_coordinator):
    source = _source()
    coordinator = make_coordinator(source)

    with pytest.raises(InvalidFilterError):
        asyncio.run(coordinator.refresh(period="decade"))

    assert source.calls == []
    assert coordinator.generation == 0


def test_viewer_controls_alert_actions(make_coordinator):
    coordinator = make_coordinator(_source())

    restricted = asyncio.run(coordinator.refresh(viewer=ViewerContext.with_pages(["sales"])))
    assert all(a.action is None for a in restricted.alerts)

    unrestricted = asyncio.run(coordinator.refresh())
    actions = {a.id: a.action for a in unrestricted.alerts}
    assert actions["out-of-stock"].reference == "products:lowStock"


def test_unexpected_fetch_exception_is_isolated(make_coordinator):
    coordinator = make_coordinator(_source(failures={"clients": RuntimeError("driver exploded")}))

    snapshot = asyncio.run(coordinator.refresh())

    assert snapshot is not None
    assert snapshot.clients == ClientMetrics()
    assert [(d.group, d.kind) for d in snapshot.diagnostics] == [("clients", DiagnosticKind.QUERY_ERROR)]
    assert "driver exploded" in snapshot.diagnostics[0].message
    assert snapshot.sales.month_total == Decimal(350)


def test_unconfigured_database_yields_diagnostics(make_coordinator, monkeypatch):
    monkeypatch.setattr(config.settings, "DATABASE_URL", None)
    monkeypatch.setattr(db, "_engine", None)
    coordinator = make_coordinator(SqlRecordRepository())

    snapshot = asyncio.run(coordinator.refresh())

    assert snapshot is not None
    assert snapshot.unavailable_groups == set(GROUP_INPUTS)
    assert all("DATABASE_URL" in d.message for d in snapshot.diagnostics)
    assert not snapshot.all_clear


def test_missing_alert_inputs_is_not_all_clear(make_coordinator):
    failures = {name: query_error(name) for name in ("products", "sales", "deliveries")}
    snapshot = asyncio.run(make_coordinator(_source(failures=failures)).refresh())

    assert snapshot.alerts == ()
    assert not snapshot.is_available("alerts")
    assert not snapshot.all_clear


def test_all_clear_when_rules_ran_without_alerts(make_coordinator):
    source = _source(
        sales=[make_sale("s1", amount=100)],
        products=[make_product("p1", stock=50)],
    )
    snapshot = asyncio.run(make_coordinator(source).refresh())

    assert snapshot.alerts == ()
    assert snapshot.all_clear
