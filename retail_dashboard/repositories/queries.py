"""
Consultas de leitura compartilhadas pelos repositórios REST e SQL.
Cada coleção tem uma única definição de colunas, filtros e relação embutida.
"""

from __future__ import annotations

from typing import Any, Iterable, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from retail_dashboard.domain.errors import QueryError
from retail_dashboard.domain.filters import DashboardFilters, RecordQuery

SALES = "sales"
SALE_ITEMS = "sale_items"
PRODUCTS = "products"
CLIENTS = "clients"
DELIVERIES = "deliveries"
PROMOTIONS = "promotions"
CATEGORIES = "categories"

COLLECTIONS: tuple[str, ...] = (
    SALES, SALE_ITEMS, PRODUCTS, CLIENTS, DELIVERIES, PROMOTIONS, CATEGORIES,
)

_SALE_COLUMNS = (
    "id", "sale_date", "total_amount", "discount_amount", "final_amount",
    "payment_method", "payment_status", "client_id", "marked_for_delivery",
    "delivery_status", "created_at",
)

SALES_QUERY = RecordQuery(table="sales", columns=_SALE_COLUMNS)

DELIVERIES_QUERY = RecordQuery(table="sales", columns=_SALE_COLUMNS).where(
    "marked_for_delivery", "eq", True
)

SALE_ITEMS_QUERY = RecordQuery(
    table="sale_items",
    columns=("sale_id", "product_id", "product_name", "quantity", "unit_price", "subtotal"),
    embed=("sales", ("sale_date", "payment_status")),
)

CLIENTS_QUERY = RecordQuery(table="clients", columns=("id", "name", "active", "created_at"))

PROMOTIONS_QUERY = RecordQuery(
    table="promotions",
    columns=("product_id", "original_price", "promotional_price", "active"),
)

CATEGORIES_QUERY = RecordQuery(table="categories", columns=("id", "name"), order_by="name.asc")

_PRODUCTS_BASE = RecordQuery(
    table="products",
    columns=("id", "codigo", "nome", "price", "stock", "active", "category_id", "created_at"),
)


def products_query(filters: DashboardFilters) -> RecordQuery:
    condition = filters.category_condition()
    if condition is None:
        return _PRODUCTS_BASE
    return _PRODUCTS_BASE.where(*condition)


RecordT = TypeVar("RecordT", bound=BaseModel)


def parse_records(collection: str, model: Type[RecordT], rows: Iterable[Any]) -> list[RecordT]:
    """Valida as linhas brutas; uma linha malformada invalida a coleção inteira."""
    adapter = TypeAdapter(list[model])  # type: ignore[valid-type]
    try:
        return adapter.validate_python(list(rows))
    except ValidationError as exc:
        raise QueryError(
            collection,
            f"Registros inválidos ({exc.error_count()} erro(s))",
            details={"errors": exc.errors(include_url=False)[:5]},
        ) from exc
