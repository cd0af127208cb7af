"""
Repositório de registros via SQL direto no banco hospedado.
As consultas síncronas do SQLAlchemy rodam no executor padrão para não bloquear o loop.
"""

from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from retail_dashboard.core.config import settings
from retail_dashboard.domain.errors import QueryError
from retail_dashboard.domain.filters import DashboardFilters, RecordQuery
from retail_dashboard.domain.records import (
    CategoryRecord,
    ClientRecord,
    ProductRecord,
    PromotionRecord,
    SaleItemRecord,
    SaleRecord,
)
from retail_dashboard.infra.db import fetch_all
from retail_dashboard.repositories import queries

_EMBED_PREFIX = "embed__"

FetchAll = Callable[..., list[dict]]


def build_select(query: RecordQuery, alias: str = "t") -> tuple[str, dict]:
    """
    Monta o SELECT de uma ``RecordQuery``.

    A relação embutida vira um LEFT JOIN com colunas prefixadas, renestadas
    depois em ``_nest_embedded``.
    """
    columns = [f"{alias}.{column}" for column in query.columns]
    joins = ""
    if query.embed:
        relation, fields = query.embed
        columns += [f"e.{field} AS {_EMBED_PREFIX}{field}" for field in fields]
        # sale_items -> sales é a única relação embutida usada pelo dashboard
        joins = f" LEFT JOIN {relation} e ON e.id = {alias}.sale_id"
    base_query = f"SELECT {', '.join(columns)} FROM {query.table} {alias}{joins}"
    return query.apply_to_query(base_query, alias=alias)


def _nest_embedded(query: RecordQuery, row: dict) -> dict:
    if not query.embed:
        return row
    relation, fields = query.embed
    flat = {k: v for k, v in row.items() if not k.startswith(_EMBED_PREFIX)}
    embedded = {field: row.get(f"{_EMBED_PREFIX}{field}") for field in fields}
    flat[relation] = None if all(v is None for v in embedded.values()) else embedded
    return flat


class SqlRecordRepository:
    """
    Repositório para acesso aos registros via SQLAlchemy.
    Usa as mesmas ``RecordQuery`` do repositório REST.
    """

    def __init__(self, fetcher: Optional[FetchAll] = None, timeout_ms: Optional[int] = None):
        self._fetch_all = fetcher or fetch_all
        self.timeout_ms = timeout_ms or int(settings.FETCH_TIMEOUT_SECONDS * 1000)

    def _run(self, collection: str, query: RecordQuery) -> list[dict]:
        sql, params = build_select(query)
        try:
            rows = self._fetch_all(sql, params, timeout_ms=self.timeout_ms)
        except SQLAlchemyError as exc:
            raise QueryError(collection, f"Erro SQL: {exc}") from exc
        except RuntimeError as exc:
            # engine não configurado (DATABASE_URL ausente)
            raise QueryError(collection, str(exc)) from exc
        return [_nest_embedded(query, row) for row in rows]

    async def _select(self, collection: str, query: RecordQuery) -> list[dict[str, Any]]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(self._run, collection, query))

    async def fetch_sales(self) -> list[SaleRecord]:
        rows = await self._select(queries.SALES, queries.SALES_QUERY)
        return queries.parse_records(queries.SALES, SaleRecord, rows)

    async def fetch_sale_items(self) -> list[SaleItemRecord]:
        rows = await self._select(queries.SALE_ITEMS, queries.SALE_ITEMS_QUERY)
        return queries.parse_records(queries.SALE_ITEMS, SaleItemRecord, rows)

    async def fetch_products(self, filters: DashboardFilters) -> list[ProductRecord]:
        rows = await self._select(queries.PRODUCTS, queries.products_query(filters))
        return queries.parse_records(queries.PRODUCTS, ProductRecord, rows)

    async def fetch_clients(self) -> list[ClientRecord]:
        rows = await self._select(queries.CLIENTS, queries.CLIENTS_QUERY)
        return queries.parse_records(queries.CLIENTS, ClientRecord, rows)

    async def fetch_deliveries(self) -> list[SaleRecord]:
        rows = await self._select(queries.DELIVERIES, queries.DELIVERIES_QUERY)
        return queries.parse_records(queries.DELIVERIES, SaleRecord, rows)

    async def fetch_promotions(self) -> list[PromotionRecord]:
        rows = await self._select(queries.PROMOTIONS, queries.PROMOTIONS_QUERY)
        return queries.parse_records(queries.PROMOTIONS, PromotionRecord, rows)

    async def fetch_categories(self) -> list[CategoryRecord]:
        rows = await self._select(queries.CATEGORIES, queries.CATEGORIES_QUERY)
        return queries.parse_records(queries.CATEGORIES, CategoryRecord, rows)
