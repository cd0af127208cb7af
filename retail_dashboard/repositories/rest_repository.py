"""
Repositório de registros via API REST do banco hospedado.
Cada método é uma leitura independente; o coordenador as dispara em paralelo.
"""

from __future__ import annotations

from typing import Optional

from retail_dashboard.domain.filters import DashboardFilters, RecordQuery
from retail_dashboard.domain.records import (
    CategoryRecord,
    ClientRecord,
    ProductRecord,
    PromotionRecord,
    SaleItemRecord,
    SaleRecord,
)
from retail_dashboard.infra.rest_client import RestClient
from retail_dashboard.repositories import queries


class RestRecordRepository:
    """
    Repositório para acesso aos registros pela API REST.
    Encapsula a tradução de ``RecordQuery`` para parâmetros de consulta.
    """

    def __init__(self, client: Optional[RestClient] = None):
        self.client = client or RestClient()

    async def _select(self, collection: str, query: RecordQuery) -> list[dict]:
        return await self.client.select(
            query.table, query.to_rest_params(), collection=collection, request_id=collection
        )

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
