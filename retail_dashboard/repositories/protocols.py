"""Repository protocol definitions used by the refresh coordinator."""

from __future__ import annotations

from typing import Protocol, Sequence

from retail_dashboard.domain.filters import DashboardFilters
from retail_dashboard.domain.records import (
    CategoryRecord,
    ClientRecord,
    ProductRecord,
    PromotionRecord,
    SaleItemRecord,
    SaleRecord,
)


class RecordSourceProtocol(Protocol):
    """Read-only contract over the record collections the dashboard needs."""

    async def fetch_sales(self) -> Sequence[SaleRecord]: ...

    async def fetch_sale_items(self) -> Sequence[SaleItemRecord]: ...

    async def fetch_products(self, filters: DashboardFilters) -> Sequence[ProductRecord]: ...

    async def fetch_clients(self) -> Sequence[ClientRecord]: ...

    async def fetch_deliveries(self) -> Sequence[SaleRecord]: ...

    async def fetch_promotions(self) -> Sequence[PromotionRecord]: ...

    async def fetch_categories(self) -> Sequence[CategoryRecord]: ...
