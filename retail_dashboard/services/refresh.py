"""
Coordenação de um refresh do dashboard.

Fan-out: as sete coleções são buscadas em paralelo, cada uma com seu próprio
timeout. Fan-in: com todas resolvidas (com sucesso ou não), as calculadoras e
o motor de alertas rodam em paralelo no executor padrão. Uma falha de busca só
zera os grupos que dependem da coleção afetada e vira um ``Diagnostic``.

Cada chamada a ``refresh`` recebe uma geração crescente; um resultado que
termina depois de um refresh mais novo ter sido emitido é descartado.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, tzinfo
from decimal import Decimal
from functools import partial
from typing import Any, Awaitable, Callable, Optional, Sequence

from retail_dashboard.core.config import settings
from retail_dashboard.core.logging import get_logger
from retail_dashboard.domain.errors import ComputationError, QueryError, StaleResultError
from retail_dashboard.domain.filters import DashboardFilters
from retail_dashboard.domain.models import (
    ClientMetrics,
    DeliveryMetrics,
    Diagnostic,
    DiagnosticKind,
    LowStockTrend,
    ProductMetrics,
    SalesMetrics,
    Snapshot,
)
from retail_dashboard.domain.time_window import TimeWindow
from retail_dashboard.domain.users import ViewerContext
from retail_dashboard.repositories.protocols import RecordSourceProtocol
from retail_dashboard.repositories.queries import (
    CATEGORIES,
    CLIENTS,
    DELIVERIES,
    PRODUCTS,
    PROMOTIONS,
    SALE_ITEMS,
    SALES,
)
from retail_dashboard.services import metrics
from retail_dashboard.services.alerts import AlertEngine, AlertInputs

logger = get_logger(__name__)

# grupo -> coleções de que depende
GROUP_INPUTS: dict[str, tuple[str, ...]] = {
    "sales": (SALES,),
    "deliveries": (DELIVERIES,),
    "products": (PRODUCTS, SALE_ITEMS, PROMOTIONS, CATEGORIES),
    "clients": (CLIENTS, SALES),
    "daily_sales": (SALES,),
    "category_sales": (SALE_ITEMS, PRODUCTS, CATEGORIES),
    "low_stock_trend": (PRODUCTS,),
    "alerts": (PRODUCTS, SALES, DELIVERIES),
}

ZERO_STATES: dict[str, Callable[[], Any]] = {
    "sales": SalesMetrics,
    "deliveries": DeliveryMetrics,
    "products": ProductMetrics,
    "clients": ClientMetrics,
    "daily_sales": tuple,
    "category_sales": tuple,
    "low_stock_trend": LowStockTrend,
    "alerts": tuple,
}


@dataclass(frozen=True)
class FetchOutcome:
    collection: str
    records: Optional[list] = None
    kind: Optional[DiagnosticKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is None


def _default_clock() -> datetime:
    return datetime.now(settings.business_tz)


class RefreshCoordinator:
    """Orquestra busca, cálculo e montagem do ``Snapshot``."""

    def __init__(
        self,
        source: RecordSourceProtocol,
        *,
        timeout: Optional[float] = None,
        monthly_goal: Optional[Decimal] = None,
        tz: Optional[tzinfo] = None,
        clock: Callable[[], datetime] = _default_clock,
    ):
        self.source = source
        self.timeout = settings.FETCH_TIMEOUT_SECONDS if timeout is None else timeout
        self.monthly_goal = settings.MONTHLY_GOAL if monthly_goal is None else monthly_goal
        self.tz = tz or settings.business_tz
        self._clock = clock
        self._generation = 0
        self.latest: Optional[Snapshot] = None

    @property
    def generation(self) -> int:
        return self._generation

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def _fetch(self, collection: str, fetch: Callable[[], Awaitable[list]]) -> FetchOutcome:
        try:
            records = await asyncio.wait_for(fetch(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Busca excedeu o tempo limite", collection=collection, timeout_s=self.timeout)
            return FetchOutcome(
                collection, kind=DiagnosticKind.TIMEOUT, message=f"Tempo limite de {self.timeout}s excedido"
            )
        except QueryError as exc:
            logger.warning(
                "Falha ao buscar coleção",
                collection=collection,
                status_code=exc.status_code,
                error=exc.message,
            )
            return FetchOutcome(collection, kind=DiagnosticKind.QUERY_ERROR, message=str(exc))
        except Exception as exc:
            # fonte mal configurada ou com defeito: a coleção fica indisponível, o refresh segue
            logger.warning("Erro inesperado ao buscar coleção", exc=exc, collection=collection)
            return FetchOutcome(collection, kind=DiagnosticKind.QUERY_ERROR, message=str(exc) or repr(exc))
        return FetchOutcome(collection, records=list(records))

    async def _fetch_all(self, filters: DashboardFilters) -> dict[str, FetchOutcome]:
        fetches: dict[str, Callable[[], Awaitable[list]]] = {
            SALES: self.source.fetch_sales,
            SALE_ITEMS: self.source.fetch_sale_items,
            PRODUCTS: partial(self.source.fetch_products, filters),
            CLIENTS: self.source.fetch_clients,
            DELIVERIES: self.source.fetch_deliveries,
            PROMOTIONS: self.source.fetch_promotions,
            CATEGORIES: self.source.fetch_categories,
        }
        outcomes = await asyncio.gather(*(self._fetch(name, fetch) for name, fetch in fetches.items()))
        return {outcome.collection: outcome for outcome in outcomes}

    # ------------------------------------------------------------------
    # Fan-in
    # ------------------------------------------------------------------

    @staticmethod
    def _fetch_diagnostics(outcomes: dict[str, FetchOutcome]) -> dict[str, Diagnostic]:
        diagnostics: dict[str, Diagnostic] = {}
        for group, inputs in GROUP_INPUTS.items():
            failed = [outcomes[name] for name in inputs if not outcomes[name].ok]
            if not failed:
                continue
            diagnostics[group] = Diagnostic(
                group=group,
                kind=failed[0].kind,  # type: ignore[arg-type]
                collections=tuple(outcome.collection for outcome in failed),
                message="; ".join(outcome.message for outcome in failed),
            )
        return diagnostics

    async def _compute(self, group: str, calculator: Callable[..., Any], *args) -> tuple[Any, Optional[Diagnostic]]:
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, partial(calculator, *args))
        except Exception as exc:
            error = ComputationError(group, exc)
            logger.error("Falha ao calcular grupo de métricas", exc=exc, group=group)
            return ZERO_STATES[group](), Diagnostic(
                group=group, kind=DiagnosticKind.COMPUTATION_ERROR, message=str(error)
            )
        return result, None

    def _calculators(
        self,
        records: dict[str, Optional[list]],
        filters: DashboardFilters,
        window: TimeWindow,
        engine: AlertEngine,
    ) -> dict[str, tuple[Callable[..., Any], tuple]]:
        products = records[PRODUCTS]
        sale_items = records[SALE_ITEMS]
        promotions = records[PROMOTIONS]
        if filters.scoped_to_category and products is not None:
            sale_items, promotions = metrics.scope_to_products(products, sale_items or [], promotions or [])

        def to_tuple(calculator: Callable[..., Sequence]) -> Callable[..., tuple]:
            return lambda *args: tuple(calculator(*args))

        return {
            "sales": (metrics.compute_sales_metrics, (records[SALES], window, self.monthly_goal)),
            "deliveries": (metrics.compute_delivery_metrics, (records[DELIVERIES], window)),
            "products": (
                metrics.compute_product_metrics,
                (products, sale_items, promotions, records[CATEGORIES], window),
            ),
            "clients": (metrics.compute_client_metrics, (records[CLIENTS], records[SALES], window)),
            "daily_sales": (to_tuple(metrics.compute_daily_sales), (records[SALES], window, filters.period)),
            "category_sales": (
                to_tuple(metrics.compute_category_breakdown),
                (sale_items, products, records[CATEGORIES], window, window.period_range(filters.period)),
            ),
            "low_stock_trend": (metrics.compute_low_stock_trend, (products, window)),
            "alerts": (
                lambda inputs: tuple(engine.evaluate(inputs)),
                (
                    AlertInputs(
                        window=window,
                        products=products,
                        sales=records[SALES],
                        deliveries=records[DELIVERIES],
                    ),
                ),
            ),
        }

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------

    async def refresh(
        self,
        period: str = "month",
        category: str = "all",
        viewer: Optional[ViewerContext] = None,
    ) -> Optional[Snapshot]:
        """
        Executa um refresh completo.

        Retorna o novo ``Snapshot`` ou ``None`` quando outro refresh foi
        emitido enquanto este rodava (resultado obsoleto).
        """
        filters = DashboardFilters(period=period, category=category)
        self._generation += 1
        generation = self._generation
        log = logger.bind(generation=generation, period=filters.period, category=filters.category)
        window = TimeWindow(now=self._clock().astimezone(self.tz))
        engine = AlertEngine(viewer=viewer or ViewerContext.unrestricted())

        outcomes = await self._fetch_all(filters)
        records = {name: outcome.records for name, outcome in outcomes.items()}
        diagnostics = self._fetch_diagnostics(outcomes)

        # O grupo de alertas só perde as regras das coleções ausentes; os demais zeram.
        calculators = self._calculators(records, filters, window, engine)
        runnable = {
            group: entry for group, entry in calculators.items() if group == "alerts" or group not in diagnostics
        }
        results = await asyncio.gather(
            *(self._compute(group, calculator, *args) for group, (calculator, args) in runnable.items())
        )

        values: dict[str, Any] = {group: ZERO_STATES[group]() for group in calculators}
        for group, (value, diagnostic) in zip(runnable, results):
            values[group] = value
            if diagnostic is not None:
                diagnostics[group] = diagnostic

        snapshot = Snapshot(
            computed_at=self._clock().astimezone(self.tz),
            period=filters.period,
            category=filters.category,
            generation=generation,
            sales=values["sales"],
            deliveries=values["deliveries"],
            products=values["products"],
            clients=values["clients"],
            daily_sales=values["daily_sales"],
            category_sales=values["category_sales"],
            low_stock_trend=values["low_stock_trend"],
            alerts=values["alerts"],
            diagnostics=tuple(diagnostics[group] for group in GROUP_INPUTS if group in diagnostics),
        )

        try:
            self._publish(snapshot)
        except StaleResultError as exc:
            log.debug("Resultado de refresh descartado", latest=exc.latest)
            return None

        log.info("Refresh concluído", alerts=len(snapshot.alerts), diagnostics=len(snapshot.diagnostics))
        return snapshot

    def _publish(self, snapshot: Snapshot) -> None:
        if snapshot.generation != self._generation:
            raise StaleResultError(snapshot.generation, self._generation)
        self.latest = snapshot
