"""
Modelos de domínio derivados.
Efêmeros: recalculados a cada refresh e nunca persistidos.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

ZERO = Decimal(0)


def safe_ratio(numerator: Decimal | int, denominator: Decimal | int) -> Decimal:
    """``numerator / denominator`` or 0 when the denominator is not positive."""
    if not denominator or denominator <= 0:
        return ZERO
    return Decimal(numerator) / Decimal(denominator)


@dataclass(frozen=True)
class PendingPayments:
    count: int = 0
    value: Decimal = ZERO


@dataclass(frozen=True)
class PaymentMethodCount:
    method: str
    count: int


@dataclass(frozen=True)
class SalesMetrics:
    """Métricas financeiras do mês corrente."""

    month_total: Decimal = ZERO
    last_month_total: Decimal = ZERO
    today_total: Decimal = ZERO
    average_ticket: Decimal = ZERO
    pending_payments: PendingPayments = field(default_factory=PendingPayments)
    total_sales_count: int = 0
    payment_methods: tuple[PaymentMethodCount, ...] = ()
    top_payment_method: Optional[str] = None
    top_payment_method_count: int = 0
    monthly_goal: Decimal = ZERO
    goal_percentage: Decimal = ZERO

    @property
    def monthly_growth(self) -> Decimal:
        """Crescimento percentual em relação ao mês anterior."""
        return safe_ratio(self.month_total - self.last_month_total, self.last_month_total) * 100

    @property
    def payment_method_histogram(self) -> dict[str, int]:
        return {entry.method: entry.count for entry in self.payment_methods}


@dataclass(frozen=True)
class DeliveryMetrics:
    """Métricas de entrega (vendas marcadas para entrega)."""

    pending_deliveries: int = 0
    scheduled_today: int = 0
    in_separation: int = 0
    delayed_deliveries: int = 0
    completed_on_time: int = 0
    delivered_count: int = 0
    total_deliveries: int = 0
    on_time_percentage: Decimal = ZERO


@dataclass(frozen=True)
class TopSellingProduct:
    product_name: str
    quantity: int


@dataclass(frozen=True)
class ProductMetrics:
    """Métricas de catálogo e estoque."""

    total_products: int = 0
    active_products: int = 0
    low_stock_products: int = 0
    out_of_stock_products: int = 0
    total_categories: int = 0
    total_stock_value: Decimal = ZERO
    active_promotions: int = 0
    total_savings_from_promotions: Decimal = ZERO
    top_selling_last_7_days: tuple[TopSellingProduct, ...] = ()
    no_movement_30_days: int = 0


@dataclass(frozen=True)
class TopClient:
    client_id: str
    client_name: str
    total_purchases: Decimal
    purchase_count: int


@dataclass(frozen=True)
class ClientMetrics:
    total_active_clients: int = 0
    clients_with_purchases_last_month: int = 0
    new_clients_this_month: int = 0
    clients_with_pending_payments: int = 0
    top_clients_by_volume: tuple[TopClient, ...] = ()


@dataclass(frozen=True)
class DailySalesPoint:
    day: date
    total: Decimal

    @property
    def day_iso(self) -> str:
        return self.day.isoformat()


@dataclass(frozen=True)
class CategorySales:
    category: str
    total: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class LowStockPoint:
    day: date
    count: int


@dataclass(frozen=True)
class LowStockTrend:
    """
    Tendência de estoque baixo dos últimos 7 dias.

    Não existe histórico diário persistido, então todos os pontos repetem a
    contagem atual e ``estimated`` fica verdadeiro.
    """

    points: tuple[LowStockPoint, ...] = ()
    estimated: bool = True


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}


@dataclass(frozen=True)
class AlertAction:
    """Referência opaca de navegação; a UI resolve o destino."""

    reference: str
    label: str


@dataclass(frozen=True)
class Alert:
    id: str
    severity: Severity
    title: str
    message: str
    count: Optional[int] = None
    action: Optional[AlertAction] = None


class DiagnosticKind(str, Enum):
    QUERY_ERROR = "query_error"
    TIMEOUT = "timeout"
    COMPUTATION_ERROR = "computation_error"


@dataclass(frozen=True)
class Diagnostic:
    """Grupo de métricas indisponível (não é um Alert)."""

    group: str
    kind: DiagnosticKind
    collections: tuple[str, ...] = ()
    message: str = ""


@dataclass(frozen=True)
class Snapshot:
    """Conjunto imutável de métricas e alertas de um refresh."""

    computed_at: datetime
    period: str
    category: str
    generation: int
    sales: SalesMetrics
    deliveries: DeliveryMetrics
    products: ProductMetrics
    clients: ClientMetrics
    daily_sales: tuple[DailySalesPoint, ...]
    category_sales: tuple[CategorySales, ...]
    low_stock_trend: LowStockTrend
    alerts: tuple[Alert, ...]
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def all_clear(self) -> bool:
        """Nenhum alerta disparado, e as regras de fato rodaram com todos os dados."""
        return not self.alerts and self.is_available("alerts")

    @property
    def unavailable_groups(self) -> frozenset[str]:
        return frozenset(d.group for d in self.diagnostics)

    def is_available(self, group: str) -> bool:
        return group not in self.unavailable_groups
