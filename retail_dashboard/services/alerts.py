"""
Avaliação das regras de alerta do dashboard.

Cada regra é independente e lê apenas o estado atual dos registros; não há
memória entre refreshes. Uma coleção ``None`` significa que a busca falhou e
as regras que dependem dela são puladas.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Optional, Sequence

from retail_dashboard.domain.models import Alert, AlertAction, Severity
from retail_dashboard.domain.records import (
    PROBLEM_DELIVERY_STATUSES,
    TERMINAL_DELIVERY_STATUSES,
    DeliveryStatus,
    PaymentStatus,
    ProductRecord,
    SaleRecord,
)
from retail_dashboard.domain.time_window import TimeWindow
from retail_dashboard.domain.users import ViewerContext
from retail_dashboard.services.metrics import is_low_stock, is_out_of_stock
from retail_dashboard.services.report_service import format_guarani

PRODUCTS_PAGE = "products"
LOW_STOCK_ACTION = AlertAction(reference="products:lowStock", label="Ver Produtos")


@dataclass(frozen=True)
class AlertInputs:
    """Coleções disponíveis para as regras; ``None`` = indisponível."""

    window: TimeWindow
    products: Optional[Sequence[ProductRecord]] = None
    sales: Optional[Sequence[SaleRecord]] = None
    deliveries: Optional[Sequence[SaleRecord]] = None


@dataclass
class AlertEngine:
    viewer: ViewerContext = field(default_factory=ViewerContext.unrestricted)

    def _products_action(self) -> Optional[AlertAction]:
        return LOW_STOCK_ACTION if self.viewer.can_open(PRODUCTS_PAGE) else None

    # ------------------------------------------------------------------
    # Regras
    # ------------------------------------------------------------------

    def out_of_stock(self, inputs: AlertInputs) -> Optional[Alert]:
        matches = [p for p in inputs.products or () if is_out_of_stock(p)]
        if not matches:
            return None
        return Alert(
            id="out-of-stock",
            severity=Severity.CRITICAL,
            title="Produtos Sem Estoque",
            message=f"{len(matches)} produto(s) ativo(s) estão com estoque zerado e não podem ser vendidos.",
            count=len(matches),
            action=self._products_action(),
        )

    def pending_payments(self, inputs: AlertInputs) -> Optional[Alert]:
        matches = [s for s in inputs.sales or () if s.payment_status is PaymentStatus.PENDING]
        if not matches:
            return None
        total = sum((s.final_amount for s in matches), Decimal(0))
        return Alert(
            id="pending-payments",
            severity=Severity.WARNING,
            title="Pagamentos Pendentes",
            message=(
                f"{len(matches)} venda(s) com pagamento pendente no valor total de {format_guarani(total)}."
            ),
            count=len(matches),
        )

    def delivery_problems(self, inputs: AlertInputs) -> Optional[Alert]:
        matches = [
            d for d in inputs.deliveries or ()
            if d.marked_for_delivery and d.delivery_status in PROBLEM_DELIVERY_STATUSES
        ]
        if not matches:
            return None
        return Alert(
            id="delivery-problems",
            severity=Severity.CRITICAL,
            title="Entregas com Problemas",
            message=f"{len(matches)} entrega(s) cancelada(s) ou com falta de estoque necessitam atenção.",
            count=len(matches),
        )

    def delayed_deliveries(self, inputs: AlertInputs) -> Optional[Alert]:
        matches = [
            d for d in inputs.deliveries or ()
            if d.marked_for_delivery
            and d.delivery_status not in TERMINAL_DELIVERY_STATUSES
            and inputs.window.is_overdue(d.created_at)
        ]
        if not matches:
            return None
        return Alert(
            id="delayed-deliveries",
            severity=Severity.WARNING,
            title="Entregas Atrasadas",
            message=f"{len(matches)} entrega(s) com mais de 2 dias aguardando conclusão.",
            count=len(matches),
        )

    def low_stock(self, inputs: AlertInputs) -> Optional[Alert]:
        matches = [p for p in inputs.products or () if is_low_stock(p)]
        if not matches:
            return None
        return Alert(
            id="low-stock",
            severity=Severity.WARNING,
            title="Estoque Baixo",
            message=f"{len(matches)} produto(s) com estoque baixo (5 ou menos unidades).",
            count=len(matches),
            action=self._products_action(),
        )

    def unread_deliveries(self, inputs: AlertInputs) -> Optional[Alert]:
        matches = [
            d for d in inputs.deliveries or ()
            if d.marked_for_delivery and d.delivery_status is DeliveryStatus.UNREAD
        ]
        if not matches:
            return None
        return Alert(
            id="unread-deliveries",
            severity=Severity.INFO,
            title="Novas Entregas",
            message=f"{len(matches)} nova(s) entrega(s) não lida(s) aguardando processamento.",
            count=len(matches),
        )

    def _rules(self) -> list[tuple[str, Callable[[AlertInputs], Optional[Alert]]]]:
        # (coleção exigida, regra)
        return [
            ("products", self.out_of_stock),
            ("sales", self.pending_payments),
            ("deliveries", self.delivery_problems),
            ("deliveries", self.delayed_deliveries),
            ("products", self.low_stock),
            ("deliveries", self.unread_deliveries),
        ]

    def evaluate(self, inputs: AlertInputs) -> list[Alert]:
        """Alertas disparados, críticos primeiro; dentro da severidade, na ordem das regras."""
        alerts: list[Alert] = []
        for required, rule in self._rules():
            if getattr(inputs, required) is None:
                continue
            alert = rule(inputs)
            if alert is not None:
                alerts.append(alert)
        return sorted(alerts, key=lambda alert: alert.severity.rank)
