"""Dashboard endpoints: snapshot JSON and CSV export."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel

from retail_dashboard.core.cache import etag_json
from retail_dashboard.core.security import get_viewer
from retail_dashboard.domain.errors import InvalidFilterError
from retail_dashboard.domain.filters import ALL_CATEGORIES
from retail_dashboard.domain.models import Snapshot
from retail_dashboard.domain.users import ViewerContext
from retail_dashboard.services.dependencies import get_coordinator
from retail_dashboard.services.refresh import RefreshCoordinator
from retail_dashboard.services.report_service import (
    last_updated_label,
    payment_method_label,
    period_label,
    snapshot_to_csv,
)


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


# -----------------------------------------------------------------------------
# Response Models
# -----------------------------------------------------------------------------


class PendingPaymentsOut(BaseModel):
    count: int
    value: float


class PaymentMethodOut(BaseModel):
    method: str
    label: str
    count: int


class SalesMetricsOut(BaseModel):
    month_total: float
    last_month_total: float
    today_total: float
    average_ticket: float
    monthly_growth: float
    pending_payments: PendingPaymentsOut
    total_sales_count: int
    payment_methods: List[PaymentMethodOut]
    top_payment_method: Optional[str]
    top_payment_method_count: int
    monthly_goal: float
    goal_percentage: float


class DeliveryMetricsOut(BaseModel):
    pending_deliveries: int
    scheduled_today: int
    in_separation: int
    delayed_deliveries: int
    completed_on_time: int
    delivered_count: int
    total_deliveries: int
    on_time_percentage: float


class TopSellingProductOut(BaseModel):
    product_name: str
    quantity: int


class ProductMetricsOut(BaseModel):
    total_products: int
    active_products: int
    low_stock_products: int
    out_of_stock_products: int
    total_categories: int
    total_stock_value: float
    active_promotions: int
    total_savings_from_promotions: float
    top_selling_last_7_days: List[TopSellingProductOut]
    no_movement_30_days: int


class TopClientOut(BaseModel):
    client_id: str
    client_name: str
    total_purchases: float
    purchase_count: int


class ClientMetricsOut(BaseModel):
    total_active_clients: int
    clients_with_purchases_last_month: int
    new_clients_this_month: int
    clients_with_pending_payments: int
    top_clients_by_volume: List[TopClientOut]


class DailySalesOut(BaseModel):
    day: str
    total: float


class CategorySalesOut(BaseModel):
    category: str
    total: float
    percentage: float


class LowStockPointOut(BaseModel):
    day: str
    count: int


class LowStockTrendOut(BaseModel):
    estimated: bool
    points: List[LowStockPointOut]


class AlertActionOut(BaseModel):
    reference: str
    label: str


class AlertOut(BaseModel):
    id: str
    severity: str
    title: str
    message: str
    count: Optional[int] = None
    action: Optional[AlertActionOut] = None


class DiagnosticOut(BaseModel):
    group: str
    kind: str
    collections: List[str]
    message: str


class SnapshotResponse(BaseModel):
    """Snapshot do dashboard serializado para a UI."""
    computed_at: str
    last_updated: str
    generation: int
    period: str
    period_label: str
    category: str
    all_clear: bool
    sales: SalesMetricsOut
    deliveries: DeliveryMetricsOut
    products: ProductMetricsOut
    clients: ClientMetricsOut
    daily_sales: List[DailySalesOut]
    category_sales: List[CategorySalesOut]
    low_stock_trend: LowStockTrendOut
    alerts: List[AlertOut]
    diagnostics: List[DiagnosticOut]


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _sales_out(snapshot: Snapshot) -> SalesMetricsOut:
    s = snapshot.sales
    return SalesMetricsOut(
        month_total=float(s.month_total),
        last_month_total=float(s.last_month_total),
        today_total=float(s.today_total),
        average_ticket=float(s.average_ticket),
        monthly_growth=float(s.monthly_growth),
        pending_payments=PendingPaymentsOut(count=s.pending_payments.count, value=float(s.pending_payments.value)),
        total_sales_count=s.total_sales_count,
        payment_methods=[
            PaymentMethodOut(method=m.method, label=payment_method_label(m.method), count=m.count)
            for m in s.payment_methods
        ],
        top_payment_method=s.top_payment_method,
        top_payment_method_count=s.top_payment_method_count,
        monthly_goal=float(s.monthly_goal),
        goal_percentage=float(s.goal_percentage),
    )


def _products_out(snapshot: Snapshot) -> ProductMetricsOut:
    p = snapshot.products
    return ProductMetricsOut(
        total_products=p.total_products,
        active_products=p.active_products,
        low_stock_products=p.low_stock_products,
        out_of_stock_products=p.out_of_stock_products,
        total_categories=p.total_categories,
        total_stock_value=float(p.total_stock_value),
        active_promotions=p.active_promotions,
        total_savings_from_promotions=float(p.total_savings_from_promotions),
        top_selling_last_7_days=[
            TopSellingProductOut(product_name=t.product_name, quantity=t.quantity) for t in p.top_selling_last_7_days
        ],
        no_movement_30_days=p.no_movement_30_days,
    )


def _clients_out(snapshot: Snapshot) -> ClientMetricsOut:
    c = snapshot.clients
    return ClientMetricsOut(
        total_active_clients=c.total_active_clients,
        clients_with_purchases_last_month=c.clients_with_purchases_last_month,
        new_clients_this_month=c.new_clients_this_month,
        clients_with_pending_payments=c.clients_with_pending_payments,
        top_clients_by_volume=[
            TopClientOut(
                client_id=t.client_id,
                client_name=t.client_name,
                total_purchases=float(t.total_purchases),
                purchase_count=t.purchase_count,
            )
            for t in c.top_clients_by_volume
        ],
    )


def to_response(snapshot: Snapshot) -> SnapshotResponse:
    d = snapshot.deliveries
    return SnapshotResponse(
        computed_at=snapshot.computed_at.isoformat(),
        last_updated=last_updated_label(snapshot),
        generation=snapshot.generation,
        period=snapshot.period,
        period_label=period_label(snapshot.period),
        category=snapshot.category,
        all_clear=snapshot.all_clear,
        sales=_sales_out(snapshot),
        deliveries=DeliveryMetricsOut(
            pending_deliveries=d.pending_deliveries,
            scheduled_today=d.scheduled_today,
            in_separation=d.in_separation,
            delayed_deliveries=d.delayed_deliveries,
            completed_on_time=d.completed_on_time,
            delivered_count=d.delivered_count,
            total_deliveries=d.total_deliveries,
            on_time_percentage=float(d.on_time_percentage),
        ),
        products=_products_out(snapshot),
        clients=_clients_out(snapshot),
        daily_sales=[DailySalesOut(day=p.day_iso, total=float(p.total)) for p in snapshot.daily_sales],
        category_sales=[
            CategorySalesOut(category=c.category, total=float(c.total), percentage=float(c.percentage))
            for c in snapshot.category_sales
        ],
        low_stock_trend=LowStockTrendOut(
            estimated=snapshot.low_stock_trend.estimated,
            points=[LowStockPointOut(day=p.day.isoformat(), count=p.count) for p in snapshot.low_stock_trend.points],
        ),
        alerts=[
            AlertOut(
                id=a.id,
                severity=a.severity.value,
                title=a.title,
                message=a.message,
                count=a.count,
                action=AlertActionOut(reference=a.action.reference, label=a.action.label) if a.action else None,
            )
            for a in snapshot.alerts
        ],
        diagnostics=[
            DiagnosticOut(group=g.group, kind=g.kind.value, collections=list(g.collections), message=g.message)
            for g in snapshot.diagnostics
        ],
    )


async def _refresh(
    coordinator: RefreshCoordinator,
    period: str,
    category: str,
    viewer: ViewerContext,
) -> Snapshot:
    try:
        snapshot = await coordinator.refresh(period=period, category=category, viewer=viewer)
    except InvalidFilterError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if snapshot is None:
        raise HTTPException(status_code=503, detail="Refresh descartado por um mais recente.")
    return snapshot


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@router.get("/snapshot", response_model=SnapshotResponse)
async def get_snapshot(
    request: Request,
    period: str = Query("month", description="today | week | month | year"),
    category: str = Query(ALL_CATEGORIES, description="all | uncategorized | id da categoria"),
    coordinator: RefreshCoordinator = Depends(get_coordinator),
    viewer: ViewerContext = Depends(get_viewer),
):
    snapshot = await _refresh(coordinator, period, category, viewer)
    payload = to_response(snapshot).model_dump(mode="json")
    return etag_json(request, payload, volatile_keys=("computed_at", "last_updated", "generation"))


@router.get("/export.csv")
async def export_csv(
    period: str = Query("month"),
    category: str = Query(ALL_CATEGORIES),
    coordinator: RefreshCoordinator = Depends(get_coordinator),
    viewer: ViewerContext = Depends(get_viewer),
):
    snapshot = await _refresh(coordinator, period, category, viewer)
    filename = f"dashboard_{snapshot.period}_{snapshot.computed_at.strftime('%Y%m%d_%H%M%S')}.csv"
    return Response(
        content=snapshot_to_csv(snapshot),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
