"""
Calculadoras de métricas do dashboard.

Funções puras: recebem coleções já buscadas e devolvem um grupo de métricas.
Nenhuma delas falha com coleções vazias; o estado zero é o próprio default
dos dataclasses de ``domain.models``.

Regras comuns:
- vendas com ``payment_status == cancelled`` nunca entram em somas ou contagens;
- itens de venda só contam quando a venda embutida é conhecida e não cancelada;
- empates em rankings são desfeitos por um critério lexical explícito.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from retail_dashboard.domain.models import (
    ZERO,
    CategorySales,
    ClientMetrics,
    DailySalesPoint,
    DeliveryMetrics,
    LowStockPoint,
    LowStockTrend,
    PaymentMethodCount,
    PendingPayments,
    ProductMetrics,
    SalesMetrics,
    TopClient,
    TopSellingProduct,
    safe_ratio,
)
from retail_dashboard.domain.records import (
    PENDING_DELIVERY_STATUSES,
    TERMINAL_DELIVERY_STATUSES,
    CategoryRecord,
    ClientRecord,
    DeliveryStatus,
    PaymentStatus,
    ProductRecord,
    PromotionRecord,
    SaleItemRecord,
    SaleRecord,
)
from retail_dashboard.domain.time_window import DELIVERY_SLA_DAYS, TimeWindow

LOW_STOCK_THRESHOLD = 5
TOP_SELLERS_LIMIT = 5
TOP_SELLERS_DAYS = 7
NO_MOVEMENT_DAYS = 30
TOP_CLIENTS_LIMIT = 5
TOP_CATEGORIES_LIMIT = 6
LOW_STOCK_TREND_DAYS = 7

UNCATEGORIZED_LABEL = "Sem Categoria"
UNKNOWN_CLIENT_LABEL = "Cliente não informado"

HUNDRED = Decimal(100)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _valid_sales(sales: Iterable[SaleRecord]) -> list[SaleRecord]:
    return [sale for sale in sales if not sale.is_cancelled]


def _sum_final(sales: Iterable[SaleRecord]) -> Decimal:
    return sum((sale.final_amount for sale in sales), ZERO)


def _sold_items(items: Iterable[SaleItemRecord]) -> list[SaleItemRecord]:
    return [item for item in items if item.counts_as_sold]


def _sold_since(items: Iterable[SaleItemRecord], window: TimeWindow, start: datetime) -> list[SaleItemRecord]:
    return [item for item in items if window.within(item.sale.sale_date, start)]  # type: ignore[union-attr]


def is_low_stock(product: ProductRecord) -> bool:
    return product.active and 0 < product.stock <= LOW_STOCK_THRESHOLD


def is_out_of_stock(product: ProductRecord) -> bool:
    return product.active and product.stock == 0


def rank_best_sellers(items: Iterable[SaleItemRecord], limit: int = TOP_SELLERS_LIMIT) -> list[TopSellingProduct]:
    """Quantidades somadas por nome do produto; desempate pelo nome."""
    quantities: dict[str, int] = defaultdict(int)
    for item in items:
        quantities[item.product_name] += item.quantity
    ranked = sorted(quantities.items(), key=lambda entry: (-entry[1], entry[0]))
    return [TopSellingProduct(product_name=name, quantity=qty) for name, qty in ranked[:limit]]


def scope_to_products(
    products: Sequence[ProductRecord],
    sale_items: Sequence[SaleItemRecord],
    promotions: Sequence[PromotionRecord],
) -> tuple[list[SaleItemRecord], list[PromotionRecord]]:
    """Restringe itens e promoções aos produtos já filtrados por categoria."""
    product_ids = {product.id for product in products}
    return (
        [item for item in sale_items if item.product_id in product_ids],
        [promo for promo in promotions if promo.product_id in product_ids],
    )


# -----------------------------------------------------------------------------
# Calculadoras
# -----------------------------------------------------------------------------


def compute_sales_metrics(
    sales: Sequence[SaleRecord],
    window: TimeWindow,
    monthly_goal: Decimal,
) -> SalesMetrics:
    """Totais do mês, mês anterior e hoje, ticket médio, pendências e meta."""
    valid = _valid_sales(sales)
    month_start, month_end = window.month_range(0)
    last_start, last_end = window.month_range(-1)

    current_month = [s for s in valid if window.within(s.sale_date, month_start, month_end)]
    last_month = [s for s in valid if window.within(s.sale_date, last_start, last_end)]
    today = [s for s in valid if window.local_day(s.sale_date) == window.today]

    month_total = _sum_final(current_month)
    pending = [s for s in current_month if s.payment_status is PaymentStatus.PENDING]

    histogram = Counter(s.payment_method for s in current_month if s.payment_method)
    methods = tuple(
        PaymentMethodCount(method=method, count=count)
        for method, count in sorted(histogram.items(), key=lambda entry: (-entry[1], entry[0]))
    )
    top = methods[0] if methods else None

    return SalesMetrics(
        month_total=month_total,
        last_month_total=_sum_final(last_month),
        today_total=_sum_final(today),
        average_ticket=safe_ratio(month_total, len(current_month)),
        pending_payments=PendingPayments(count=len(pending), value=_sum_final(pending)),
        total_sales_count=len(current_month),
        payment_methods=methods,
        top_payment_method=top.method if top else None,
        top_payment_method_count=top.count if top else 0,
        monthly_goal=monthly_goal,
        goal_percentage=safe_ratio(month_total, monthly_goal) * HUNDRED,
    )


def compute_delivery_metrics(deliveries: Sequence[SaleRecord], window: TimeWindow) -> DeliveryMetrics:
    """Contagens por status, atrasos e taxa de entrega no prazo (SLA de 2 dias)."""
    records = [d for d in _valid_sales(deliveries) if d.marked_for_delivery]

    def open_(record: SaleRecord) -> bool:
        return record.delivery_status not in TERMINAL_DELIVERY_STATUSES

    delivered = [d for d in records if d.delivery_status is DeliveryStatus.DELIVERED]
    on_time = [
        d for d in delivered
        if TimeWindow.days_between(window.localize(d.created_at), window.localize(d.sale_date)) <= DELIVERY_SLA_DAYS
    ]

    return DeliveryMetrics(
        pending_deliveries=sum(1 for d in records if d.delivery_status in PENDING_DELIVERY_STATUSES),
        scheduled_today=sum(1 for d in records if open_(d) and window.local_day(d.sale_date) == window.today),
        in_separation=sum(1 for d in records if d.delivery_status is DeliveryStatus.PREPARING),
        delayed_deliveries=sum(1 for d in records if open_(d) and window.is_overdue(d.created_at)),
        completed_on_time=len(on_time),
        delivered_count=len(delivered),
        total_deliveries=len(records),
        on_time_percentage=safe_ratio(len(on_time), len(delivered)) * HUNDRED,
    )


def compute_product_metrics(
    products: Sequence[ProductRecord],
    sale_items: Sequence[SaleItemRecord],
    promotions: Sequence[PromotionRecord],
    categories: Sequence[CategoryRecord],
    window: TimeWindow,
) -> ProductMetrics:
    """Catálogo, estoque, economia com promoções, mais vendidos e produtos parados."""
    active = [p for p in products if p.active]
    sold = _sold_items(sale_items)

    quantity_by_product: dict[str, int] = defaultdict(int)
    for item in sold:
        quantity_by_product[item.product_id] += item.quantity

    active_promotions = [promo for promo in promotions if promo.active]
    savings = sum(
        (promo.unit_savings * quantity_by_product.get(promo.product_id, 0) for promo in active_promotions),
        ZERO,
    )

    week_items = _sold_since(sold, window, window.trailing(TOP_SELLERS_DAYS))
    moved_ids = {item.product_id for item in _sold_since(sold, window, window.trailing(NO_MOVEMENT_DAYS))}

    return ProductMetrics(
        total_products=len(products),
        active_products=len(active),
        low_stock_products=sum(1 for p in products if is_low_stock(p)),
        out_of_stock_products=sum(1 for p in products if is_out_of_stock(p)),
        total_categories=len(categories),
        total_stock_value=sum((p.price * p.stock for p in products), ZERO),
        active_promotions=len(active_promotions),
        total_savings_from_promotions=savings,
        top_selling_last_7_days=tuple(rank_best_sellers(week_items)),
        no_movement_30_days=sum(1 for p in active if p.id not in moved_ids),
    )


def compute_client_metrics(
    clients: Sequence[ClientRecord],
    sales: Sequence[SaleRecord],
    window: TimeWindow,
) -> ClientMetrics:
    """Clientes ativos, recorrentes do mês anterior, novos, com pendências e top 5 por volume."""
    last_start, last_end = window.month_range(-1)
    month_start, month_end = window.month_range(0)
    with_client = [s for s in _valid_sales(sales) if s.client_id]

    bought_last_month = {
        s.client_id for s in with_client if window.within(s.sale_date, last_start, last_end)
    }
    with_pending = {s.client_id for s in with_client if s.payment_status is PaymentStatus.PENDING}

    names = {client.id: client.name for client in clients}
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    counts: dict[str, int] = defaultdict(int)
    for sale in with_client:
        totals[sale.client_id] += sale.final_amount  # type: ignore[index]
        counts[sale.client_id] += 1  # type: ignore[index]

    ranked = sorted(totals.items(), key=lambda entry: (-entry[1], entry[0]))[:TOP_CLIENTS_LIMIT]
    top_clients = tuple(
        TopClient(
            client_id=client_id,
            client_name=names.get(client_id) or UNKNOWN_CLIENT_LABEL,
            total_purchases=total,
            purchase_count=counts[client_id],
        )
        for client_id, total in ranked
    )

    return ClientMetrics(
        total_active_clients=sum(1 for c in clients if c.active),
        clients_with_purchases_last_month=len(bought_last_month),
        new_clients_this_month=sum(
            1 for c in clients if window.within(c.created_at, month_start, month_end)
        ),
        clients_with_pending_payments=len(with_pending),
        top_clients_by_volume=top_clients,
    )


def compute_category_breakdown(
    sale_items: Sequence[SaleItemRecord],
    products: Sequence[ProductRecord],
    categories: Sequence[CategoryRecord],
    window: Optional[TimeWindow] = None,
    period_range: Optional[tuple[datetime, datetime]] = None,
) -> list[CategorySales]:
    """Subtotais por categoria, percentual do total geral, top 6."""
    category_of = {product.id: product.category_id for product in products}
    names = {category.id: category.name for category in categories}

    sold = _sold_items(sale_items)
    if window is not None and period_range is not None:
        start, end = period_range
        sold = [item for item in sold if window.within(item.sale.sale_date, start, end)]  # type: ignore[union-attr]

    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for item in sold:
        category_id = category_of.get(item.product_id)
        label = names.get(category_id, UNCATEGORIZED_LABEL) if category_id else UNCATEGORIZED_LABEL
        totals[label] += item.subtotal

    grand_total = sum(totals.values(), ZERO)
    ranked = sorted(totals.items(), key=lambda entry: (-entry[1], entry[0]))[:TOP_CATEGORIES_LIMIT]
    return [
        CategorySales(category=label, total=total, percentage=safe_ratio(total, grand_total) * HUNDRED)
        for label, total in ranked
    ]


def compute_daily_sales(
    sales: Sequence[SaleRecord],
    window: TimeWindow,
    period: str = "week",
) -> list[DailySalesPoint]:
    """Receita diária do período, do dia mais antigo ao mais novo, dias sem venda em zero."""
    totals: dict[date, Decimal] = {day: ZERO for day in window.period_days(period)}
    for sale in _valid_sales(sales):
        day = window.local_day(sale.sale_date)
        if day in totals:
            totals[day] += sale.final_amount
    return [DailySalesPoint(day=day, total=total) for day, total in totals.items()]


def compute_low_stock_trend(products: Sequence[ProductRecord], window: TimeWindow) -> LowStockTrend:
    """Série de 7 dias com a contagem atual de produtos ativos com estoque <= 5."""
    current = sum(1 for p in products if p.active and p.stock <= LOW_STOCK_THRESHOLD)
    return LowStockTrend(
        points=tuple(LowStockPoint(day=day, count=current) for day in window.last_n_days(LOW_STOCK_TREND_DAYS)),
        estimated=True,
    )
