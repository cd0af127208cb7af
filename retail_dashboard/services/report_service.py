"""
Helpers de apresentação e exportação tabular de um Snapshot.
A renderização em PDF fica fora deste serviço; aqui só montamos os dados.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict

import pandas as pd

from retail_dashboard.domain.errors import InvalidFilterError
from retail_dashboard.domain.models import Snapshot

PERIOD_LABELS = {
    "today": "Hoje",
    "week": "Esta Semana",
    "month": "Este Mês",
    "year": "Este Ano",
}

PAYMENT_METHOD_LABELS = {
    "cash": "Dinheiro",
    "card": "Cartão",
    "transfer": "Transferência",
    "pix": "PIX",
    "check": "Cheque",
    "credit": "Crédito",
}


def period_label(period: str) -> str:
    try:
        return PERIOD_LABELS[period]
    except KeyError as exc:
        raise InvalidFilterError(f"Período inválido: {period}") from exc


def payment_method_label(method: str) -> str:
    return PAYMENT_METHOD_LABELS.get(method, method)


def last_updated_label(snapshot: Snapshot) -> str:
    return snapshot.computed_at.strftime("%d/%m/%Y %H:%M:%S")


def format_guarani(value: Decimal | int | float) -> str:
    """Guarani não tem centavos: arredonda e usa ponto como separador de milhar."""
    rounded = Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return "₲ " + f"{int(rounded):,}".replace(",", ".")


_GROUP_KEYS = {"vendas": "sales", "entregas": "deliveries", "produtos": "products", "clientes": "clients"}


def _kpi_rows(snapshot: Snapshot) -> list[dict]:
    s, d, p, c = snapshot.sales, snapshot.deliveries, snapshot.products, snapshot.clients
    rows = [
        ("vendas", "Total do Mês", s.month_total),
        ("vendas", "Total do Mês Anterior", s.last_month_total),
        ("vendas", "Receita Hoje", s.today_total),
        ("vendas", "Ticket Médio", s.average_ticket),
        ("vendas", "Crescimento Mensal (%)", s.monthly_growth),
        ("vendas", "Pagamentos Pendentes", s.pending_payments.count),
        ("vendas", "Valor Pendente", s.pending_payments.value),
        ("vendas", "Vendas no Mês", s.total_sales_count),
        ("vendas", "Meta Mensal", s.monthly_goal),
        ("vendas", "Meta Atingida (%)", s.goal_percentage),
        ("entregas", "Entregas Pendentes", d.pending_deliveries),
        ("entregas", "Programadas Hoje", d.scheduled_today),
        ("entregas", "Em Separação", d.in_separation),
        ("entregas", "Atrasadas", d.delayed_deliveries),
        ("entregas", "Concluídas no Prazo", d.completed_on_time),
        ("entregas", "No Prazo (%)", d.on_time_percentage),
        ("produtos", "Produtos Ativos", p.active_products),
        ("produtos", "Estoque Baixo", p.low_stock_products),
        ("produtos", "Sem Estoque", p.out_of_stock_products),
        ("produtos", "Valor em Estoque", p.total_stock_value),
        ("produtos", "Promoções Ativas", p.active_promotions),
        ("produtos", "Economia com Promoções", p.total_savings_from_promotions),
        ("produtos", "Sem Movimento (30 dias)", p.no_movement_30_days),
        ("clientes", "Clientes Ativos", c.total_active_clients),
        ("clientes", "Compraram no Mês Anterior", c.clients_with_purchases_last_month),
        ("clientes", "Novos no Mês", c.new_clients_this_month),
        ("clientes", "Com Pagamento Pendente", c.clients_with_pending_payments),
    ]
    return [
        {"grupo": group, "indicador": label, "valor": float(value), "disponivel": snapshot.is_available(_GROUP_KEYS[group])}
        for group, label, value in rows
    ]


def snapshot_frames(snapshot: Snapshot) -> Dict[str, pd.DataFrame]:
    """Uma tabela por seção exportável do snapshot."""
    return {
        "resumo": pd.DataFrame(_kpi_rows(snapshot), columns=["grupo", "indicador", "valor", "disponivel"]),
        "formas_pagamento": pd.DataFrame(
            [
                {"forma": payment_method_label(entry.method), "vendas": entry.count}
                for entry in snapshot.sales.payment_methods
            ],
            columns=["forma", "vendas"],
        ),
        "vendas_diarias": pd.DataFrame(
            [{"dia": point.day_iso, "total": float(point.total)} for point in snapshot.daily_sales],
            columns=["dia", "total"],
        ),
        "categorias": pd.DataFrame(
            [
                {"categoria": row.category, "total": float(row.total), "percentual": round(float(row.percentage), 2)}
                for row in snapshot.category_sales
            ],
            columns=["categoria", "total", "percentual"],
        ),
        "mais_vendidos": pd.DataFrame(
            [
                {"produto": row.product_name, "quantidade": row.quantity}
                for row in snapshot.products.top_selling_last_7_days
            ],
            columns=["produto", "quantidade"],
        ),
        "top_clientes": pd.DataFrame(
            [
                {
                    "cliente": row.client_name,
                    "total": float(row.total_purchases),
                    "compras": row.purchase_count,
                }
                for row in snapshot.clients.top_clients_by_volume
            ],
            columns=["cliente", "total", "compras"],
        ),
        "alertas": pd.DataFrame(
            [
                {"severidade": alert.severity.value, "titulo": alert.title, "mensagem": alert.message, "quantidade": alert.count}
                for alert in snapshot.alerts
            ],
            columns=["severidade", "titulo", "mensagem", "quantidade"],
        ),
    }


def snapshot_to_csv(snapshot: Snapshot) -> str:
    """CSV com as seções em sequência, cada uma precedida por ``# nome``."""
    header = (
        f"# Dashboard - {period_label(snapshot.period)} - categoria {snapshot.category}\n"
        f"# Gerado em: {last_updated_label(snapshot)}\n"
    )
    sections = [f"# {name}\n{frame.to_csv(index=False)}" for name, frame in snapshot_frames(snapshot).items()]
    return header + "\n".join(sections)
