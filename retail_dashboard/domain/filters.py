"""
Filtros de dados reutilizáveis.
Centraliza a lógica de filtragem para os dois backends (REST e SQL).
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional, Sequence

from retail_dashboard.domain.errors import InvalidFilterError
from retail_dashboard.domain.time_window import PERIODS

ALL_CATEGORIES = "all"
UNCATEGORIZED = "uncategorized"


@dataclass(frozen=True)
class DashboardFilters:
    """Filtros escolhidos na UI do dashboard."""

    period: str = "month"
    category: str = ALL_CATEGORIES

    def __post_init__(self):
        if self.period not in PERIODS:
            raise InvalidFilterError(f"Período inválido: {self.period}")
        if not self.category or not self.category.strip():
            raise InvalidFilterError("Categoria não pode ser vazia.")

    @property
    def scoped_to_category(self) -> bool:
        return self.category != ALL_CATEGORIES

    def category_condition(self) -> Optional[tuple[str, str, Any]]:
        """Condição sobre ``products.category_id`` para o filtro de categoria."""
        if self.category == ALL_CATEGORIES:
            return None
        if self.category == UNCATEGORIZED:
            return ("category_id", "is", None)
        return ("category_id", "eq", self.category)


_OPERATORS = {"eq": "=", "neq": "<>", "gte": ">=", "lt": "<", "lte": "<=", "gt": ">"}


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


@dataclass(frozen=True)
class RecordQuery:
    """
    Consulta de leitura sobre uma coleção.

    Suporta igualdade/faixa (``eq``, ``neq``, ``gte``, ``lt``...), ``is null``,
    ``in`` e embutir uma relação rasa (ex.: ``sales(sale_date, payment_status)``).
    """

    table: str
    columns: Sequence[str] = ("*",)
    conditions: tuple[tuple[str, str, Any], ...] = ()
    embed: Optional[tuple[str, Sequence[str]]] = None
    order_by: Optional[str] = None

    def where(self, column: str, operator: str, value: Any) -> "RecordQuery":
        if operator not in _OPERATORS and operator not in {"is", "in"}:
            raise ValueError(f"Operador não suportado: {operator}")
        return RecordQuery(
            table=self.table,
            columns=self.columns,
            conditions=self.conditions + ((column, operator, value),),
            embed=self.embed,
            order_by=self.order_by,
        )

    def select_clause(self) -> str:
        select = ",".join(self.columns)
        if self.embed:
            relation, fields = self.embed
            select = f"{select},{relation}({','.join(fields)})"
        return select

    def to_rest_params(self) -> list[tuple[str, str]]:
        """Parâmetros no formato PostgREST (``coluna=op.valor``)."""
        params: list[tuple[str, str]] = [("select", self.select_clause())]
        for column, operator, value in self.conditions:
            if operator == "is":
                params.append((column, f"is.{'null' if value is None else _encode_value(value)}"))
            elif operator == "in":
                joined = ",".join(_encode_value(v) for v in value)
                params.append((column, f"in.({joined})"))
            else:
                params.append((column, f"{operator}.{_encode_value(value)}"))
        if self.order_by:
            params.append(("order", self.order_by))
        return params

    def to_sql_conditions(self, alias: str = "t") -> tuple[list[str], dict]:
        """
        Converte as condições em cláusulas SQL e parâmetros.

        Returns:
            Tupla contendo lista de condições WHERE e dicionário de parâmetros
        """
        clauses: list[str] = []
        params: dict = {}
        for index, (column, operator, value) in enumerate(self.conditions):
            name = f"p{index}_{column}"
            if operator == "is":
                clauses.append(f"{alias}.{column} IS NULL" if value is None else f"{alias}.{column} IS {value}")
            elif operator == "in":
                clauses.append(f"{alias}.{column} = ANY(:{name})")
                params[name] = list(value)
            else:
                clauses.append(f"{alias}.{column} {_OPERATORS[operator]} :{name}")
                params[name] = value
        return clauses, params

    def apply_to_query(self, base_query: str, alias: str = "t") -> tuple[str, dict]:
        """
        Aplica as condições a uma query base (sem WHERE).

        Returns:
            Tupla contendo query completa e parâmetros
        """
        clauses, params = self.to_sql_conditions(alias)
        query = base_query
        if clauses:
            query = f"{base_query} WHERE {' AND '.join(clauses)}"
        if self.order_by:
            column, _, direction = self.order_by.partition(".")
            query += f" ORDER BY {alias}.{column} {'DESC' if direction == 'desc' else 'ASC'}"
        return query, params
