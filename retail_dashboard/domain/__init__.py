"""
Modelos de domínio e DTOs para a aplicação.
Camada de domínio independente de infraestrutura.
"""

from .errors import (
    ComputationError,
    DashboardError,
    InvalidFilterError,
    QueryError,
    StaleResultError,
)
from .filters import DashboardFilters, RecordQuery
from .models import (
    Alert,
    ClientMetrics,
    DeliveryMetrics,
    ProductMetrics,
    SalesMetrics,
    Snapshot,
)
from .time_window import TimeWindow
from .users import ViewerContext

__all__ = [
    "Alert",
    "ClientMetrics",
    "ComputationError",
    "DashboardError",
    "DashboardFilters",
    "DeliveryMetrics",
    "InvalidFilterError",
    "ProductMetrics",
    "QueryError",
    "RecordQuery",
    "SalesMetrics",
    "Snapshot",
    "StaleResultError",
    "TimeWindow",
    "ViewerContext",
]
