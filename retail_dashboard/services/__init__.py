"""
Serviços de domínio separados das rotas.

Calculadoras de métricas, motor de alertas, coordenador de refresh e helpers
de relatório.
"""

from .alerts import AlertEngine, AlertInputs  # noqa: F401
from .refresh import RefreshCoordinator  # noqa: F401

__all__ = [
    "AlertEngine",
    "AlertInputs",
    "RefreshCoordinator",
]
