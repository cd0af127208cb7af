"""Erros do motor de métricas. Nenhum deles é fatal para o processo."""

from __future__ import annotations

from typing import Optional


class DashboardError(RuntimeError):
    """Base de todos os erros do dashboard."""


class QueryError(DashboardError):
    """A leitura de uma coleção de registros falhou (rede, banco ou payload inválido)."""

    def __init__(
        self,
        collection: str,
        message: str,
        *,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        prefix = f"[{collection} {status_code}]" if status_code else f"[{collection}]"
        super().__init__(f"{prefix} {message}")
        self.collection = collection
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class ComputationError(DashboardError):
    """Uma calculadora falhou com entrada malformada."""

    def __init__(self, group: str, cause: BaseException):
        super().__init__(f"Falha ao calcular '{group}': {cause}")
        self.group = group
        self.cause = cause


class StaleResultError(DashboardError):
    """O resultado de um refresh chegou depois de um refresh mais novo ter sido emitido."""

    def __init__(self, generation: int, latest: int):
        super().__init__(f"Resultado da geração {generation} descartado (última: {latest})")
        self.generation = generation
        self.latest = latest


class InvalidFilterError(DashboardError, ValueError):
    """Filtro de período ou categoria inválido."""
