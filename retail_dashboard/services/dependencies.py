"""FastAPI dependency providers for service layer."""

from retail_dashboard.core.config import settings
from retail_dashboard.repositories import (
    RecordSourceProtocol,
    RestRecordRepository,
    SqlRecordRepository,
)
from retail_dashboard.services.refresh import RefreshCoordinator


def get_record_source() -> RecordSourceProtocol:
    if settings.RECORD_SOURCE == "sql":
        return SqlRecordRepository()
    return RestRecordRepository()


def get_coordinator() -> RefreshCoordinator:
    """
    Um coordenador novo por requisição: cada refresh HTTP é a geração 1 e nunca
    fica obsoleto. O descarte por geração vale para quem compartilha uma
    instância (jobs em processo, ou este provider sobrescrito por um singleton).
    """
    return RefreshCoordinator(get_record_source())
