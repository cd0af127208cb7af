"""
Repositórios para acesso a dados.
Implementam a camada de leitura dos registros brutos (REST ou SQL).
"""

from .protocols import RecordSourceProtocol
from .rest_repository import RestRecordRepository
from .sql_repository import SqlRecordRepository

__all__ = [
    "RecordSourceProtocol",
    "RestRecordRepository",
    "SqlRecordRepository",
]
