from __future__ import annotations
from typing import Any, Dict, List, Optional
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, Result
from retail_dashboard.core.config import settings

# -----------------------------------------------------------------------------
# 1) Engine (pool de conexões)
# -----------------------------------------------------------------------------

_engine: Optional[Engine] = None

def get_engine() -> Engine:
    global _engine
    if _engine is None:
        if not settings.DATABASE_URL:
            raise RuntimeError("DATABASE_URL não configurada.")
        _engine = create_engine(
            settings.DATABASE_URL,
            pool_pre_ping=True,
            pool_size=10,
            max_overflow=20,
            future=True,
        )
    return _engine

def set_engine(engine: Optional[Engine]) -> None:
    """Troca o engine global (útil para SQLite em testes)."""
    global _engine
    _engine = engine

# -----------------------------------------------------------------------------
# 2) Healthcheck (pronto para /readyz)
# -----------------------------------------------------------------------------

def health_check() -> Dict[str, Any]:
    eng = get_engine()
    with eng.connect() as conn:
        conn.execute(text("SELECT 1"))
        return {
            "ok": True,
            "dialect": eng.dialect.name,
            "database": eng.url.database,
        }

# -----------------------------------------------------------------------------
# 3) Helpers de consulta (somente SELECT; o motor nunca escreve)
# -----------------------------------------------------------------------------

def fetch_all(sql: str, params: Optional[Dict[str, Any]] = None,
              timeout_ms: Optional[int] = None) -> List[Dict[str, Any]]:
    eng = get_engine()
    with eng.connect() as conn:
        if timeout_ms and eng.dialect.name == "postgresql":
            conn.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
        result: Result = conn.execute(text(sql), params or {})
        rows = result.mappings().all()
        return [dict(r) for r in rows]
