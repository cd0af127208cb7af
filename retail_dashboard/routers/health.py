from fastapi import APIRouter
from fastapi.responses import JSONResponse

from retail_dashboard.core.config import settings
from retail_dashboard.core.logging import app_logger
from retail_dashboard.infra.db import health_check
from retail_dashboard.infra.rest_client import RestClient

router = APIRouter()

@router.get("/healthz")
def healthz():
    return {"status": "ok"}

@router.get("/readyz")
async def readyz():
    try:
        if settings.RECORD_SOURCE == "sql":
            source = health_check()
        else:
            reachable = await RestClient().ping()
            if not reachable:
                raise RuntimeError("API REST indisponível")
            source = {"ok": True, "url": settings.DATA_API_URL}
    except Exception as exc:
        app_logger.error("Readiness check failed", exc=exc, record_source=settings.RECORD_SOURCE)
        return JSONResponse(status_code=503, content={"status": "not ready", "error": str(exc)})
    return {"status": "ready", "record_source": settings.RECORD_SOURCE, "source": source}
