"""
Application builder.
Separates middleware, routes, lifecycle and error handling setup.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from retail_dashboard.core.config import settings
from retail_dashboard.core.logging import app_logger, get_logger, init_app_logging
from retail_dashboard.domain.errors import DashboardError, InvalidFilterError, QueryError
from retail_dashboard.routers import dashboard, health

request_logger = get_logger("retail_dashboard.http")


class ApplicationBuilder:
    """Builder for FastAPI application with separated concerns."""

    def __init__(self):
        self.app = FastAPI(
            title=settings.APP_NAME,
            version="1.0.0",
            description="Métricas e alertas do painel de retaguarda",
            docs_url="/docs",
            redoc_url="/redoc",
            openapi_url="/openapi.json",
        )
        self._middlewares_added = False
        self._routes_added = False
        self._startup_handlers_added = False

    def add_cors_middleware(self) -> ApplicationBuilder:
        """Add CORS middleware configuration."""
        if self._middlewares_added:
            raise RuntimeError("Middlewares already added")

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS_LIST or ["http://localhost:3000", "http://localhost:5173"],
            allow_credentials=True,
            allow_methods=["GET"],
            allow_headers=["*"],
            expose_headers=["ETag", "Content-Disposition"],
        )
        app_logger.debug("CORS middleware added")
        return self

    def add_security_middleware(self) -> ApplicationBuilder:
        """Add security headers."""
        if self._middlewares_added:
            raise RuntimeError("Middlewares already added")

        @self.app.middleware("http")
        async def add_security_headers(request: Request, call_next):
            response = await call_next(request)
            response.headers["X-Content-Type-Options"] = "nosniff"
            response.headers["X-Frame-Options"] = "DENY"
            return response

        app_logger.debug("Security middleware added")
        return self

    def add_request_logging_middleware(self) -> ApplicationBuilder:
        """Add request logging middleware."""
        if self._middlewares_added:
            raise RuntimeError("Middlewares already added")

        @self.app.middleware("http")
        async def log_requests(request: Request, call_next):
            started = time.perf_counter()
            log = request_logger.bind(method=request.method, path=request.url.path)
            response = await call_next(request)
            log.info(
                "Request handled",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
                client=request.client.host if request.client else None,
            )
            return response

        app_logger.debug("Request logging middleware added")
        return self

    def finalize_middlewares(self) -> ApplicationBuilder:
        """Mark middlewares as finalized."""
        self._middlewares_added = True
        return self

    def add_routes(self) -> ApplicationBuilder:
        """Add all API routes."""
        if self._routes_added:
            raise RuntimeError("Routes already added")

        self.app.include_router(health.router)
        self.app.include_router(dashboard.router)

        @self.app.get("/")
        def root():
            return {
                "name": settings.APP_NAME,
                "env": settings.ENV,
                "record_source": settings.RECORD_SOURCE,
                "docs": "/docs",
                "snapshot": "/dashboard/snapshot",
                "healthz": "/healthz",
                "readyz": "/readyz",
            }

        app_logger.debug("All routes added")
        self._routes_added = True
        return self

    def add_startup_handlers(self) -> ApplicationBuilder:
        """Add startup and shutdown handlers."""
        if self._startup_handlers_added:
            raise RuntimeError("Startup handlers already added")

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            # A fonte de registros pode subir depois da API; /readyz reporta o estado.
            app_logger.info(
                "Starting application",
                env=settings.ENV,
                record_source=settings.RECORD_SOURCE,
                business_timezone=settings.BUSINESS_TIMEZONE,
            )
            yield
            app_logger.info("Shutting down application")

        self.app.router.lifespan_context = lifespan
        self._startup_handlers_added = True
        app_logger.debug("Startup handlers added")
        return self

    def add_exception_handlers(self) -> ApplicationBuilder:
        """Add global exception handlers."""

        @self.app.exception_handler(InvalidFilterError)
        async def invalid_filter_handler(request: Request, exc: InvalidFilterError):
            return JSONResponse(status_code=400, content={"detail": str(exc)})

        @self.app.exception_handler(QueryError)
        async def query_error_handler(request: Request, exc: QueryError):
            app_logger.warning("Record source error", collection=exc.collection, path=request.url.path)
            return JSONResponse(status_code=502, content={"detail": str(exc), "collection": exc.collection})

        @self.app.exception_handler(DashboardError)
        async def dashboard_error_handler(request: Request, exc: DashboardError):
            app_logger.error("Dashboard error", exc=exc, path=request.url.path)
            return JSONResponse(status_code=502, content={"detail": str(exc)})

        app_logger.debug("Exception handlers added")
        return self

    def build(self) -> FastAPI:
        """Build and return the configured FastAPI application."""
        if not self._middlewares_added:
            raise RuntimeError("Middlewares not finalized")
        if not self._routes_added:
            raise RuntimeError("Routes not added")
        if not self._startup_handlers_added:
            raise RuntimeError("Startup handlers not added")

        app_logger.info("FastAPI application built successfully")
        return self.app


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    init_app_logging()

    builder = (
        ApplicationBuilder()
        .add_cors_middleware()
        .add_security_middleware()
        .add_request_logging_middleware()
        .finalize_middlewares()
        .add_routes()
        .add_startup_handlers()
        .add_exception_handlers()
    )

    return builder.build()
