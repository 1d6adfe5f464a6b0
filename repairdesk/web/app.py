"""FastAPI application for RepairDesk."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.base import BaseHTTPMiddleware

from repairdesk import __version__
from repairdesk.config import get_config
from repairdesk.core.logging import configure_logging
from repairdesk.db.connection import close_db
from repairdesk.exceptions import (
    DuplicateNumberError,
    InvalidReferenceError,
    TenantNotFoundError,
    TenantWipeError,
)
from repairdesk.web.routes import health, lifecycle

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    configure_logging(config)
    logger.info("api_starting", version=__version__, environment=config.environment)
    yield
    await close_db()


app = FastAPI(
    title="RepairDesk",
    description="Multi-tenant repair shop lifecycle API",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


QUIET_PATHS = frozenset({"/metrics", "/health"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request, tagged with request id and requested tenant.

    The tenant header (``tenant_header``) is bound as sent, before it is
    validated. The request id is echoed back in ``X-Request-ID``.
    """

    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        tenant = request.headers.get(get_config().tenant_header)
        structlog.contextvars.bind_contextvars(request_id=request_id, tenant=tenant)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
                error=str(exc),
            )
            raise

        response.headers["X-Request-ID"] = request_id
        if request.url.path not in QUIET_PATHS or response.status_code >= 400:
            if response.status_code >= 500:
                log = logger.error
            elif response.status_code >= 400:
                log = logger.warning
            else:
                log = logger.info
            log(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        return response


app.add_middleware(RequestLoggingMiddleware)

# Prometheus Metrics
Instrumentator().instrument(app).expose(app)


# Exception Handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(InvalidReferenceError)
async def invalid_reference_handler(request: Request, exc: InvalidReferenceError):
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "entity": exc.entity, "id": exc.reference_id},
    )


@app.exception_handler(DuplicateNumberError)
async def duplicate_number_handler(request: Request, exc: DuplicateNumberError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(TenantNotFoundError)
async def tenant_not_found_handler(request: Request, exc: TenantNotFoundError):
    # Same body as any other missing resource
    return JSONResponse(status_code=404, content={"detail": "Organization not found"})


@app.exception_handler(TenantWipeError)
async def tenant_wipe_handler(request: Request, exc: TenantWipeError):
    logger.error("tenant_wipe_rejected", org_id=exc.org_id, table=exc.table)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# Include Routers
app.include_router(health.router)
app.include_router(lifecycle.router)


@app.get("/")
async def index():
    config = get_config()
    return {"name": "RepairDesk", "version": __version__, "tenant_header": config.tenant_header}
