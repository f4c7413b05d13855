"""
FastAPI application entry point for the Sentient engine.

Routers:
    /v1/dawn, /v1/records   daily pipeline and its records
    /v1/cards               smart card lifecycle
    /v1/goals               operator goals

Errors leave the API in one shape, ``{"detail": ..., "error_code": ...}``,
whether they are request errors (APIException) or terminal dawn-run
failures (DawnProtocolError).
"""
from contextlib import asynccontextmanager
import logging
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from core.config import settings
from core.database import check_db_connection, engine
from core.exceptions import APIException, DawnProtocolError
from core.logging import setup_logging
from routers import dawn, goals, smart_cards

setup_logging(service="api")
logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = ("authorization", "cookie")


def _filter_sensitive_data(event, hint):
    """Strip credentials and request bodies before an event leaves the box."""
    request = event.get("request")
    if request:
        headers = request.get("headers")
        if isinstance(headers, dict):
            for name in SENSITIVE_HEADERS:
                headers.pop(name, None)
        # bodies carry raw health data and goal text
        request.pop("data", None)
    return event


if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        send_default_pii=False,
        before_send=_filter_sensitive_data,
    )
    logger.info(f"Sentry initialized for environment: {settings.ENVIRONMENT}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    from run_migrations import ensure_additive_columns

    added = ensure_additive_columns(engine)
    if added:
        logger.info(f"Additive schema pass added columns: {added}")
    logger.info(
        f"Engine API up: operator timezone {settings.OPERATOR_TIMEZONE}, "
        f"dawn hour {settings.DAWN_HOUR:02d}:00"
    )
    yield


app = FastAPI(
    title="Sentient Engine API",
    description="Daily physiology engine: vitality, state, directive and smart cards for a single operator",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# Single-operator client: the companion app, or anything when DEBUG
if settings.DEBUG:
    allowed_origins = ["*"]
elif settings.CORS_ORIGINS:
    allowed_origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
else:
    allowed_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """One log line per request, correlated by X-Request-ID."""
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    start_time = time.perf_counter()
    context = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
    }

    try:
        response = await call_next(request)
    except Exception:
        logger.error(
            f"Request failed: {request.method} {request.url.path}",
            exc_info=True,
            extra={"extra_fields": context},
        )
        raise

    elapsed_ms = round((time.perf_counter() - start_time) * 1000, 2)
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms}ms)",
        extra={"extra_fields": {**context, "status_code": response.status_code, "process_time_ms": elapsed_ms}},
    )
    response.headers["X-Request-ID"] = request_id
    return response


def _error_response(status_code: int, detail, error_code: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "error_code": error_code},
        headers=headers,
    )


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    return _error_response(exc.status_code, exc.detail, exc.error_code, exc.headers)


@app.exception_handler(DawnProtocolError)
async def dawn_protocol_exception_handler(request: Request, exc: DawnProtocolError):
    logger.error(
        f"Dawn run failed: {exc.message}",
        extra={"extra_fields": {"path": request.url.path, "error_code": exc.error_code}},
    )
    return _error_response(exc.status_code, exc.message, exc.error_code)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={"extra_fields": {"method": request.method, "path": request.url.path}},
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "INTERNAL_ERROR")


@app.get("/health")
async def health():
    """
    Liveness for the container orchestrator.

    503 when the database is unreachable. Gemini being unconfigured is not
    a failure: content falls back to templates and LLM-only cards are
    skipped.
    """
    if not check_db_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unavailable"},
        )

    return {
        "status": "healthy",
        "generator": "gemini" if settings.GOOGLE_API_KEY else "templates",
        "operator_timezone": settings.OPERATOR_TIMEZONE,
        "timestamp": time.time(),
    }


app.include_router(dawn.router)
app.include_router(smart_cards.router)
app.include_router(goals.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )
