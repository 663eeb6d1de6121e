import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict, Sequence

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST
from pythonjsonlogger.json import JsonFormatter
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from gatepass.core.cache import cache
from gatepass.core.database_manager import db_manager
from gatepass.core.exceptions import GatepassError, InvalidRequest
from gatepass.core.metrics import get_prometheus_metrics
from gatepass.core.settings import get_settings
from gatepass.middleware.monitoring import MonitoringMiddleware, get_health_status
from gatepass.middleware.rate_limiting import RATE_LIMIT_CONFIGS, RateLimitMiddleware

from .api.api import api_router

settings = get_settings()

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    **Gatepass** sells seats for events and issues signed entry passes.

    * **Events**: organizers publish events with a seat capacity (or none)
    * **Bookings**: seats are deducted and a pass is issued in one transaction,
      so an event is never oversold
    * **Validation**: gate staff verify a pass against its live booking

    Protected endpoints take a JWT bearer token from `/api/v1/auth/login`:

    ```
    Authorization: Bearer <your_jwt_token>
    ```
    """,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
)

# Configure structured logging
log_handler = logging.StreamHandler()
formatter = JsonFormatter(
    """
    {
        "level": "%(levelname)s",
        "time": "%(asctime)s",
        "message": "%(message)s",
        "loggerName": "%(name)s",
        "processName": "%(processName)s",
        "fileName": "%(filename)s",
        "lineNumber": "%(lineno)d"
    }
    """
)
log_handler.setFormatter(formatter)
logging.basicConfig(handlers=[log_handler], level=settings.monitoring.LOG_LEVEL)
logger = logging.getLogger(__name__)

if settings.scalability.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware, endpoint_configs=RATE_LIMIT_CONFIGS)

app.add_middleware(MonitoringMiddleware)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


def validation_message(errors: Sequence[Any]) -> str:
    """Client-facing message for the first request validation error"""
    if not errors:
        return "Invalid request."
    error = errors[0]
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    field = loc[-1] if loc else "body"

    if error.get("type") == "missing":
        return f"Missing required field: {field}"
    if error.get("type") == "json_invalid":
        return "Malformed JSON body."

    message = str(error.get("msg", "Invalid request."))
    if message.startswith("Value error, "):
        return message[len("Value error, ") :]
    return f"Invalid {field}: {message}"


@app.exception_handler(GatepassError)  # type: ignore[misc]
async def gatepass_exception_handler(request: Request, exc: GatepassError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc.message, exc_info=exc.__cause__ is not None)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)  # type: ignore[misc]
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    error = InvalidRequest(validation_message(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(StarletteHTTPException)  # type: ignore[misc]
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    logger.info(
        "HTTPException occurred: %s",
        exc.detail,
        extra={"status_code": exc.status_code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(Exception)  # type: ignore[misc]
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception occurred: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


@app.get("/health", tags=["Health"], summary="Health Check")  # type: ignore[misc]
async def health_check() -> JSONResponse:
    """
    Status of the database and the cache.

    Returns 503 when the database is unreachable. A failing cache only marks
    the service as degraded, since nothing depends on it for correctness.
    """
    result: Dict[str, Any] = await get_health_status()
    code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if result["status"] == "unhealthy"
        else status.HTTP_200_OK
    )
    return JSONResponse(status_code=code, content=result)


@app.get("/metrics", tags=["Monitoring"], summary="Prometheus Metrics")  # type: ignore[misc]
async def metrics() -> PlainTextResponse:
    """
    Prometheus metrics endpoint for monitoring and alerting.
    """
    if not settings.monitoring.ENABLE_PROMETHEUS:
        raise StarletteHTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Metrics endpoint is disabled"
        )

    metrics_data = await get_prometheus_metrics()
    return PlainTextResponse(content=metrics_data, media_type=CONTENT_TYPE_LATEST)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the connection pool and the cache client; drain both on shutdown."""
    logger.info("Starting Gatepass %s (%s)", settings.VERSION, settings.ENVIRONMENT)

    if not db_manager.is_initialized:
        db_manager.init()
    cache.init()

    db_health = await db_manager.health_check()
    if db_health.get("status") == "healthy":
        logger.info("Database connection verified")
    else:
        logger.warning("Database health check failed: %s", db_health.get("message"))

    try:
        yield
    finally:
        logger.info("Shutting down Gatepass")
        await cache.close()
        await db_manager.close()


# Attach lifespan handler
app.router.lifespan_context = lifespan
