"""
Daybook API application.

Wires logging, CORS, request timing, the error envelope
({"detail", "error_code"}) and the days / content / admin routers.
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from routers import admin, content, days
from core.config import settings
from core.database import check_db_connection
from core.logging import setup_logging
from core.exceptions import APIException
import logging
import time

API_VERSION = "1.0.0"

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Daybook API",
    description="Daily checklists, habit tracking and time blocks seeded from role templates",
    version=API_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)


def _allowed_origins():
    if settings.DEBUG:
        return ["*"]
    if settings.CORS_ORIGINS:
        return [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    return ["http://localhost:3000", "http://127.0.0.1:3000"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _request_fields(request: Request, **extra):
    fields = {"method": request.method, "path": request.url.path}
    fields.update(extra)
    return {"extra_fields": fields}


@app.middleware("http")
async def time_requests(request: Request, call_next):
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.error(f"Request failed: {request.method} {request.url.path}", exc_info=True, extra=_request_fields(request))
        raise

    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code}",
        extra=_request_fields(request, status_code=response.status_code, process_time_ms=elapsed_ms),
    )
    response.headers["X-Process-Time"] = str(elapsed_ms / 1000)
    return response


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """Typed service errors: status code, message and a machine-readable error_code."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        f"{exc.error_code or 'API_ERROR'}: {exc.detail}",
        extra=_request_fields(request, status_code=exc.status_code, error_code=exc.error_code),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code},
        headers=exc.headers,
    )


@app.exception_handler(OperationalError)
@app.exception_handler(PoolTimeoutError)
async def storage_exception_handler(request: Request, exc: Exception):
    # Reached only when a failure escapes the retrying service helpers.
    logger.error(f"Data store unavailable: {exc}", extra=_request_fields(request))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Data store unavailable", "error_code": "STORAGE_UNAVAILABLE"},
        headers={"Retry-After": "1"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True, extra=_request_fields(request))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "error_code": "INTERNAL_ERROR"},
    )


@app.get("/health")
async def health():
    """200 when the database answers, 503 otherwise. Redis is not required."""
    if not check_db_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unavailable"},
        )
    return {"status": "healthy", "timestamp": time.time()}


@app.get("/health/detailed")
async def health_detailed():
    """
    Per-dependency status for dashboards.

    Without Redis the active-template lookups go straight to the database,
    so a missing cache only marks the service degraded.
    """
    from core.cache import get_redis_client
    from redis.exceptions import RedisError

    checks = {}

    started = time.perf_counter()
    checks["database"] = {
        "status": "healthy" if check_db_connection() else "unhealthy",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }

    started = time.perf_counter()
    client = get_redis_client()
    if client is None:
        checks["redis"] = {"status": "unavailable", "latency_ms": None}
    else:
        try:
            client.ping()
            checks["redis"] = {"status": "healthy", "latency_ms": round((time.perf_counter() - started) * 1000, 2)}
        except RedisError as e:
            checks["redis"] = {"status": "error", "latency_ms": None, "error": str(e)}

    if checks["database"]["status"] != "healthy":
        overall = "unhealthy"
    elif checks["redis"]["status"] == "healthy":
        overall = "healthy"
    else:
        overall = "degraded"

    return {
        "status": overall,
        "version": API_VERSION,
        "environment": settings.ENVIRONMENT,
        "timestamp": time.time(),
        "checks": checks,
    }


@app.get("/ping")
async def ping():
    """Liveness only; touches no dependency."""
    return {"pong": True}


app.include_router(days.router)
app.include_router(content.router)
app.include_router(admin.router)
