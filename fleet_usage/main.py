from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from starlette.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware
from fleet_usage.api import maintenance, parameters, purposes, reports, trips, users, vehicles
from fleet_usage.core.config import settings
from fleet_usage.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PartialCompletionError,
    StorageError,
    ValidationError,
)
from fleet_usage.core.redis import init_redis, close_redis, is_redis_ready
from fleet_usage.core.metrics import request_count, request_duration, db_connected, redis_connected, get_metrics_text
from fleet_usage.db.session import engine, init_db, close_db
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import time
import logging

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            # Label by route template so trip ids do not explode cardinality.
            route = request.scope.get("route")
            endpoint = getattr(route, "path", request.url.path)
            request_count.labels(
                method=request.method,
                endpoint=endpoint,
                status=status
            ).inc()
            request_duration.labels(
                method=request.method,
                endpoint=endpoint
            ).observe(time.time() - start_time)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting...")

    try:
        await init_db()
        db_connected.set(1)
        logger.info("Database connected")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        db_connected.set(0)
        raise

    # Redis only backs Idempotency-Key replay; the service runs without it.
    logger.info("Initializing Redis connection...")
    try:
        await init_redis()
        redis_connected.set(1)
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        redis_connected.set(0)

    yield

    logger.info("Application shutting down...")
    await close_redis()
    redis_connected.set(0)
    await close_db()
    db_connected.set(0)
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    lifespan=lifespan
)

app.add_middleware(MetricsMiddleware)

app.include_router(vehicles.router)
app.include_router(users.router)
app.include_router(purposes.router)
app.include_router(maintenance.router)
app.include_router(parameters.router)
app.include_router(trips.router)
app.include_router(reports.router)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "error": "validation_error"})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc), "error": "not_found"})


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
    return JSONResponse(
        status_code=409,
        content={
            "detail": str(exc),
            "error": "invalid_transition",
            "current_status": str(exc.current),
            "target_status": str(exc.target),
        },
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    return JSONResponse(status_code=503, content={"detail": str(exc), "error": "storage_error"})


@app.exception_handler(PartialCompletionError)
async def partial_completion_handler(request: Request, exc: PartialCompletionError):
    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "error": "partial_completion",
            "trip_id": exc.trip_id,
            "vehicle_id": exc.vehicle_id,
            "trip_written": exc.trip_written,
            "vehicle_written": exc.vehicle_written,
            "end_odometer": exc.end_odometer,
        },
    )


@app.get("/metrics", tags=["monitoring"])
async def metrics():
    return Response(
        content=get_metrics_text(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


@app.get("/health", tags=["monitoring"])
async def health_check():
    return {
        "status": "healthy",
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "dependencies": {
            "redis": "connected" if is_redis_ready() else "disconnected",
            "database": "connected"
        }
    }


@app.get("/readiness", tags=["monitoring"])
async def readiness_check():
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"ready": False, "reason": "Database not available"},
        )

    return {
        "ready": True,
        "service": settings.API_TITLE,
        "redis": "connected" if is_redis_ready() else "disconnected",
    }


@app.get("/", tags=["root"])
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }
