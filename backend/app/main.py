from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.engine import make_url

from app.api.routes import claims, friends, notifications, wishlists, ws
from app.core.config import settings
from app.core.errors import DomainError
from app.core.logger import configure_logging
from app.core.request_metrics import metrics, route_template
from app.db.session import async_session_factory, ensure_schema_ready
from app.realtime.manager import manager


logger = configure_logging()

app = FastAPI(
    title=settings.app_name,
    description="Friends' wishlists with claims, split gifts and realtime notifications",
    version="0.1.0",
)

cors_origins = settings.backend_cors_origins or [settings.frontend_url]
logger.info("CORS origins parsed=%s", cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)


@app.middleware("http")
async def tracing_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or uuid4().hex
    start = perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        duration_ms = (perf_counter() - start) * 1000.0
        metrics.record(route_template(request.scope), duration_ms, failed=True)
        logger.exception(
            "Request failed id=%s method=%s path=%s duration_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            duration_ms,
        )
        raise

    duration_ms = (perf_counter() - start) * 1000.0
    metrics.record(route_template(request.scope), duration_ms, failed=response.status_code >= 500)
    logger.info(
        "Request completed id=%s method=%s path=%s status=%s duration_ms=%.2f",
        request_id,
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    response.headers["X-Request-Id"] = request_id
    return response


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    # Notification and claim payloads are per-viewer.
    response.headers.setdefault("Cache-Control", "no-store")
    return response


@app.on_event("startup")
async def on_startup() -> None:
    db_url = make_url(settings.postgres_dsn)
    logger.info(
        "Starting %s env=%s db_driver=%s db_host=%s db_name=%s",
        settings.app_name,
        settings.environment,
        db_url.get_backend_name(),
        db_url.host or "-",
        db_url.database,
    )
    await ensure_schema_ready()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    logger.info("Shutting down with %d notification sockets open", manager.connection_count())


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    metrics.record_domain_error(exc.kind)
    logger.info(
        "Domain error on %s %s kind=%s reason=%s",
        request.method,
        request.url.path,
        exc.kind,
        exc.reason,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.reason, "error": exc.kind})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(wishlists.router)
app.include_router(wishlists.items_router)
app.include_router(claims.router)
app.include_router(notifications.router)
app.include_router(friends.router)
app.include_router(ws.router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/health/db")
async def health_db():
    try:
        async with async_session_factory() as session:
            await session.execute(select(1))
    except Exception as e:
        logger.exception("DB health check failed")
        return JSONResponse(status_code=503, content={"status": "error", "error": str(e)})
    return {"status": "ok", "database": make_url(settings.postgres_dsn).get_backend_name()}


@app.get("/metrics")
async def get_metrics() -> dict[str, object]:
    snapshot = metrics.snapshot()
    snapshot["notification_sockets"] = manager.connection_count()
    return snapshot
