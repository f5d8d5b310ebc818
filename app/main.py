# app/main.py
import time
import uuid

from fastapi import FastAPI, Request

from app.config import settings
from app.core.logging_config import setup_logging, logger
from app.db import Base, engine
from app import models  # noqa: F401  (registreert SQLAlchemy modellen)
from app.routers import health, wrappers
from app.observability.metrics import router as metrics_router


# ----------------------------------------------------
# App init
# ----------------------------------------------------
app = FastAPI(title="wrapflow", version="0.1.0")

setup_logging()
logger.info("startup", service="wrapflow-api", env=settings.app_env)


# ----------------------------------------------------
# Logging middleware
# ----------------------------------------------------
@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    start = time.time()

    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id
    client_ip = request.client.host if request.client else "unknown"

    bound_logger = logger.bind(
        request_id=request_id,
        ip=client_ip,
        endpoint=str(request.url.path),
        method=request.method,
    )

    bound_logger.info("request_started")
    response = await call_next(request)
    latency_ms = round((time.time() - start) * 1000, 2)

    bound_logger.bind(status_code=response.status_code, latency_ms=latency_ms).info(
        "request_finished"
    )
    response.headers["X-Request-ID"] = request_id
    return response


# ----------------------------------------------------
# Routers
# ----------------------------------------------------
app.include_router(health.router)
app.include_router(wrappers.router)
if settings.metrics_enabled:
    app.include_router(metrics_router)  # /metrics


# ----------------------------------------------------
# Startup
# ----------------------------------------------------
@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    if not settings.upstream_tls_verify:
        logger.warning(
            "upstream_tls_verification_disabled",
            hint="set UPSTREAM_TLS_VERIFY=true to validate upstream certificates",
        )
