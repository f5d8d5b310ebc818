from __future__ import annotations

from functools import lru_cache

import requests
from fastapi import Request

from app.config import settings
from app.db import SessionLocal
from app.services.audit import SqlAuditLog
from wrapflow.engine import AuditLog, ExecutorRegistry, NullAuditLog, build_registry


@lru_cache(maxsize=1)
def get_http_session() -> requests.Session:
    """One outbound connection pool for API stages, owned by the app."""
    return requests.Session()


@lru_cache(maxsize=1)
def get_registry() -> ExecutorRegistry:
    """Executor registry for FastAPI DI; resources are built here and injected."""
    return build_registry(
        http_session=get_http_session(),
        default_timeout_ms=settings.http_default_timeout_ms,
        default_retries=settings.http_default_retries,
        backoff_step_ms=settings.http_backoff_step_ms,
        backoff_cap_ms=settings.http_backoff_cap_ms,
        verify_tls=settings.upstream_tls_verify,
    )


def get_audit_log(request: Request) -> AuditLog:
    if not settings.audit_enabled:
        return NullAuditLog()
    request_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")
    return SqlAuditLog(SessionLocal, request_id=request_id)
