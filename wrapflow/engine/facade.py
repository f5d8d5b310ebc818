# wrapflow/engine/facade.py
from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

import requests
import structlog

from .config import PipelineDefinition, StageDefinition, StageType
from .context import InboundRequest, PipelineState, StageResult
from .executors import (
    ApiExecutor,
    DatabaseRouter,
    MongoExecutor,
    ResponseExecutor,
    SqlExecutor,
)
from .executors.mongo import stage_client
from .executors.sql import stage_engine
from .registry import ExecutorRegistry
from .runner import DEFAULT_MAX_TRANSITIONS, run_pipeline

logger = structlog.get_logger(__name__)


class AuditLog(Protocol):
    """
    Journal of invocations and stage transitions.

    Implementations must not raise: audit failures are logged and swallowed
    at this boundary so they never fail an invocation.
    """

    def start_execution(self, definition: PipelineDefinition, request: InboundRequest) -> Optional[Any]: ...

    def log_stage(
        self,
        handle: Optional[Any],
        stage: StageDefinition,
        result: StageResult,
        status: str,
        duration_ms: float,
        error: Optional[str] = None,
    ) -> None: ...

    def finish_execution(
        self,
        handle: Optional[Any],
        status: str,
        output: Any,
        duration_ms: Optional[float],
        error: Optional[str] = None,
    ) -> None: ...


class NullAuditLog:
    def start_execution(self, definition, request):
        return None

    def log_stage(self, handle, stage, result, status, duration_ms, error=None):
        return None

    def finish_execution(self, handle, status, output, duration_ms, error=None):
        return None


def build_registry(
    *,
    http_session: Optional[requests.Session] = None,
    sql_engine_factory: Callable = stage_engine,
    mongo_client_factory: Callable = stage_client,
    default_timeout_ms: int = 10000,
    default_retries: int = 0,
    backoff_step_ms: int = 200,
    backoff_cap_ms: int = 2000,
    verify_tls: bool = False,
    sleep: Optional[Callable[[float], None]] = None,
) -> ExecutorRegistry:
    """Register an executor for every executable stage type, with injected resources."""
    api_kwargs = dict(
        default_timeout_ms=default_timeout_ms,
        default_retries=default_retries,
        backoff_step_ms=backoff_step_ms,
        backoff_cap_ms=backoff_cap_ms,
        verify_tls=verify_tls,
    )
    if sleep is not None:
        api_kwargs["sleep"] = sleep

    sql = SqlExecutor(engine_factory=sql_engine_factory)
    mongo = MongoExecutor(client_factory=mongo_client_factory)

    registry = ExecutorRegistry()
    registry.register(StageType.API, ApiExecutor(http_session or requests.Session(), **api_kwargs))
    registry.register(StageType.DATABASE, DatabaseRouter(sql=sql, mongo=mongo))
    registry.register(StageType.POSTGRES, sql)
    registry.register(StageType.SQL, sql)
    registry.register(StageType.MONGO, mongo)
    registry.register(StageType.RESPONSE_HANDLER, ResponseExecutor())
    # Condition and Evaluate validate but have no executor: dispatch fails as unsupported.
    return registry


def run_wrapper(
    definition: PipelineDefinition,
    request: InboundRequest,
    *,
    registry: ExecutorRegistry,
    audit: Optional[AuditLog] = None,
    max_transitions: int = DEFAULT_MAX_TRANSITIONS,
    on_stage: Optional[Callable[[PipelineState, StageDefinition, StageResult, float], None]] = None,
) -> PipelineState:
    """Run one invocation and journal it: start record, one record per stage, finish record."""
    audit = audit or NullAuditLog()
    handle = audit.start_execution(definition, request)

    def _journal(state: PipelineState, stage: StageDefinition, result: StageResult, duration_ms: float) -> None:
        audit.log_stage(
            handle,
            stage,
            result,
            result.status or ("success" if result.success else "failed"),
            duration_ms,
            error=result.message if not result.success else None,
        )
        if on_stage is not None:
            on_stage(state, stage, result, duration_ms)

    state = run_pipeline(
        definition,
        request,
        registry,
        max_transitions=max_transitions,
        on_stage=_journal,
    )

    if state.status == "SUCCEEDED":
        audit.finish_execution(handle, "success", state.result, state.duration_ms)
    else:
        audit.finish_execution(
            handle,
            "failed",
            state.result,
            state.duration_ms,
            error=f"{type(state.error).__name__}: {state.error}" if state.error else None,
        )

    logger.info(
        "wrapper_executed",
        wrapper_id=definition.wrapper_id,
        version=definition.version,
        status=state.status,
        transitions=state.transitions,
        duration_ms=state.duration_ms,
    )
    return state
