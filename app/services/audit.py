# app/services/audit.py
from __future__ import annotations

from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from app.core.logging_config import logger
from app.repositories import executions as repo
from wrapflow.engine.config import PipelineDefinition, StageDefinition
from wrapflow.engine.context import InboundRequest, StageResult
from wrapflow.engine.executors.db import jsonable


class SqlAuditLog:
    """
    Audit log backed by the execution_logs / stage_logs tables.

    Fail open: every write gets its own session, and any error is logged and
    swallowed so auditing can never fail an invocation.
    """

    def __init__(self, session_factory: Callable[[], Session], request_id: Optional[str] = None):
        self._session_factory = session_factory
        self._request_id = request_id

    def _write(self, what: str, fn: Callable[[Session], Any]) -> Any:
        db = self._session_factory()
        try:
            return fn(db)
        except Exception as e:
            db.rollback()
            logger.error("audit_write_failed", what=what, error=f"{type(e).__name__}: {e}")
            return None
        finally:
            db.close()

    def start_execution(self, definition: PipelineDefinition, request: InboundRequest) -> Optional[int]:
        rec = self._write(
            "start_execution",
            lambda db: repo.start_execution(
                db,
                wrapper_id=definition.wrapper_id,
                version=definition.version,
                account_id=definition.account_id,
                request_id=self._request_id,
                input_snapshot=jsonable(request.to_dict()),
            ),
        )
        return rec.id if rec is not None else None

    def log_stage(
        self,
        handle: Optional[int],
        stage: StageDefinition,
        result: StageResult,
        status: str,
        duration_ms: float,
        error: Optional[str] = None,
    ) -> None:
        if handle is None:
            return
        self._write(
            "log_stage",
            lambda db: repo.log_stage(
                db,
                execution_id=handle,
                stage_index=stage.stage_index,
                stage_name=stage.stage_name,
                stage_type=stage.stage_type.value,
                status=status,
                duration_ms=duration_ms,
                request_snapshot=jsonable(stage.bindings),
                response_snapshot=jsonable(result.to_dict()),
                error_message=error,
            ),
        )

    def finish_execution(
        self,
        handle: Optional[int],
        status: str,
        output: Any,
        duration_ms: Optional[float],
        error: Optional[str] = None,
    ) -> None:
        if handle is None:
            return
        self._write(
            "finish_execution",
            lambda db: repo.finish_execution(
                db,
                execution_id=handle,
                status=status,
                output_snapshot=jsonable(output),
                duration_ms=duration_ms,
                error_message=error,
            ),
        )
