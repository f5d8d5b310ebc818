# wrapflow/engine/executors/db.py
from __future__ import annotations

import base64
from datetime import date, datetime, time as dtime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

import structlog

from ..config import StageDefinition
from ..context import ExecutionContext, StageResult
from ..registry import StageExecutor

logger = structlog.get_logger(__name__)

MONGO_SCHEMES = ("mongodb://", "mongodb+srv://")


def jsonable(value: Any) -> Any:
    """Make driver values (Decimal, datetime, ObjectId, bytes...) JSON friendly."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [jsonable(v) for v in value]
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (datetime, date, dtime)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return str(value)


class DatabaseExecutor:
    """
    Base for the database executors.

    Each invocation opens its own connection and closes it before returning;
    nothing is pooled across stages. Connection and operation errors come back
    as failure results with ``body = {"error": ...}``.
    """

    backend = "database"

    def execute(self, stage: StageDefinition, context: ExecutionContext) -> StageResult:
        db_config: Dict[str, Any] = stage.db_config or {}
        if not db_config.get("connectionString"):
            return self._failure(stage, f"{self.backend} connection missing")
        try:
            body = self.run(stage, db_config, context)
        except Exception as e:
            return self._failure(stage, f"{type(e).__name__}: {e}")
        return StageResult(success=True, status_code=200, headers={}, body=jsonable(body))

    def run(self, stage: StageDefinition, db_config: Dict[str, Any], context: ExecutionContext) -> Any:
        raise NotImplementedError

    def _failure(self, stage: StageDefinition, message: str) -> StageResult:
        logger.error(
            "db_stage_failed",
            backend=self.backend,
            stage_name=stage.stage_name,
            stage_index=stage.stage_index,
            error=message,
        )
        return StageResult.failure(message, status_code=500, body={"error": message})


def backend_for(db_config: Optional[Mapping[str, Any]]) -> str:
    """'mongo' or 'sql' for a generic Database stage."""
    db_config = db_config or {}
    declared = str(db_config.get("type") or db_config.get("engine") or "").lower()
    if declared:
        return "mongo" if declared.startswith("mongo") else "sql"
    conn = str(db_config.get("connectionString") or "")
    return "mongo" if conn.startswith(MONGO_SCHEMES) else "sql"


class DatabaseRouter:
    """Executor for the generic ``Database`` stage type: picks the backend per stage."""

    def __init__(self, sql: StageExecutor, mongo: StageExecutor):
        self._by_backend = {"sql": sql, "mongo": mongo}

    def execute(self, stage: StageDefinition, context: ExecutionContext) -> StageResult:
        return self._by_backend[backend_for(stage.db_config)].execute(stage, context)
