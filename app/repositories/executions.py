# app/repositories/executions.py
"""Audit log tables: one row per invocation, one row per dispatched stage."""
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.models.execution_log import ExecutionLogRecord, StageLogRecord


def _now() -> datetime:
    return datetime.now(timezone.utc)


def start_execution(
    db: Session,
    *,
    wrapper_id: str,
    version: int,
    account_id: str,
    request_id: Optional[str],
    input_snapshot: Any,
) -> ExecutionLogRecord:
    rec = ExecutionLogRecord(
        wrapper_id=wrapper_id,
        version=version,
        account_id=account_id,
        request_id=request_id,
        status="in-progress",
        start_time=_now(),
        input_snapshot=input_snapshot,
    )
    db.add(rec)
    db.commit()
    db.refresh(rec)
    return rec


def log_stage(
    db: Session,
    *,
    execution_id: int,
    stage_index: int,
    stage_name: str,
    stage_type: str,
    status: str,
    duration_ms: Optional[float],
    request_snapshot: Any,
    response_snapshot: Any,
    error_message: Optional[str] = None,
) -> StageLogRecord:
    rec = StageLogRecord(
        execution_id=execution_id,
        stage_index=stage_index,
        stage_name=stage_name,
        stage_type=stage_type,
        status=status,
        duration_ms=duration_ms,
        request_snapshot=request_snapshot,
        response_snapshot=response_snapshot,
        error_message=error_message,
    )
    db.add(rec)
    db.commit()
    return rec


def finish_execution(
    db: Session,
    *,
    execution_id: int,
    status: str,
    output_snapshot: Any,
    duration_ms: Optional[float],
    error_message: Optional[str] = None,
) -> Optional[ExecutionLogRecord]:
    rec = db.get(ExecutionLogRecord, execution_id)
    if rec is None:
        return None
    rec.status = status
    rec.end_time = _now()
    rec.duration_ms = duration_ms
    rec.output_snapshot = output_snapshot
    rec.error_message = error_message
    db.commit()
    return rec


def get_execution(db: Session, execution_id: int) -> ExecutionLogRecord | None:
    return db.get(ExecutionLogRecord, execution_id)


def stages_for_execution(db: Session, execution_id: int) -> list[StageLogRecord]:
    return (
        db.query(StageLogRecord)
        .filter(StageLogRecord.execution_id == execution_id)
        .order_by(StageLogRecord.id.asc())
        .all()
    )
