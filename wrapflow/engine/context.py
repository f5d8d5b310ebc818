# wrapflow/engine/context.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple
import time
import uuid

from .config import PipelineDefinition


@dataclass(frozen=True)
class InboundRequest:
    query: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, Any] = field(default_factory=dict)
    body: Any = field(default_factory=dict)

    @staticmethod
    def from_dict(d: Optional[Mapping[str, Any]]) -> "InboundRequest":
        d = d or {}
        body = d.get("body")
        return InboundRequest(
            query=dict(d.get("query") or {}),
            headers=dict(d.get("headers") or {}),
            body=body if body is not None else {},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"query": dict(self.query), "headers": dict(self.headers), "body": self.body}


@dataclass
class StageResult:
    success: bool
    status_code: int = 200
    headers: Dict[str, Any] = field(default_factory=dict)
    body: Any = None
    message: Optional[str] = None
    duration_ms: Optional[float] = None
    status: Optional[str] = None  # success | failed, set by the runner

    @classmethod
    def failure(
        cls,
        message: str,
        *,
        status_code: int = 500,
        headers: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> "StageResult":
        return cls(
            success=False,
            status_code=status_code,
            headers=dict(headers or {}),
            body=body,
            message=message,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "success": self.success,
            "statusCode": self.status_code,
            "headers": self.headers,
            "body": self.body,
        }
        if self.message is not None:
            out["message"] = self.message
        if self.duration_ms is not None:
            out["durationMs"] = self.duration_ms
        if self.status is not None:
            out["status"] = self.status
        return out


class ExecutionContext:
    """
    Per-invocation data that bindings read from.

    Path root 0 is the inbound request; root N >= 1 is the most recent result
    recorded for stageIndex N. Results are only ever appended.
    """

    def __init__(self, request: InboundRequest):
        self.request = request
        self._request_view = request.to_dict()
        self._journal: List[Tuple[int, Dict[str, Any]]] = []

    def record(self, stage_index: int, result: StageResult) -> None:
        self._journal.append((stage_index, result.to_dict()))

    def root(self, n: int) -> Any:
        if n == 0:
            return self._request_view
        for stage_index, view in reversed(self._journal):
            if stage_index == n:
                return view
        return None

    @property
    def results(self) -> Tuple[Dict[str, Any], ...]:
        return tuple(view for _, view in self._journal)

    @property
    def last_result(self) -> Optional[Dict[str, Any]]:
        return self._journal[-1][1] if self._journal else None

    def __len__(self) -> int:
        return len(self._journal)


@dataclass
class PipelineState:
    """
    Mutable state bag during one run.
    Keep it JSON-serializable (store in the audit log if you want).
    """

    definition: PipelineDefinition
    context: ExecutionContext
    execution_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    logs: list[dict] = field(default_factory=list)  # structured log events
    status: str = "RUNNING"  # RUNNING | SUCCEEDED | FAILED
    current_index: Optional[int] = None
    transitions: int = 0
    failure_step: Optional[int] = None
    error: Optional[Exception] = None
    started_at_ms: int = field(default_factory=lambda: int(time.time() * 1000))
    duration_ms: Optional[float] = None

    @property
    def result(self) -> Optional[Dict[str, Any]]:
        """Terminal result: the last one recorded."""
        return self.context.last_result
