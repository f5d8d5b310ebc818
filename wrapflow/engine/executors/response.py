# wrapflow/engine/executors/response.py
from __future__ import annotations

from typing import Any, Mapping

from ..bindings import resolve
from ..config import StageDefinition
from ..context import ExecutionContext, StageResult

DEFAULT_STATUS = 200


def _status_code(value: Any) -> int:
    try:
        code = int(value)
    except (TypeError, ValueError):
        return DEFAULT_STATUS
    # alleen geldige HTTP statuscodes (100..599)
    return code if 100 <= code <= 599 else DEFAULT_STATUS


class ResponseExecutor:
    """
    Assembles the terminal response from ``bindings.status/headers/body``.

    Touches nothing outside the execution context. The runner refuses to
    dispatch a response handler whose next directive is not terminal.
    """

    def execute(self, stage: StageDefinition, context: ExecutionContext) -> StageResult:
        resolved = resolve(stage.bindings, context)
        status = resolved.get("status")
        headers = resolved.get("headers")
        body = resolved.get("body")

        return StageResult(
            success=True,
            status_code=_status_code(status) if status is not None else DEFAULT_STATUS,
            headers=dict(headers) if isinstance(headers, Mapping) else {},
            body=body if body is not None else {},
        )
