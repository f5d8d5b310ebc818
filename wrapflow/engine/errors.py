# wrapflow/engine/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .context import StageResult


class WrapflowError(Exception):
    """Base class for every error the engine raises on purpose."""


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    path: str

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "path": self.path}


class ValidationError(WrapflowError):
    """Malformed pipeline definition. Registration is aborted, nothing is stored."""

    def __init__(self, issues: List[ValidationIssue]):
        self.issues = list(issues)
        summary = "; ".join(f"{i.path}: {i.message}" for i in self.issues[:5])
        if len(self.issues) > 5:
            summary += f" (+{len(self.issues) - 5} more)"
        super().__init__(f"Payload validation failed: {summary}")


class ConflictError(WrapflowError):
    """Duplicate active (account, name) pair or duplicate (id, version, account)."""


class ExecutorError(WrapflowError):
    """A stage's underlying operation failed and its policy is abort."""

    def __init__(self, stage_index: int, stage_name: str, result: "StageResult"):
        self.stage_index = stage_index
        self.stage_name = stage_name
        self.result = result
        message = result.message or f"status {result.status_code}"
        super().__init__(f"Stage '{stage_name}' (index {stage_index}) failed: {message}")


class ConfigurationError(WrapflowError):
    """Structurally invalid stage reached at execution time. Never retried."""

    def __init__(self, message: str, stage_index: Optional[int] = None):
        self.stage_index = stage_index
        super().__init__(message)


class StepBudgetExceeded(ConfigurationError):
    """More stage transitions than the per-invocation budget allows (cyclic next pointers)."""


class PipelineNotFound(WrapflowError):
    """No active definition matches the requested (wrapperId, wrapperName)."""
