from .bindings import resolve, resolve_path
from .config import (
    NextDirective,
    PipelineDefinition,
    StageDefinition,
    StageType,
    load_pipeline_definition,
)
from .context import ExecutionContext, InboundRequest, PipelineState, StageResult
from .errors import (
    ConfigurationError,
    ConflictError,
    ExecutorError,
    PipelineNotFound,
    StepBudgetExceeded,
    ValidationError,
    ValidationIssue,
    WrapflowError,
)
from .facade import AuditLog, NullAuditLog, build_registry, run_wrapper
from .registry import ExecutorRegistry, StageExecutor
from .runner import run_pipeline
from .validation import validate_pipeline_payload

__all__ = [
    "AuditLog",
    "ConfigurationError",
    "ConflictError",
    "ExecutionContext",
    "ExecutorError",
    "ExecutorRegistry",
    "InboundRequest",
    "NextDirective",
    "NullAuditLog",
    "PipelineDefinition",
    "PipelineNotFound",
    "PipelineState",
    "StageDefinition",
    "StageExecutor",
    "StageResult",
    "StageType",
    "StepBudgetExceeded",
    "ValidationError",
    "ValidationIssue",
    "WrapflowError",
    "build_registry",
    "load_pipeline_definition",
    "resolve",
    "resolve_path",
    "run_pipeline",
    "run_wrapper",
    "validate_pipeline_payload",
]
