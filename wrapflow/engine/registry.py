# wrapflow/engine/registry.py
from __future__ import annotations

from typing import Dict, Protocol

from .config import StageDefinition, StageType
from .context import ExecutionContext, StageResult
from .errors import ConfigurationError


class StageExecutor(Protocol):
    """Uniform executor contract. Implementations map every fault to a failure result."""

    def execute(self, stage: StageDefinition, context: ExecutionContext) -> StageResult: ...


class ExecutorRegistry:
    def __init__(self) -> None:
        self._executors: Dict[StageType, StageExecutor] = {}

    def register(self, stage_type: StageType, executor: StageExecutor) -> None:
        if stage_type in self._executors:
            raise ValueError(f"Executor already registered: {stage_type.value}")
        self._executors[stage_type] = executor

    def get(self, stage_type: StageType) -> StageExecutor:
        try:
            return self._executors[stage_type]
        except KeyError:
            raise ConfigurationError(f"Unsupported stage type: {stage_type.value}")

    def __contains__(self, stage_type: object) -> bool:
        return stage_type in self._executors
