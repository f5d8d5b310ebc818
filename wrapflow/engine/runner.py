# wrapflow/engine/runner.py
from __future__ import annotations

import time
from typing import Any, Callable, Optional

import structlog

from .config import (
    NEXT_INDEX,
    TERMINAL_INDEX,
    PipelineDefinition,
    StageDefinition,
    StageType,
)
from .context import ExecutionContext, InboundRequest, PipelineState, StageResult
from .errors import (
    ConfigurationError,
    ExecutorError,
    StepBudgetExceeded,
    WrapflowError,
)
from .registry import ExecutorRegistry

logger = structlog.get_logger(__name__)

DEFAULT_MAX_TRANSITIONS = 1000

# (state, stage, result, duration_ms) -> None, called once per dispatched stage
StageHook = Callable[[PipelineState, StageDefinition, StageResult, float], None]


def _log(state: PipelineState, level: str, msg: str, **fields: Any) -> None:
    event = {
        "level": level,
        "message": msg,
        "wrapper_id": state.definition.wrapper_id,
        "version": state.definition.version,
        "execution_id": state.execution_id,
        **fields,
    }
    state.logs.append(event)
    getattr(logger, level)(msg, **{k: v for k, v in event.items() if k not in ("level", "message")})


def _lookup(definition: PipelineDefinition, stage_index: int) -> StageDefinition:
    try:
        return definition.stage(stage_index)
    except KeyError:
        raise ConfigurationError(
            f"Stage index {stage_index} does not exist in pipeline {definition.wrapper_id}",
            stage_index=stage_index,
        )


def _check_dispatchable(stage: StageDefinition) -> None:
    if stage.stage_type is StageType.RESPONSE_HANDLER and (
        stage.next.type != NEXT_INDEX or stage.next.value != TERMINAL_INDEX
    ):
        raise ConfigurationError(
            f"Invalid response handler: stage '{stage.stage_name}' (index {stage.stage_index}) "
            f"must be terminal (next.value == -1)",
            stage_index=stage.stage_index,
        )


def _dispatch(registry: ExecutorRegistry, stage: StageDefinition, context: ExecutionContext) -> StageResult:
    executor = registry.get(stage.stage_type)
    try:
        return executor.execute(stage, context)
    except WrapflowError:
        raise
    except Exception as e:
        # executors horen niet te raisen; telt als gewone failure
        return StageResult.failure(f"{type(e).__name__}: {e}")


def run_pipeline(
    definition: PipelineDefinition,
    request: InboundRequest,
    registry: ExecutorRegistry,
    *,
    max_transitions: int = DEFAULT_MAX_TRANSITIONS,
    on_stage: Optional[StageHook] = None,
) -> PipelineState:
    """
    Walk the stage chain one stage at a time, starting at stage 1.

    Running(i) -> Running(next) on success (or on failure with onError=continue),
    Running(i) -> Completed when the stage's next directive is terminal,
    Running(i) -> Failed on an aborting failure or any configuration error.
    """
    state = PipelineState(definition=definition, context=ExecutionContext(request))
    started = time.perf_counter()
    stage_index = definition.first_index

    _log(state, "info", "pipeline_start", stage_count=len(definition.stages))

    try:
        while True:
            if state.transitions >= max_transitions:
                raise StepBudgetExceeded(
                    f"Step budget of {max_transitions} stage transitions exhausted "
                    f"(last stage index {state.current_index})",
                    stage_index=state.current_index,
                )
            state.transitions += 1
            state.current_index = stage_index

            stage = _lookup(definition, stage_index)
            _check_dispatchable(stage)

            _log(
                state,
                "info",
                "stage_start",
                stage_index=stage.stage_index,
                stage_name=stage.stage_name,
                stage_type=stage.stage_type.value,
            )

            t0 = time.perf_counter()
            result = _dispatch(registry, stage, state.context)
            duration_ms = round((time.perf_counter() - t0) * 1000, 2)
            result.duration_ms = duration_ms
            result.status = "success" if result.success else "failed"

            if on_stage is not None:
                on_stage(state, stage, result, duration_ms)

            _log(
                state,
                "info" if result.success else "warning",
                "stage_end",
                stage_index=stage.stage_index,
                stage_name=stage.stage_name,
                status=result.status,
                status_code=result.status_code,
                duration_ms=duration_ms,
                error=result.message,
            )

            if not result.success:
                if not stage.continues_on_error:
                    raise ExecutorError(stage.stage_index, stage.stage_name, result)
                _log(state, "warning", "stage_failed_continue", stage_index=stage.stage_index)

            state.context.record(stage.stage_index, result)

            if stage.next.is_terminal:
                break
            stage_index = stage.next.value

    except WrapflowError as e:
        state.status = "FAILED"
        state.error = e
        state.failure_step = state.current_index
        state.duration_ms = round((time.perf_counter() - started) * 1000, 2)
        _log(
            state,
            "error",
            "pipeline_failed",
            failure_step=state.failure_step,
            error=f"{type(e).__name__}: {e}",
            duration_ms=state.duration_ms,
        )
        return state

    state.status = "SUCCEEDED"
    state.duration_ms = round((time.perf_counter() - started) * 1000, 2)
    _log(state, "info", "pipeline_succeeded", transitions=state.transitions, duration_ms=state.duration_ms)
    return state
