# wrapflow/engine/validation.py
"""
Registration-time validation of pipeline payloads.

Runs once, before anything is stored; never during execution. All problems
are collected and reported together in one ``ValidationError``. ``bindings``,
``config`` and ``dbConfig`` are only checked for being objects: executors
validate their own fields at run time.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping

from .config import (
    METHOD_TYPES,
    NEXT_INDEX,
    NEXT_RESPONSE,
    ON_ERROR_ACTIONS,
    STAGE_TYPE_ALIASES,
    TERMINAL_INDEX,
    StageType,
)
from .errors import ValidationError, ValidationIssue

MAX_STAGES = 200
MAX_NAME_LENGTH = 255
MAX_STAGE_NAME_LENGTH = 200

STAGE_TYPES = tuple(t.value for t in StageType) + tuple(STAGE_TYPE_ALIASES)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class _Issues:
    def __init__(self) -> None:
        self.items: List[ValidationIssue] = []

    def add(self, path: str, code: str, message: str) -> None:
        self.items.append(ValidationIssue(code=code, message=message, path=path))

    def string(self, value: Any, path: str, max_length: int) -> None:
        if not isinstance(value, str) or not value.strip():
            self.add(path, "INVALID_STRING", f"{path} must be a non-empty string")
        elif len(value) > max_length:
            self.add(path, "TOO_LONG", f"{path} exceeds max length {max_length}")

    def one_of(self, value: Any, path: str, allowed: tuple) -> bool:
        if value not in allowed:
            self.add(path, "NOT_ALLOWED", f"{path} must be one of: {', '.join(allowed)}")
            return False
        return True

    def mapping(self, value: Any, path: str) -> None:
        if value is not None and not isinstance(value, Mapping):
            self.add(path, "INVALID_OBJECT", f"{path} must be an object")


def _validate_next(issues: _Issues, nxt: Any, path: str, stage_count: int) -> None:
    if not isinstance(nxt, Mapping):
        issues.add(path, "INVALID_NEXT", f"{path} is required and must be an object")
        return
    if nxt.get("type") == NEXT_RESPONSE:
        return
    if nxt.get("type") != NEXT_INDEX:
        issues.add(f"{path}.type", "INVALID_NEXT", f'{path}.type must be "{NEXT_INDEX}" or "{NEXT_RESPONSE}"')
        return
    value = nxt.get("value")
    if not _is_int(value):
        issues.add(f"{path}.value", "INVALID_NUMBER", f"{path}.value must be an integer")
    elif value < 0 and value != TERMINAL_INDEX:
        issues.add(f"{path}.value", "OUT_OF_RANGE", f"{path}.value must be >= 0 or {TERMINAL_INDEX}")
    elif value > stage_count:
        issues.add(f"{path}.value", "UNKNOWN_STAGE", f"{path}.value points at stage {value}, pipeline has {stage_count}")


def _validate_stage(issues: _Issues, stage: Any, path: str, stage_count: int) -> None:
    if not isinstance(stage, Mapping):
        issues.add(path, "INVALID_STAGE", "Stage must be an object")
        return

    index = stage.get("stageIndex")
    if not _is_int(index) or index < 1:
        issues.add(f"{path}.stageIndex", "INVALID_INDEX", f"{path}.stageIndex must be an integer >= 1")

    issues.string(stage.get("stageName"), f"{path}.stageName", MAX_STAGE_NAME_LENGTH)
    issues.one_of(stage.get("stageType"), f"{path}.stageType", STAGE_TYPES)

    if stage.get("methodType") is not None:
        issues.one_of(stage.get("methodType"), f"{path}.methodType", METHOD_TYPES)

    _validate_next(issues, stage.get("next"), f"{path}.next", stage_count)

    if stage.get("stageType") == StageType.RESPONSE_HANDLER.value:
        nxt = stage.get("next")
        if isinstance(nxt, Mapping) and not (nxt.get("type") == NEXT_INDEX and nxt.get("value") == TERMINAL_INDEX):
            issues.add(
                f"{path}.next",
                "RESPONSE_NOT_TERMINAL",
                f"{path}: a ResponseHandler stage must have next.value == {TERMINAL_INDEX}",
            )

    execution = stage.get("execution")
    issues.mapping(execution, f"{path}.execution")
    if isinstance(execution, Mapping):
        parallel = execution.get("parallel")
        if parallel is not None:
            if not isinstance(parallel, bool):
                issues.add(f"{path}.execution.parallel", "INVALID_BOOLEAN", "execution.parallel must be boolean")
            elif parallel:
                issues.add(
                    f"{path}.execution.parallel",
                    "PARALLEL_UNSUPPORTED",
                    "parallel stage execution is not supported; stages run one at a time",
                )
        on_error = execution.get("onError")
        issues.mapping(on_error, f"{path}.execution.onError")
        if isinstance(on_error, Mapping) and on_error.get("action") is not None:
            issues.one_of(on_error.get("action"), f"{path}.execution.onError.action", ON_ERROR_ACTIONS)

    issues.mapping(stage.get("bindings"), f"{path}.bindings")
    issues.mapping(stage.get("config"), f"{path}.config")
    issues.mapping(stage.get("dbConfig"), f"{path}.dbConfig")


def _validate_index_range(issues: _Issues, stages: List[Any]) -> None:
    indexes = [s.get("stageIndex") for s in stages if isinstance(s, Mapping) and _is_int(s.get("stageIndex"))]
    seen = set()
    for i in indexes:
        if i in seen:
            issues.add("stages", "DUPLICATE_STAGE_INDEX", f"Duplicate stageIndex {i}")
        seen.add(i)
    if seen and sorted(seen) != list(range(1, len(stages) + 1)):
        issues.add(
            "stages",
            "STAGE_INDEX_NOT_CONTINUOUS",
            f"stageIndex values must form the range 1..{len(stages)} without gaps",
        )


def collect_issues(payload: Any, *, max_stages: int = MAX_STAGES) -> List[ValidationIssue]:
    issues = _Issues()
    if not isinstance(payload, Mapping):
        issues.add("", "INVALID_PAYLOAD", "Pipeline payload must be an object")
        return issues.items

    issues.string(payload.get("accountId"), "accountId", MAX_NAME_LENGTH)
    issues.string(payload.get("wrapperName"), "wrapperName", MAX_NAME_LENGTH)

    stages = payload.get("stages")
    if not isinstance(stages, list) or not (1 <= len(stages) <= max_stages):
        issues.add("stages", "INVALID_STAGES", f"Stages must be an array with 1-{max_stages} stages")
        return issues.items

    for pos, stage in enumerate(stages):
        _validate_stage(issues, stage, f"stages[{pos}]", len(stages))
    _validate_index_range(issues, stages)
    return issues.items


def validate_pipeline_payload(payload: Any, *, max_stages: int = MAX_STAGES) -> Dict[str, Any]:
    """
    Validate a registration payload; raise ``ValidationError`` with every issue found.

    Returns a copy with stage type aliases (``DB``, ``Eval``) spelled canonically.
    """
    issues = collect_issues(payload, max_stages=max_stages)
    if issues:
        raise ValidationError(issues)

    out = dict(payload)
    out["stages"] = [
        {**s, "stageType": STAGE_TYPE_ALIASES.get(s["stageType"], s["stageType"])}
        for s in payload["stages"]
    ]
    return out

