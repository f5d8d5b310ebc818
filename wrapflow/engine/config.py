# wrapflow/engine/config.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class StageType(str, Enum):
    API = "API"
    DATABASE = "Database"
    POSTGRES = "Postgres"
    SQL = "SQL"
    MONGO = "Mongo"
    CONDITION = "Condition"
    EVALUATE = "Evaluate"
    RESPONSE_HANDLER = "ResponseHandler"

    @classmethod
    def parse(cls, raw: Any) -> "StageType":
        value = STAGE_TYPE_ALIASES.get(raw, raw)
        return cls(value)


# Short spellings accepted on registration and normalised on load.
STAGE_TYPE_ALIASES: Dict[str, str] = {
    "DB": "Database",
    "Eval": "Evaluate",
}

METHOD_TYPES = ("GET", "POST", "PUT", "PATCH", "DELETE")
ON_ERROR_ACTIONS = ("abort", "continue")

NEXT_INDEX = "index"
NEXT_RESPONSE = "respIndex"
TERMINAL_INDEX = -1


@dataclass(frozen=True)
class NextDirective:
    type: str = NEXT_INDEX
    value: int = TERMINAL_INDEX

    @property
    def is_terminal(self) -> bool:
        # 0 is accepted on registration and, as before, means "no next stage".
        if self.type != NEXT_INDEX:
            return True
        return self.value in (TERMINAL_INDEX, 0)

    @staticmethod
    def from_dict(d: Optional[Dict[str, Any]]) -> "NextDirective":
        if not d:
            return NextDirective()
        kind = str(d.get("type") or NEXT_INDEX)
        value = d.get("value", TERMINAL_INDEX)
        return NextDirective(type=kind, value=int(value) if value is not None else TERMINAL_INDEX)


@dataclass(frozen=True)
class StageDefinition:
    stage_index: int
    stage_name: str
    stage_type: StageType
    next: NextDirective = field(default_factory=NextDirective)
    method_type: Optional[str] = None
    config: Dict[str, Any] = field(default_factory=dict)
    db_config: Optional[Dict[str, Any]] = None
    bindings: Dict[str, Any] = field(default_factory=dict)
    on_error: str = "abort"  # abort | continue

    @property
    def continues_on_error(self) -> bool:
        return self.on_error == "continue"

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "StageDefinition":
        execution = d.get("execution") or {}
        on_error = (execution.get("onError") or {}).get("action") or "abort"
        return StageDefinition(
            stage_index=int(d["stageIndex"]),
            stage_name=str(d.get("stageName") or f"stage-{d['stageIndex']}"),
            stage_type=StageType.parse(d["stageType"]),
            next=NextDirective.from_dict(d.get("next")),
            method_type=d.get("methodType"),
            config=dict(d.get("config") or {}),
            db_config=dict(d["dbConfig"]) if d.get("dbConfig") else None,
            bindings=dict(d.get("bindings") or {}),
            on_error=on_error,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "stageIndex": self.stage_index,
            "stageName": self.stage_name,
            "stageType": self.stage_type.value,
            "next": {"type": self.next.type, "value": self.next.value},
            "config": dict(self.config),
            "bindings": dict(self.bindings),
            "execution": {"onError": {"action": self.on_error}},
        }
        if self.method_type:
            out["methodType"] = self.method_type
        if self.db_config is not None:
            out["dbConfig"] = dict(self.db_config)
        return out


@dataclass(frozen=True)
class PipelineDefinition:
    wrapper_id: str
    account_id: str
    stages: Tuple[StageDefinition, ...]
    wrapper_name: Optional[str] = None
    version: int = 1
    status: str = "active"  # active | inactive

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.stages, key=lambda s: s.stage_index))
        object.__setattr__(self, "stages", ordered)

    @property
    def first_index(self) -> int:
        return self.stages[0].stage_index if self.stages else 1

    def has_stage(self, stage_index: int) -> bool:
        position = stage_index - 1
        return 0 <= position < len(self.stages) and self.stages[position].stage_index == stage_index

    def stage(self, stage_index: int) -> StageDefinition:
        """
        The one place where an external 1-based stageIndex becomes a list position.
        Registration guarantees indices form 1..N, so position = index - 1.
        """
        if not self.has_stage(stage_index):
            raise KeyError(stage_index)
        return self.stages[stage_index - 1]


def load_pipeline_definition(raw: Dict[str, Any]) -> PipelineDefinition:
    return PipelineDefinition(
        wrapper_id=str(raw.get("wrapperId") or ""),
        wrapper_name=raw.get("wrapperName"),
        account_id=str(raw.get("accountId") or ""),
        version=int(raw.get("version") or 1),
        status=str(raw.get("status") or "active"),
        stages=tuple(StageDefinition.from_dict(s) for s in raw.get("stages") or []),
    )
