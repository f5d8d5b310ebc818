import pytest

from wrapflow.engine import (
    ConfigurationError,
    ExecutorRegistry,
    InboundRequest,
    NextDirective,
    StageType,
    load_pipeline_definition,
)
from wrapflow.engine.executors import ResponseExecutor


def test_stage_type_aliases():
    assert StageType.parse("DB") is StageType.DATABASE
    assert StageType.parse("Eval") is StageType.EVALUATE
    assert StageType.parse("API") is StageType.API
    with pytest.raises(ValueError):
        StageType.parse("Ftp")


def test_next_directive_terminal_values():
    assert NextDirective.from_dict({"type": "index", "value": -1}).is_terminal
    assert NextDirective.from_dict({"type": "index", "value": 0}).is_terminal
    assert NextDirective.from_dict({"type": "respIndex"}).is_terminal
    assert not NextDirective.from_dict({"type": "index", "value": 2}).is_terminal
    assert NextDirective.from_dict(None).is_terminal


def test_definition_orders_stages_and_converts_index():
    definition = load_pipeline_definition(
        {
            "wrapperId": "w",
            "accountId": "a",
            "stages": [
                {"stageIndex": 2, "stageName": "b", "stageType": "ResponseHandler"},
                {"stageIndex": 1, "stageName": "a", "stageType": "Eval", "execution": {"onError": {"action": "continue"}}},
            ],
        }
    )
    assert [s.stage_index for s in definition.stages] == [1, 2]
    assert definition.first_index == 1
    assert definition.stage(1).stage_type is StageType.EVALUATE
    assert definition.stage(1).continues_on_error
    assert definition.stage(2).stage_name == "b"
    assert not definition.has_stage(3)
    with pytest.raises(KeyError):
        definition.stage(0)
    assert definition.stage(1).to_dict()["execution"] == {"onError": {"action": "continue"}}


def test_inbound_request_defaults():
    req = InboundRequest.from_dict({"query": {"a": "1"}})
    assert req.to_dict() == {"query": {"a": "1"}, "headers": {}, "body": {}}


def test_registry_rejects_duplicates_and_unknown_types():
    reg = ExecutorRegistry()
    reg.register(StageType.RESPONSE_HANDLER, ResponseExecutor())
    assert StageType.RESPONSE_HANDLER in reg
    with pytest.raises(ValueError):
        reg.register(StageType.RESPONSE_HANDLER, ResponseExecutor())
    with pytest.raises(ConfigurationError):
        reg.get(StageType.MONGO)
