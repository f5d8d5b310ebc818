import copy

import pytest

from wrapflow.engine import ValidationError, validate_pipeline_payload
from wrapflow.engine.validation import collect_issues

VALID = {
    "accountId": "acc-1",
    "wrapperName": "orders",
    "stages": [
        {
            "stageIndex": 1,
            "stageName": "fetch",
            "stageType": "API",
            "methodType": "GET",
            "next": {"type": "index", "value": 2},
            "config": {"url": "https://api.example.com/orders/{id}"},
            "bindings": {"pathVariables": {"id": "?0.query.id?"}},
        },
        {
            "stageIndex": 2,
            "stageName": "respond",
            "stageType": "ResponseHandler",
            "next": {"type": "index", "value": -1},
            "bindings": {"status": 200, "body": "?1.body?"},
        },
    ],
}


def _payload(**changes):
    p = copy.deepcopy(VALID)
    p.update(changes)
    return p


def _codes(payload):
    return {i.code for i in collect_issues(payload)}


def test_valid_payload_passes_and_is_copied():
    out = validate_pipeline_payload(VALID)
    assert out == VALID
    assert out is not VALID


def test_aliases_are_canonicalised():
    p = _payload()
    p["stages"][0]["stageType"] = "DB"
    p["stages"][0]["dbConfig"] = {"connectionString": "sqlite://", "query": "SELECT 1"}
    out = validate_pipeline_payload(p)
    assert out["stages"][0]["stageType"] == "Database"


def test_all_issues_are_reported_together():
    p = _payload(accountId="", wrapperName=None)
    p["stages"][0]["stageType"] = "Ftp"
    p["stages"][0]["methodType"] = "FETCH"

    with pytest.raises(ValidationError) as exc:
        validate_pipeline_payload(p)

    paths = {i.path for i in exc.value.issues}
    assert {"accountId", "wrapperName", "stages[0].stageType", "stages[0].methodType"} <= paths
    assert str(exc.value).startswith("Payload validation failed")


def test_non_object_payload():
    assert _codes(["nope"]) == {"INVALID_PAYLOAD"}


def test_stage_count_bounds():
    assert "INVALID_STAGES" in _codes(_payload(stages=[]))
    assert "INVALID_STAGES" in _codes(_payload(stages="x"))
    assert "INVALID_STAGES" in {i.code for i in collect_issues(VALID, max_stages=1)}


def test_next_directive_rules():
    p = _payload()
    p["stages"][0]["next"] = {"type": "index", "value": -3}
    assert "OUT_OF_RANGE" in _codes(p)

    p["stages"][0]["next"] = {"type": "index", "value": 9}
    assert "UNKNOWN_STAGE" in _codes(p)

    p["stages"][0]["next"] = {"type": "index", "value": "2"}
    assert "INVALID_NUMBER" in _codes(p)

    p["stages"][0]["next"] = {"type": "jump", "value": 2}
    assert "INVALID_NEXT" in _codes(p)

    p["stages"][0]["next"] = None
    assert "INVALID_NEXT" in _codes(p)

    p["stages"][0]["next"] = {"type": "index", "value": 0}
    assert _codes(p) == set()

    p["stages"][0]["next"] = {"type": "respIndex"}
    assert _codes(p) == set()


def test_response_handler_must_be_terminal():
    p = _payload()
    p["stages"][1]["next"] = {"type": "index", "value": 1}
    assert "RESPONSE_NOT_TERMINAL" in _codes(p)


def test_indices_must_be_continuous_and_unique():
    p = _payload()
    p["stages"][1]["stageIndex"] = 3
    assert "STAGE_INDEX_NOT_CONTINUOUS" in _codes(p)

    p["stages"][1]["stageIndex"] = 1
    assert "DUPLICATE_STAGE_INDEX" in _codes(p)

    p["stages"][1]["stageIndex"] = 0
    assert "INVALID_INDEX" in _codes(p)


def test_execution_block_rules():
    p = _payload()
    p["stages"][0]["execution"] = {"parallel": False, "onError": {"action": "continue"}}
    assert _codes(p) == set()

    p["stages"][0]["execution"] = {"parallel": True}
    assert "PARALLEL_UNSUPPORTED" in _codes(p)

    p["stages"][0]["execution"] = {"parallel": "yes"}
    assert "INVALID_BOOLEAN" in _codes(p)

    p["stages"][0]["execution"] = {"onError": {"action": "retry"}}
    assert "NOT_ALLOWED" in _codes(p)


def test_object_fields_and_name_lengths():
    p = _payload(wrapperName="x" * 256)
    p["stages"][0]["bindings"] = "?0.body?"
    p["stages"][0]["config"] = []
    codes = _codes(p)
    assert "TOO_LONG" in codes
    assert "INVALID_OBJECT" in codes
