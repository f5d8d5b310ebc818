from wrapflow.engine import StageDefinition, StageResult
from wrapflow.engine.executors import ResponseExecutor


def _handler(bindings):
    return StageDefinition.from_dict(
        {
            "stageIndex": 2,
            "stageName": "respond",
            "stageType": "ResponseHandler",
            "next": {"type": "index", "value": -1},
            "bindings": bindings,
        }
    )


def test_assembles_status_headers_and_body(make_context):
    ctx = make_context(body={"name": "Ann"})
    ctx.record(1, StageResult(success=True, status_code=200, body={"id": 5, "raw": '{"not": "parsed"}'}))

    result = ResponseExecutor().execute(
        _handler(
            {
                "status": "?1.statusCode?",
                "headers": {"X-Id": "?1.id?"},
                "body": {"id": "?1.id?", "greeting": "hi ?0.body.name?", "raw": "?1.raw?"},
            }
        ),
        ctx,
    )

    assert result.success is True
    assert result.status_code == 200
    assert result.headers == {"X-Id": 5}
    assert result.body == {"id": 5, "greeting": "hi Ann", "raw": '{"not": "parsed"}'}


def test_defaults_when_bindings_are_empty(make_context):
    result = ResponseExecutor().execute(_handler({}), make_context())
    assert result.status_code == 200
    assert result.headers == {}
    assert result.body == {}


def test_status_is_coerced_to_int(make_context):
    result = ResponseExecutor().execute(_handler({"status": "201"}), make_context())
    assert result.status_code == 201
    result = ResponseExecutor().execute(_handler({"status": "weird"}), make_context())
    assert result.status_code == 200


def test_out_of_range_status_falls_back_to_default(make_context):
    ctx = make_context(query={"s": "1000"})
    assert ResponseExecutor().execute(_handler({"status": "?0.query.s?"}), ctx).status_code == 200
    assert ResponseExecutor().execute(_handler({"status": 42}), ctx).status_code == 200
    assert ResponseExecutor().execute(_handler({"status": 599}), ctx).status_code == 599
    assert ResponseExecutor().execute(_handler({"status": 100}), ctx).status_code == 100
