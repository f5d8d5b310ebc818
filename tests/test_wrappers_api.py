import copy

from app.models.execution_log import ExecutionLogRecord, StageLogRecord

from .conftest import make_response

PIPELINE = {
    "accountId": "acc-1",
    "wrapperName": "user-lookup",
    "stages": [
        {
            "stageIndex": 1,
            "stageName": "fetch-user",
            "stageType": "API",
            "methodType": "GET",
            "next": {"type": "index", "value": 2},
            "config": {"url": "https://users.example.com/users/{id}"},
            "bindings": {"pathVariables": {"id": "?0.query.id?"}, "headers": {"X-Key": "?0.headers.x-key?"}},
        },
        {
            "stageIndex": 2,
            "stageName": "respond",
            "stageType": "ResponseHandler",
            "next": {"type": "index", "value": -1},
            "bindings": {
                "status": 200,
                "headers": {"X-Upstream": "?1.statusCode?", "X-Meta": "?1.body.meta?"},
                "body": {"name": "?1.body.name?"},
            },
        },
    ],
}


def _create(client, payload=None):
    r = client.post("/wrapper/create", json=copy.deepcopy(payload or PIPELINE))
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_create_returns_stored_definition(client):
    r = client.post("/wrapper/create", json=PIPELINE)
    assert r.status_code == 201
    data = r.json()
    assert data["status"] == 201
    assert data["message"] == "Created Successfully!"
    assert data["data"]["version"] == 1
    assert data["data"]["status"] == "active"
    assert data["data"]["stages"][0]["stageName"] == "fetch-user"


def test_create_rejects_invalid_payload_with_issues(client):
    bad = copy.deepcopy(PIPELINE)
    bad["stages"][1]["next"] = {"type": "index", "value": 1}
    r = client.post("/wrapper/create", json=bad)
    assert r.status_code == 400
    body = r.json()
    assert body["message"].startswith("Payload validation failed")
    assert any(i["code"] == "RESPONSE_NOT_TERMINAL" for i in body["issues"])


def test_create_with_non_json_body_is_a_validation_error(client):
    r = client.post("/wrapper/create", content=b"not json", headers={"Content-Type": "text/plain"})
    assert r.status_code == 400


def test_get_wrapper_by_id_and_version(client):
    created = _create(client)
    _create(client)

    r = client.get(f"/wrapper/{created['wrapperId']}", params={"accountId": "acc-1"})
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert r.json()["data"]["version"] == 2

    r = client.get(f"/wrapper/{created['wrapperId']}", params={"accountId": "acc-1", "version": 1})
    assert r.json()["data"]["status"] == "inactive"

    assert client.get(f"/wrapper/{created['wrapperId']}").status_code == 400
    assert client.get("/wrapper/unknown", params={"accountId": "acc-1"}).status_code == 204


def test_invoke_runs_pipeline_and_maps_terminal_result(client, fake_http, session_factory):
    created = _create(client)
    fake_http.queue(make_response(200, {"name": "Ann", "meta": {"v": 1}}, headers={"Content-Length": "40"}))

    r = client.post(
        f"/wrapper/{created['wrapperId']}/user-lookup",
        params={"id": "7"},
        headers={"X-Key": "secret"},
        json={},
    )

    assert r.status_code == 200
    assert r.json() == {"name": "Ann"}
    assert r.headers["X-Upstream"] == "200"
    assert r.headers["X-Meta"] == '{"v": 1}'

    call = fake_http.calls[0]
    assert call["url"] == "https://users.example.com/users/7"
    assert call["headers"] == {"X-Key": "secret"}

    db = session_factory()
    try:
        execution = db.query(ExecutionLogRecord).one()
        assert execution.status == "success"
        assert execution.wrapper_id == created["wrapperId"]
        stages = db.query(StageLogRecord).order_by(StageLogRecord.stage_index).all()
        assert [(s.stage_index, s.status) for s in stages] == [(1, "success"), (2, "success")]
    finally:
        db.close()


def test_invoke_unknown_wrapper_is_no_content(client):
    r = client.post("/wrapper/nope/nothing", json={})
    assert r.status_code == 204
    assert r.content == b""


def test_invoke_failure_is_bad_request(client, fake_http, session_factory):
    created = _create(client)
    fake_http.queue(make_response(404, {"error": "missing"}))

    r = client.post(f"/wrapper/{created['wrapperId']}/user-lookup", params={"id": "9"}, json={})

    assert r.status_code == 400
    assert "fetch-user" in r.json()["message"]

    db = session_factory()
    try:
        execution = db.query(ExecutionLogRecord).one()
        assert execution.status == "failed"
        assert execution.error_message.startswith("ExecutorError")
    finally:
        db.close()


def test_health_reports_database(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"message": "OK", "status": {"database": True}}
    assert '"connected": true' in r.headers["X-DB-Info"]


def test_health_key_is_enforced(client, monkeypatch):
    from app.config import settings

    monkeypatch.setattr(settings, "health_key", "s3cret")
    assert client.get("/health").status_code == 401
    assert client.get("/health", headers={"Authorization": "s3cret"}).status_code == 200


def test_metrics_endpoint(client):
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "wrapflow_invocations" in r.text


ECHO_STATUS = {
    "accountId": "acc-1",
    "wrapperName": "echo-status",
    "stages": [
        {
            "stageIndex": 1,
            "stageName": "respond",
            "stageType": "ResponseHandler",
            "next": {"type": "index", "value": -1},
            "bindings": {"status": "?0.query.s?", "body": {"ok": True}},
        }
    ],
}


def test_invalid_status_from_request_is_not_sent(client):
    created = _create(client, ECHO_STATUS)
    url = f"/wrapper/{created['wrapperId']}/echo-status"

    assert client.post(url, params={"s": "1000"}, json={}).status_code == 200
    assert client.post(url, params={"s": "42"}, json={}).status_code == 200
    assert client.post(url, params={"s": "418"}, json={}).status_code == 418


def test_request_session_is_released_before_stages_run(client, session_factory):
    from app.db import get_db
    from app.dependencies import get_registry
    from app.main import app
    from wrapflow.engine import ExecutorRegistry, StageType
    from wrapflow.engine.executors import ResponseExecutor

    created = _create(client, ECHO_STATUS)
    closed = []

    def _tracked_db():
        db = session_factory()
        original_close = db.close

        def _close():
            closed.append(True)
            original_close()

        db.close = _close
        try:
            yield db
        finally:
            db.close()

    seen_closed = []

    class SpyResponse(ResponseExecutor):
        def execute(self, stage, context):
            seen_closed.append(bool(closed))
            return super().execute(stage, context)

    reg = ExecutorRegistry()
    reg.register(StageType.RESPONSE_HANDLER, SpyResponse())
    app.dependency_overrides[get_db] = _tracked_db
    app.dependency_overrides[get_registry] = lambda: reg

    r = client.post(f"/wrapper/{created['wrapperId']}/echo-status", params={"s": "200"}, json={})

    assert r.status_code == 200
    assert seen_closed == [True]
