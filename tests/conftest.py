import os
os.environ.setdefault("DATABASE_URL", "sqlite://")  # nooit het echte bestand tijdens tests
os.environ.setdefault("METRICS_ENABLED", "true")

import json
from collections import deque

import pytest
import requests
from fastapi.testclient import TestClient
from requests.structures import CaseInsensitiveDict
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base, get_db
from app import models  # noqa: F401  (registreert SQLAlchemy modellen)
from app.dependencies import get_audit_log, get_registry
from app.services.audit import SqlAuditLog
from wrapflow.engine import ExecutionContext, InboundRequest, build_registry


def make_response(status_code=200, body=None, headers=None, text=None):
    """Echte requests.Response met gescripte inhoud."""
    r = requests.Response()
    r.status_code = status_code
    r.encoding = "utf-8"
    hdrs = dict(headers or {})
    if text is not None:
        r._content = text.encode("utf-8")
        hdrs.setdefault("Content-Type", "text/plain")
    else:
        r._content = json.dumps(body if body is not None else {}).encode("utf-8")
        hdrs.setdefault("Content-Type", "application/json")
    r.headers = CaseInsensitiveDict(hdrs)
    return r


class FakeSession:
    """Speelt responses/exceptions af in volgorde en onthoudt elke call."""

    def __init__(self, *script):
        self.script = deque(script)
        self.calls = []

    def queue(self, *items):
        self.script.extend(items)

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.script:
            return make_response(200, {})
        item = self.script.popleft()
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fake_http():
    return FakeSession()


@pytest.fixture
def no_sleep():
    slept = []
    return slept.append, slept


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def registry(fake_http, no_sleep):
    sleep, _ = no_sleep
    return build_registry(http_session=fake_http, sleep=sleep)


@pytest.fixture
def client(session_factory, registry):
    from app.main import app

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_audit_log] = lambda: SqlAuditLog(session_factory)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_context():
    def _make(query=None, headers=None, body=None):
        return ExecutionContext(InboundRequest.from_dict({"query": query, "headers": headers, "body": body}))

    return _make
