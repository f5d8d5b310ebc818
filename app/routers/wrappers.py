# app/routers/wrappers.py
from __future__ import annotations

import json
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.core.logging_config import logger
from app.db import get_db
from app.dependencies import get_audit_log, get_registry
from app.observability.metrics import invocation_counter, record_stage, registration_counter
from app.schemas.wrapper import CreateWrapperResponse, ErrorResponse, GetWrapperResponse, WrapperOut
from app.services import wrapper_service
from wrapflow.engine import (
    AuditLog,
    ConflictError,
    ExecutorRegistry,
    InboundRequest,
    ValidationError,
    PipelineNotFound,
    run_wrapper,
)

router = APIRouter(prefix="/wrapper", tags=["wrapper"])

# Framing headers of the upstream response; the body is re-encoded here.
_FRAMING_HEADERS = {"content-length", "transfer-encoding", "content-encoding", "connection", "keep-alive"}


def _error(status_code: int, message: str, issues: Optional[list] = None) -> JSONResponse:
    payload = ErrorResponse(message=message, issues=issues or [])
    return JSONResponse(status_code=status_code, content=payload.model_dump(exclude_defaults=True))


async def _read_json(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        return {}


@router.post("/create", status_code=201, response_model=CreateWrapperResponse)
async def create_wrapper(request: Request, db: Session = Depends(get_db)):
    payload = await _read_json(request)
    try:
        record = await run_in_threadpool(wrapper_service.create_wrapper, db, payload)
    except ValidationError as e:
        registration_counter.labels(result="invalid").inc()
        return _error(400, str(e), [i.as_dict() for i in e.issues])
    except ConflictError as e:
        registration_counter.labels(result="conflict").inc()
        logger.warning("wrapper_conflict", error=str(e))
        return _error(409, str(e))

    registration_counter.labels(result="created").inc()
    return CreateWrapperResponse(data=WrapperOut(**record.to_dict()))


@router.get("/{wrapper_id}", response_model=GetWrapperResponse)
def get_wrapper(
    wrapper_id: str,
    account_id: Optional[str] = Query(None, alias="accountId"),
    version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    if not account_id:
        return _error(400, "Missing accountId query param")

    record = wrapper_service.get_wrapper(db, wrapper_id, version, account_id)
    if record is None:
        return Response(status_code=204)
    return GetWrapperResponse(data=WrapperOut(**record.to_dict()))


def _response_headers(headers: Any) -> Dict[str, str]:
    out: Dict[str, str] = {}
    if not isinstance(headers, dict):
        return out
    for key, value in headers.items():
        if str(key).lower() in _FRAMING_HEADERS:
            continue
        out[str(key)] = value if isinstance(value, str) else json.dumps(value, default=str)
    return out


@router.post("/{wrapper_id}/{wrapper_name}")
async def execute_wrapper(
    wrapper_id: str,
    wrapper_name: str,
    request: Request,
    db: Session = Depends(get_db),
    registry: ExecutorRegistry = Depends(get_registry),
    audit: AuditLog = Depends(get_audit_log),
):
    try:
        definition = await run_in_threadpool(
            wrapper_service.load_active_definition, db, wrapper_id, wrapper_name
        )
    except PipelineNotFound as e:
        invocation_counter.labels(result="not_found").inc()
        logger.info("wrapper_not_found", wrapper_id=wrapper_id, wrapper_name=wrapper_name, message=str(e))
        return Response(status_code=204)
    finally:
        # connectie terug naar de pool voordat de stages lopen
        db.close()

    inbound = InboundRequest(
        query=dict(request.query_params),
        headers=dict(request.headers),
        body=await _read_json(request),
    )

    state = await run_in_threadpool(
        run_wrapper,
        definition,
        inbound,
        registry=registry,
        audit=audit,
        max_transitions=settings.max_stage_transitions,
        on_stage=record_stage if settings.metrics_enabled else None,
    )

    if state.status != "SUCCEEDED":
        invocation_counter.labels(result="failed").inc()
        return _error(400, str(state.error) if state.error else "Execution failed")

    invocation_counter.labels(result="success").inc()
    result = state.result or {}
    status_code = int(result.get("statusCode") or 200)
    if not 100 <= status_code <= 599:
        status_code = 200
    headers = _response_headers(result.get("headers"))

    if status_code == 204 or status_code == 304:
        return Response(status_code=status_code, headers=headers)

    body = result.get("body")
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body if body is not None else {}),
        headers=headers,
    )
