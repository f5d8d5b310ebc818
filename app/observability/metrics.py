# app/observability/metrics.py
from fastapi import APIRouter
from starlette.responses import Response

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

router = APIRouter(tags=["observability"])

invocation_counter = Counter(
    "wrapflow_invocations_total",
    "Aantal pipeline invocaties",
    ["result"],  # success|failed|not_found
)

stage_counter = Counter(
    "wrapflow_stage_executions_total",
    "Aantal uitgevoerde stages",
    ["stage_type", "result"],  # result: success|failed
)

stage_latency_hist = Histogram(
    "wrapflow_stage_latency_seconds",
    "Stage latency per stage type",
    ["stage_type"],
)

registration_counter = Counter(
    "wrapflow_registrations_total",
    "Aantal registraties van pipeline definities",
    ["result"],  # created|invalid|conflict
)


def record_stage(state, stage, result, duration_ms: float) -> None:
    """Stage hook for the runner: count and time every dispatched stage."""
    stage_type = stage.stage_type.value
    stage_counter.labels(stage_type=stage_type, result=result.status or "failed").inc()
    stage_latency_hist.labels(stage_type=stage_type).observe(duration_ms / 1000)


@router.get("/metrics", include_in_schema=True)
def metrics() -> Response:
    # Prometheus expects text/plain; version=0.0.4
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
