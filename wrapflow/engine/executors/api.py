# wrapflow/engine/executors/api.py
from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import urlencode

import requests
import structlog

from app.infra.retry import linear_backoff, retry_on

from ..bindings import extract_url_keys, render_url, resolve, resolve_headers, to_text
from ..config import StageDefinition
from ..context import ExecutionContext, StageResult

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_MS = 10000
DEFAULT_RETRIES = 0
BACKOFF_STEP_MS = 200
BACKOFF_CAP_MS = 2000

BODY_METHODS = ("POST", "PUT", "PATCH", "DELETE")

# Inbound headers that describe the inbound connection, not the upstream call.
HOP_BY_HOP_HEADERS = frozenset(
    {
        "host",
        "content-length",
        "connection",
        "keep-alive",
        "transfer-encoding",
        "te",
        "trailer",
        "upgrade",
        "proxy-authorization",
        "proxy-connection",
    }
)


def _header(headers: Mapping[str, Any], name: str) -> Optional[str]:
    for k, v in headers.items():
        if k.lower() == name.lower():
            return v
    return None


def _is_empty(body: Any) -> bool:
    return body is None or (isinstance(body, (dict, list, str)) and len(body) == 0)


def _forwarded_headers(inbound: Mapping[str, Any]) -> Dict[str, str]:
    return {
        str(k): to_text(v)
        for k, v in inbound.items()
        if str(k).lower() not in HOP_BY_HOP_HEADERS and v is not None
    }


def _config_int(config: Mapping[str, Any], key: str, default: int) -> int:
    # ontbrekend of null: default; "5000" mag ook
    value = config.get(key)
    if value is None:
        return default
    return int(value)


def _is_transport_error(e: Exception) -> bool:
    return isinstance(e, (requests.ConnectionError, requests.Timeout))


def _parse_body(response: requests.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


class ApiExecutor:
    """
    Universal HTTP stage executor.

    The ``requests.Session`` is injected so connection pooling stays the
    caller's decision. TLS verification toward upstream targets is off unless
    ``verify_tls`` is set: internal endpoints often carry self-signed certs.
    """

    def __init__(
        self,
        session: requests.Session,
        *,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        default_retries: int = DEFAULT_RETRIES,
        backoff_step_ms: int = BACKOFF_STEP_MS,
        backoff_cap_ms: int = BACKOFF_CAP_MS,
        verify_tls: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session
        self.default_timeout_ms = default_timeout_ms
        self.default_retries = default_retries
        self.backoff_step_s = backoff_step_ms / 1000
        self.backoff_cap_s = backoff_cap_ms / 1000
        self.verify_tls = verify_tls
        self._sleep = sleep

    def backoff(self, attempt: int) -> float:
        return linear_backoff(attempt, step=self.backoff_step_s, cap=self.backoff_cap_s)

    def execute(self, stage: StageDefinition, context: ExecutionContext) -> StageResult:
        try:
            return self._execute(stage, context)
        except Exception as e:
            logger.error(
                "api_stage_failed",
                stage_name=stage.stage_name,
                stage_index=stage.stage_index,
                error=f"{type(e).__name__}: {e}",
            )
            return StageResult.failure(str(e) or type(e).__name__)

    def _execute(self, stage: StageDefinition, context: ExecutionContext) -> StageResult:
        url_template = stage.config.get("url")
        if not url_template:
            return StageResult.failure(f"Stage {stage.stage_name or stage.stage_index} missing config.url")

        method = (stage.method_type or "GET").upper()
        retries = _config_int(stage.config, "retries", self.default_retries)
        timeout_ms = _config_int(stage.config, "timeoutMs", self.default_timeout_ms)
        inbound = context.request
        bindings = stage.bindings

        if bindings.get("query") is not None:
            resolved_query = resolve(bindings["query"], context)
            query = dict(resolved_query) if isinstance(resolved_query, Mapping) else {}
        else:
            query = dict(inbound.query)

        if bindings.get("body") is not None:
            body = resolve(bindings["body"], context)
        else:
            body = inbound.body

        if bindings.get("headers") is not None:
            headers = resolve_headers(bindings["headers"], context)
        else:
            headers = _forwarded_headers(inbound.headers)

        url = self._build_url(url_template, method, query, bindings, context)
        data = self._encode_body(method, headers, body)

        def _on_retry(attempt: int, error: Optional[Exception], delay: float) -> None:
            logger.warning(
                "http_retry",
                stage_name=stage.stage_name,
                stage_index=stage.stage_index,
                attempt=attempt,
                retries=retries,
                delay_s=delay,
                error=repr(error) if error else "server error",
            )

        try:
            response = retry_on(
                lambda: self.session.request(
                    method,
                    url,
                    headers=headers,
                    data=data,
                    timeout=timeout_ms / 1000,
                    verify=self.verify_tls,
                ),
                attempts=retries + 1,
                backoff=self.backoff,
                is_retryable=_is_transport_error,
                should_retry_result=lambda r: r.status_code >= 500,
                on_retry=_on_retry,
                sleep=self._sleep,
            )
        except requests.RequestException as e:
            logger.error(
                "api_stage_transport_error",
                stage_name=stage.stage_name,
                stage_index=stage.stage_index,
                url=url,
                error=f"{type(e).__name__}: {e}",
            )
            return StageResult.failure(f"Request to {url} failed: {e}")

        success = 200 <= response.status_code < 300
        return StageResult(
            success=success,
            status_code=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            body=_parse_body(response),
            message=None if success else f"Upstream {method} {url} responded with {response.status_code}",
        )

    def _build_url(
        self,
        template: str,
        method: str,
        query: Dict[str, Any],
        bindings: Mapping[str, Any],
        context: ExecutionContext,
    ) -> str:
        path_vars = resolve(bindings.get("pathVariables") or {}, context)
        if not isinstance(path_vars, Mapping):
            path_vars = {}
        placeholders = extract_url_keys(template)

        url_vars: Dict[str, Any] = {}
        for ph in placeholders:
            for candidate in (path_vars.get(ph), query.get(ph), context.request.query.get(ph)):
                if candidate is not None:
                    url_vars[ph] = candidate
                    break
            else:
                url_vars[ph] = ""

        url = render_url(template, url_vars)
        for ph in placeholders:
            query.pop(ph, None)

        if method == "GET":
            pairs = {k: v for k, v in query.items() if v is not None}
            if pairs:
                qs = urlencode(
                    {k: [to_text(x) for x in v] if isinstance(v, list) else to_text(v) for k, v in pairs.items()},
                    doseq=True,
                )
                url += ("&" if "?" in url else "?") + qs
        return url

    @staticmethod
    def _encode_body(method: str, headers: Dict[str, str], body: Any) -> Optional[str]:
        if method in BODY_METHODS and _header(headers, "Content-Type") is None:
            if not _is_empty(body):
                headers["Content-Type"] = "application/json"
            else:
                headers["Content-Type"] = "application/x-www-form-urlencoded"

        if method not in BODY_METHODS or _is_empty(body):
            return None

        content_type = _header(headers, "Content-Type") or ""
        if "application/json" in content_type:
            return json.dumps(body, default=str)
        if isinstance(body, Mapping):
            return urlencode({k: to_text(v) for k, v in body.items()})
        return to_text(body)
