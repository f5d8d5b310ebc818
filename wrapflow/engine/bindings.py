# wrapflow/engine/bindings.py
"""
Binding resolution: how a stage reads data from the inbound request and from
earlier stage results.

Two syntaxes, applied in different places:

* ``?N.field.sub?`` path references. ``N = 0`` is the inbound request
  (``query``/``headers``/``body``), ``N >= 1`` is the result recorded for
  stageIndex ``N``. A string that is exactly one reference resolves to the
  native value; references embedded in a longer string are substituted as
  text (objects and arrays as JSON).
* ``{field}`` placeholders in API-stage URL templates, percent-encoded on
  substitution (see :func:`render_url`).

Resolution is pure and never raises: anything that cannot be resolved becomes
``None`` (or an empty string inside text).
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from .context import ExecutionContext

# Field names may carry hyphens so inbound header names are addressable.
PATH_REF_RE = re.compile(r"^\?(\d+)\.([\w.-]+)\?$")
EMBEDDED_REF_RE = re.compile(r"\?(\d+)\.([\w.-]+)\?")
URL_PLACEHOLDER_RE = re.compile(r"{([^}]+)}")

# Keys of a recorded stage result. A first path segment outside this set is
# looked up in the result body, so ``?1.id?`` and ``?1.body.id?`` both work.
RESULT_ENVELOPE_KEYS = frozenset(
    {"success", "statusCode", "headers", "body", "message", "durationMs", "status"}
)

# encodeURIComponent leaves these unescaped.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def is_path_ref(value: Any) -> bool:
    return isinstance(value, str) and PATH_REF_RE.match(value) is not None


def _step(ref: Any, key: str) -> Any:
    if isinstance(ref, Mapping):
        return ref.get(key)
    if isinstance(ref, (list, tuple)) and key.isdigit():
        i = int(key)
        return ref[i] if i < len(ref) else None
    return None


def _walk(root_index: int, fields: List[str], context: ExecutionContext) -> Any:
    ref = context.root(root_index)
    if ref is None:
        return None

    if root_index > 0 and fields and fields[0] not in RESULT_ENVELOPE_KEYS:
        ref = ref.get("body")

    for key in fields:
        if ref is None or key == "":
            return None
        ref = _step(ref, key)
    return ref


def resolve_path(reference: str, context: ExecutionContext) -> Any:
    """Resolve one ``?N.field?`` reference. Missing at any depth -> ``None``."""
    m = PATH_REF_RE.match(reference) if isinstance(reference, str) else None
    if not m:
        return None
    return _walk(int(m.group(1)), m.group(2).split("."), context)


def to_text(value: Any) -> str:
    """Render a resolved value for a string context (JSON for structures)."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple, bool)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def render_template(template: str, context: ExecutionContext) -> str:
    """Substitute every embedded ``?N.field?`` marker inside a string."""

    def _sub(m: re.Match) -> str:
        return to_text(_walk(int(m.group(1)), m.group(2).split("."), context))

    return EMBEDDED_REF_RE.sub(_sub, template)


def resolve(expression: Any, context: ExecutionContext) -> Any:
    """
    Resolve a binding expression against the execution context.

    Literals come back unchanged; maps and arrays are resolved leaf by leaf.
    """
    if isinstance(expression, str):
        if PATH_REF_RE.match(expression):
            return resolve_path(expression, context)
        if EMBEDDED_REF_RE.search(expression):
            return render_template(expression, context)
        return expression
    if isinstance(expression, Mapping):
        return {k: resolve(v, context) for k, v in expression.items()}
    if isinstance(expression, (list, tuple)):
        return [resolve(v, context) for v in expression]
    return expression


def resolve_headers(
    header_bindings: Optional[Mapping[str, Any]],
    context: ExecutionContext,
) -> Dict[str, str]:
    """Header values as text. Unresolved (``None``) headers are left out."""
    out: Dict[str, str] = {}
    for name, expression in (header_bindings or {}).items():
        value = resolve(expression, context)
        if value is None:
            continue
        out[str(name)] = to_text(value)
    return out


def extract_url_keys(url: str) -> List[str]:
    return URL_PLACEHOLDER_RE.findall(url or "")


def render_url(url: str, variables: Mapping[str, Any]) -> str:
    """Fill ``{field}`` placeholders, percent-encoding each value."""

    def _sub(m: re.Match) -> str:
        value = variables.get(m.group(1))
        return quote(to_text(value), safe=_URI_COMPONENT_SAFE)

    return URL_PLACEHOLDER_RE.sub(_sub, url)
