# wrapflow/engine/executors/sql.py
from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Mapping, Tuple

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from ..bindings import resolve
from ..config import StageDefinition
from ..context import ExecutionContext
from .db import DatabaseExecutor

logger = structlog.get_logger(__name__)

# $1, $2 ... (PostgreSQL style positional parameters)
POSITIONAL_PARAM_RE = re.compile(r"\$(\d+)")

EngineFactory = Callable[[str], Engine]


def normalise_url(url: str) -> str:
    # SQLAlchemy only knows the "postgresql" dialect name
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def stage_engine(url: str) -> Engine:
    """Engine without a pool: connect and disconnect once per stage."""
    return create_engine(normalise_url(url), poolclass=NullPool)


def bind_parameters(query: str, params: Any) -> Tuple[str, Dict[str, Any]]:
    """
    Turn resolved parameters into SQLAlchemy named binds.

    A mapping is used as-is (``:name`` placeholders). A list binds ``$1..$N``
    positional placeholders, rewritten to ``:p1..:pN``.
    """
    if params is None:
        return query, {}
    if isinstance(params, Mapping):
        return query, dict(params)
    if isinstance(params, (list, tuple)):
        values: List[Any] = list(params)
        rewritten = POSITIONAL_PARAM_RE.sub(lambda m: f":p{m.group(1)}", query)
        return rewritten, {f"p{i + 1}": v for i, v in enumerate(values)}
    raise ValueError("dbConfig.parameters must be an object or an array")


class SqlExecutor(DatabaseExecutor):
    """Parameterized query execution against a relational store."""

    backend = "sql"

    def __init__(self, engine_factory: EngineFactory = stage_engine):
        self.engine_factory = engine_factory

    def run(self, stage: StageDefinition, db_config: Dict[str, Any], context: ExecutionContext) -> Any:
        query = db_config.get("query")
        if not query:
            raise ValueError(f"Stage {stage.stage_name} missing dbConfig.query")

        params = resolve(db_config.get("parameters"), context)
        sql, bind = bind_parameters(query, params)

        engine = self.engine_factory(db_config["connectionString"])
        try:
            with engine.connect() as conn:
                result = conn.execute(text(sql), bind)
                if result.returns_rows:
                    body: Any = [dict(row._mapping) for row in result]
                else:
                    body = {"rowCount": result.rowcount}
                conn.commit()
        finally:
            engine.dispose()

        logger.info(
            "sql_stage_executed",
            stage_name=stage.stage_name,
            stage_index=stage.stage_index,
            rows=len(body) if isinstance(body, list) else body.get("rowCount"),
        )
        return body
