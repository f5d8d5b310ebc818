# wrapflow/engine/executors/mongo.py
from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

import structlog
from pymongo import MongoClient

from ..bindings import resolve
from ..config import StageDefinition
from ..context import ExecutionContext
from .db import DatabaseExecutor

logger = structlog.get_logger(__name__)

MONGO_OPERATIONS = ("find", "insert", "update", "delete")

ClientFactory = Callable[[str], Any]


def stage_client(uri: str) -> MongoClient:
    return MongoClient(uri, serverSelectionTimeoutMS=15000, socketTimeoutMS=45000)


def _as_document(value: Any, what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"{what} must be an object")
    return dict(value)


class MongoExecutor(DatabaseExecutor):
    """find / insert / update / delete against a document store."""

    backend = "mongo"

    def __init__(self, client_factory: ClientFactory = stage_client):
        self.client_factory = client_factory

    def run(self, stage: StageDefinition, db_config: Dict[str, Any], context: ExecutionContext) -> Any:
        operation = db_config.get("operation")
        if operation not in MONGO_OPERATIONS:
            raise ValueError(f"Unsupported Mongo operation: {operation}")
        collection_name = db_config.get("collection")
        if not collection_name:
            raise ValueError(f"Stage {stage.stage_name} missing dbConfig.collection")

        params = resolve(db_config.get("parameters"), context)

        client = self.client_factory(db_config["connectionString"])
        try:
            if db_config.get("database"):
                db = client[db_config["database"]]
            else:
                db = client.get_default_database()
            coll = db[collection_name]

            logger.info(
                "mongo_stage_executing",
                stage_name=stage.stage_name,
                stage_index=stage.stage_index,
                collection=collection_name,
                operation=operation,
            )

            if operation == "find":
                cursor = coll.find(_as_document(params, "find filter"))
                if db_config.get("limit"):
                    cursor = cursor.limit(int(db_config["limit"]))
                return list(cursor)
            if operation == "insert":
                res = coll.insert_one(_as_document(params, "insert document"))
                return {"acknowledged": res.acknowledged, "insertedId": str(res.inserted_id)}
            if operation == "update":
                p = _as_document(params, "update parameters")
                res = coll.update_one(
                    _as_document(p.get("filter"), "update filter"),
                    {"$set": _as_document(p.get("update"), "update document")},
                )
                return {
                    "acknowledged": res.acknowledged,
                    "matchedCount": res.matched_count,
                    "modifiedCount": res.modified_count,
                }
            res = coll.delete_one(_as_document(params, "delete filter"))
            return {"acknowledged": res.acknowledged, "deletedCount": res.deleted_count}
        finally:
            client.close()
