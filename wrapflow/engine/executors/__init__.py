from .api import ApiExecutor
from .db import DatabaseExecutor, DatabaseRouter, backend_for, jsonable
from .mongo import MongoExecutor
from .response import ResponseExecutor
from .sql import SqlExecutor

__all__ = [
    "ApiExecutor",
    "DatabaseExecutor",
    "DatabaseRouter",
    "MongoExecutor",
    "ResponseExecutor",
    "SqlExecutor",
    "backend_for",
    "jsonable",
]
