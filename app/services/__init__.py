# Services package for wrapflow

from .audit import SqlAuditLog
from .wrapper_service import create_wrapper, get_wrapper, load_active_definition

__all__ = [
    "SqlAuditLog",
    "create_wrapper",
    "get_wrapper",
    "load_active_definition",
]
