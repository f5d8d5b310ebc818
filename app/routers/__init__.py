# Routers package for wrapflow

from . import health, wrappers

__all__ = [
    "health",
    "wrappers",
]
