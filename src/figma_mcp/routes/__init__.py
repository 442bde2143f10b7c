"""HTTP routes."""

from .health import fallback_routes, health_routes, index
from .sse import sse_routes

__all__ = [
    "fallback_routes",
    "health_routes",
    "index",
    "sse_routes",
]
