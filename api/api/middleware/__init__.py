"""Middleware components for the deletion impact API."""

from __future__ import annotations

from api.middleware.json_formatter import JSONFormatter, install_json_logging
from api.middleware.logging import RequestLoggingMiddleware

__all__ = [
    "JSONFormatter",
    "RequestLoggingMiddleware",
    "install_json_logging",
]
