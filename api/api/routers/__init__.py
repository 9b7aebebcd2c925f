"""API router modules for the deletion impact service."""

from __future__ import annotations

from api.routers import deletion, health

__all__ = [
    "deletion",
    "health",
]
