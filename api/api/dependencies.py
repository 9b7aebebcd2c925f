"""FastAPI dependency injection for settings, database sessions and the catalog."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from impact_engine.catalog import RelationshipCatalog, default_catalog, load_catalog
from impact_engine.config import Settings, load_settings
from impact_engine.state.database import get_engine, get_session
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from api.config import APISettings, load_api_settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

_settings_cache: APISettings | None = None
_engine_settings_cache: Settings | None = None


def get_settings() -> APISettings:
    """Return the cached :class:`APISettings` singleton."""
    global _settings_cache  # noqa: PLW0603
    if _settings_cache is None:
        _settings_cache = load_api_settings()
    return _settings_cache


def get_engine_settings() -> Settings:
    """Return the cached impact engine :class:`Settings` singleton."""
    global _engine_settings_cache  # noqa: PLW0603
    if _engine_settings_cache is None:
        _engine_settings_cache = load_settings()
    return _engine_settings_cache


SettingsDep = Annotated[APISettings, Depends(get_settings)]
EngineSettingsDep = Annotated[Settings, Depends(get_engine_settings)]

# ---------------------------------------------------------------------------
# Relationship catalog
# ---------------------------------------------------------------------------

_catalog: RelationshipCatalog | None = None


def init_catalog(settings: Settings) -> RelationshipCatalog:
    """Build the process-wide catalog once at startup."""
    global _catalog  # noqa: PLW0603
    _catalog = load_catalog(settings.catalog_path) if settings.catalog_path else default_catalog()
    return _catalog


def get_catalog() -> RelationshipCatalog:
    if _catalog is None:
        raise RuntimeError(
            "Relationship catalog has not been initialised. Ensure init_catalog() is called during application startup."
        )
    return _catalog


CatalogDep = Annotated[RelationshipCatalog, Depends(get_catalog)]

# ---------------------------------------------------------------------------
# Database session
# ---------------------------------------------------------------------------

_engine: AsyncEngine | None = None


def init_engine(settings: APISettings, engine_settings: Settings) -> AsyncEngine:
    """Create and cache the global async engine."""
    global _engine  # noqa: PLW0603
    _engine = get_engine(
        settings.database_url,
        pool_size=engine_settings.database_pool_size,
        max_overflow=engine_settings.database_max_overflow,
    )
    return _engine


async def dispose_engine() -> None:
    """Dispose the global engine pool (call during shutdown)."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a read-only ``AsyncSession``.

    Impact analysis never writes, so the session is always rolled back
    on exit instead of committed.
    """
    if _engine is None:
        raise RuntimeError(
            "Database engine has not been initialised. Ensure init_engine() is called during application startup."
        )
    async with get_session(_engine) as session:
        yield session


SessionDep = Annotated[AsyncSession, Depends(get_db_session)]
