"""Impact engine configuration loaded from environment variables."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Engine settings loaded from environment variables with IMPACT_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="IMPACT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///.deletion-impact/state.db"
    database_pool_size: int = 10
    database_max_overflow: int = 20

    # Traversal bounds
    max_depth: int = 25
    max_nodes: int = 10_000
    lookup_concurrency: int = 8

    # Whole-analysis deadline in seconds.
    analysis_timeout_seconds: float = 30.0

    # Optional JSON relationship catalog; bundled defaults when unset.
    catalog_path: Path | None = None

    # Telemetry
    structured_logging: bool = False

    @field_validator("max_depth", "max_nodes", "lookup_concurrency")
    @classmethod
    def _positive_bound(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("analysis_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]
    logger.debug(
        "Loaded settings: max_depth=%d max_nodes=%d timeout=%.1fs",
        settings.max_depth,
        settings.max_nodes,
        settings.analysis_timeout_seconds,
    )
    return settings
