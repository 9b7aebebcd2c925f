"""FastAPI application entry-point for the deletion impact API."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from impact_engine.errors import (
    AnalysisCancelledError,
    ImpactAnalysisError,
    StoreUnavailableError,
    TruncatedError,
    ValidationError,
)

from api import __version__
from api.config import APISettings, load_api_settings
from api.dependencies import (
    dispose_engine,
    get_engine_settings,
    init_catalog,
    init_engine,
)
from api.middleware.logging import CORRELATION_HEADER, RequestLoggingMiddleware
from api.routers import deletion, health

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[ImpactAnalysisError], int], ...] = (
    (ValidationError, 400),
    (TruncatedError, 422),
    (StoreUnavailableError, 503),
    (AnalysisCancelledError, 504),
)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup / shutdown lifecycle.

    On startup:
    - Enable JSON logging when configured.
    - Initialise the async database engine.
    - Create the document tables in local SQLite mode or when
      ``API_CREATE_TABLES`` is set.
    - Build the relationship catalog.

    On shutdown:
    - Dispose the database engine connection pool.
    """
    settings: APISettings = load_api_settings()
    engine_settings = get_engine_settings()

    if settings.structured_logging or engine_settings.structured_logging:
        from api.middleware.json_formatter import install_json_logging

        install_json_logging()
        logger.info("Structured JSON logging enabled")

    engine = init_engine(settings, engine_settings)
    is_local = settings.database_url.startswith("sqlite")
    logger.info(
        "Database engine initialised (%s, %s)",
        settings.database_url[:40] + "...",
        "local" if is_local else "postgres",
    )

    if settings.create_tables or is_local:
        from impact_engine.state.tables import Base

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    catalog = init_catalog(engine_settings)
    logger.info("Relationship catalog loaded (%d relations)", len(catalog))

    yield

    await dispose_engine()
    logger.info("Application shutdown complete")


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _status_for(exc: ImpactAnalysisError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def install_exception_handlers(app: FastAPI) -> None:
    """Map request-schema and analysis failures onto JSON error responses."""

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details: list[dict[str, Any]] = []
        for error in exc.errors():
            loc = list(error.get("loc", ()))
            if loc and loc[0] == "body":
                loc = loc[1:]
            details.append({"loc": loc, "msg": error.get("msg", ""), "type": error.get("type", "")})
        logger.info("Rejected request on %s: %d validation error(s)", request.url.path, len(details))
        return JSONResponse(
            status_code=400,
            content=jsonable_encoder({"error": "Validation error", "kind": "validation", "details": details}),
        )

    @app.exception_handler(ImpactAnalysisError)
    async def impact_error_handler(request: Request, exc: ImpactAnalysisError) -> JSONResponse:
        status = _status_for(exc)
        body = exc.to_dict()
        message = body.pop("message")
        body["error"] = "Validation error" if isinstance(exc, ValidationError) else message
        if status >= 500:
            logger.error("Impact analysis failed on %s: %s", request.url.path, exc)
        else:
            logger.warning("Impact analysis rejected on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=status, content=jsonable_encoder(body))


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Construct and configure the FastAPI application."""
    settings = load_api_settings()

    app = FastAPI(
        title="Deletion Impact API",
        description="Read-only impact analysis ahead of document deletion.",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # -- Middleware (outermost first) ----------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", CORRELATION_HEADER, "Accept"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # -- Routers -------------------------------------------------------------

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(deletion.router, prefix="/api/v1")

    install_exception_handlers(app)

    return app


# Module-level application instance used by ``uvicorn api.main:app``.
app = create_app()
