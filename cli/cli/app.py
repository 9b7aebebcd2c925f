"""deletion-impact CLI -- Typer-based operator interface.

Analyses what deleting documents would touch, against either a JSON graph
file or the document store database, and serves the same analysis over
HTTP (``serve``).  Human-readable output goes to
*stderr* via Rich; ``--json`` writes the wire report to *stdout* so that
pipelines can compose cleanly.

Exit codes: 0 success, 2 invalid input, 3 store unavailable, 4 traversal
truncated, 5 cancelled or timed out.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path

import typer
from impact_engine.catalog import RelationshipCatalog, default_catalog, load_catalog
from impact_engine.config import Settings, load_settings
from impact_engine.errors import (
    AnalysisCancelledError,
    ImpactAnalysisError,
    StoreUnavailableError,
    TruncatedError,
    ValidationError,
)
from impact_engine.models import ImpactReport
from impact_engine.simulation import DeletionImpactAnalyzer
from impact_engine.state.store import InMemoryStore, StoreLookup
from rich.console import Console
from rich.panel import Panel

from cli.display import display_catalog, display_impact_report

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="deletion-impact",
    help="Deletion impact analysis for processed documents.",
    no_args_is_help=True,
)
console = Console(stderr=True)

EXIT_VALIDATION = 2
EXIT_STORE = 3
EXIT_TRUNCATED = 4
EXIT_CANCELLED = 5

_EXIT_CODES: tuple[tuple[type[ImpactAnalysisError], int], ...] = (
    (ValidationError, EXIT_VALIDATION),
    (StoreUnavailableError, EXIT_STORE),
    (TruncatedError, EXIT_TRUNCATED),
    (AnalysisCancelledError, EXIT_CANCELLED),
)

# Mutable global options populated by the Typer callback.
_json_output: bool = False


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine activity to stderr."),
) -> None:
    """Global options applied to every command."""
    global _json_output  # noqa: PLW0603
    _json_output = json_mode
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _exit_code_for(exc: ImpactAnalysisError) -> int:
    for error_type, code in _EXIT_CODES:
        if isinstance(exc, error_type):
            return code
    return 1


def _resolve_catalog(catalog_file: Path | None, settings: Settings) -> RelationshipCatalog:
    path = catalog_file or settings.catalog_path
    if path is None:
        return default_catalog()
    try:
        return load_catalog(path)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Failed to load catalog {path}: {exc}[/red]")
        raise typer.Exit(code=EXIT_VALIDATION) from exc


async def _run_against_database(
    document_ids: Sequence[str],
    database_url: str,
    catalog: RelationshipCatalog,
    settings: Settings,
    timeout: float | None,
) -> ImpactReport:
    from impact_engine.state.database import get_engine, get_session_factory
    from impact_engine.state.store import SqlStoreLookup

    engine = get_engine(
        database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        read_only=True,
    )
    try:
        store = SqlStoreLookup(session_factory=get_session_factory(engine))
        analyzer = DeletionImpactAnalyzer(store, catalog, settings=settings)
        return await analyzer.analyze_impact(document_ids, timeout=timeout)
    finally:
        await engine.dispose()


async def _run_against_store(
    document_ids: Sequence[str],
    store: StoreLookup,
    catalog: RelationshipCatalog,
    settings: Settings,
    timeout: float | None,
) -> ImpactReport:
    analyzer = DeletionImpactAnalyzer(store, catalog, settings=settings)
    return await analyzer.analyze_impact(document_ids, timeout=timeout)


# ---------------------------------------------------------------------------
# analyze
# ---------------------------------------------------------------------------


@app.command()
def analyze(
    document_ids: list[str] = typer.Argument(..., help="Document IDs to analyse for deletion."),
    graph_file: Path | None = typer.Option(
        None,
        "--graph-file",
        help="JSON graph file ({'entities': [...], 'edges': [...]}) to analyse instead of a database.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    database_url: str | None = typer.Option(
        None,
        "--database-url",
        help="Document store URL (defaults to IMPACT_DATABASE_URL).",
    ),
    catalog_file: Path | None = typer.Option(
        None,
        "--catalog-file",
        help="JSON relationship catalog (defaults to IMPACT_CATALOG_PATH or the bundled catalog).",
    ),
    max_depth: int | None = typer.Option(None, "--max-depth", min=1, help="Maximum traversal depth."),
    timeout: float | None = typer.Option(None, "--timeout", min=0.001, help="Analysis deadline in seconds."),
) -> None:
    """Report everything deleting DOCUMENT_IDS would delete, orphan or degrade."""
    if graph_file is not None and database_url is not None:
        console.print("[red]--graph-file and --database-url are mutually exclusive.[/red]")
        raise typer.Exit(code=EXIT_VALIDATION)

    overrides: dict[str, object] = {}
    if max_depth is not None:
        overrides["max_depth"] = max_depth
    settings = load_settings(**overrides)
    catalog = _resolve_catalog(catalog_file, settings)

    try:
        if graph_file is not None:
            try:
                store = InMemoryStore.from_file(graph_file)
            except (OSError, ValueError, KeyError) as exc:
                console.print(f"[red]Failed to read graph file {graph_file}: {exc}[/red]")
                raise typer.Exit(code=EXIT_VALIDATION) from exc
            report = asyncio.run(_run_against_store(document_ids, store, catalog, settings, timeout))
        else:
            url = database_url or settings.database_url
            report = asyncio.run(_run_against_database(document_ids, url, catalog, settings, timeout))
    except ImpactAnalysisError as exc:
        code = _exit_code_for(exc)
        if _json_output:
            sys.stdout.write(json.dumps(exc.to_dict(), indent=2, default=str) + "\n")
        console.print(f"[red]{exc}[/red]")
        if isinstance(exc, ValidationError):
            for error in exc.errors:
                loc = ".".join(str(p) for p in error["loc"])
                console.print(f"  [dim]{loc}[/dim]: {error['msg']}")
        raise typer.Exit(code=code) from exc

    if _json_output:
        sys.stdout.write(json.dumps(report.to_wire(), indent=2) + "\n")
    else:
        display_impact_report(console, report)


# ---------------------------------------------------------------------------
# catalog
# ---------------------------------------------------------------------------


@app.command("catalog")
def show_catalog(
    catalog_file: Path | None = typer.Option(
        None,
        "--catalog-file",
        help="JSON relationship catalog (defaults to IMPACT_CATALOG_PATH or the bundled catalog).",
    ),
) -> None:
    """Print the active relationship catalog."""
    catalog = _resolve_catalog(catalog_file, load_settings())
    if _json_output:
        sys.stdout.write(json.dumps(catalog.to_dict(), indent=2) + "\n")
    else:
        display_catalog(console, catalog)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Host to bind the API server to."),
    port: int = typer.Option(8000, "--port", "-p", help="API server port."),
    database_url: str | None = typer.Option(
        None,
        "--database-url",
        help="Document store URL for the API (sets API_DATABASE_URL).",
    ),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload on code changes."),
) -> None:
    """Run the deletion impact HTTP API with uvicorn."""
    import uvicorn

    if database_url is not None:
        os.environ["API_DATABASE_URL"] = database_url

    console.print(
        Panel(
            f"[bold]Analyze:[/bold]  POST http://{host}:{port}/api/v1/documents/deletion/analyze\n"
            f"[bold]Health:[/bold]   GET  http://{host}:{port}/api/v1/health\n"
            f"[bold]Docs:[/bold]     http://{host}:{port}/docs",
            title="Deletion Impact API",
            border_style="blue",
        )
    )

    config = uvicorn.Config(
        "api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
        access_log=False,
    )
    try:
        uvicorn.Server(config).run()
    except KeyboardInterrupt:
        console.print("[yellow]API server stopped.[/yellow]")
