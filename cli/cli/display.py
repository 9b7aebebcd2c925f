"""Rich output formatting for the deletion-impact CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from impact_engine.catalog import RelationshipCatalog
    from impact_engine.models import ImpactReport


# ---------------------------------------------------------------------------
# Severity colour mapping
# ---------------------------------------------------------------------------

_SEVERITY_COLOURS: dict[str, str] = {
    "WILL_DELETE": "red",
    "WILL_ORPHAN": "yellow",
    "WILL_LOSE_DATA": "magenta",
    "INFORMATIONAL": "dim",
}


def _coloured_severity(severity: str) -> str:
    colour = _SEVERITY_COLOURS.get(severity, "white")
    return f"[{colour}]{severity}[/{colour}]"


def _via(relation_path: tuple[str, ...]) -> str:
    """Show the last hop of a relation path, or ``(requested)`` for seeds."""
    if not relation_path:
        return "[dim](requested)[/dim]"
    hops = len(relation_path)
    suffix = f" [dim](+{hops - 1} hop{'s' if hops > 2 else ''})[/dim]" if hops > 1 else ""
    return relation_path[-1] + suffix


# ---------------------------------------------------------------------------
# Impact report
# ---------------------------------------------------------------------------


def display_impact_report(console: Console, report: ImpactReport) -> None:
    """Render an impact report: header panel, per-type tables, warnings.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    report:
        The report to display.
    """
    requested = ", ".join(ref.entity_id for ref in report.requested_ids)
    severity_counts = "  ".join(
        f"{_coloured_severity(severity.value)} {count}"
        for severity, count in report.counts_by_severity.items()
        if count
    )
    header_lines = [
        f"[bold]Requested:[/bold]      {requested}",
        f"[bold]Affected:[/bold]       {report.total_affected}",
        f"[bold]Severities:[/bold]     {severity_counts or '(none)'}",
        f"[bold]Est. deletion:[/bold]  {report.estimated_time_seconds}s",
        f"[bold]Generated:[/bold]      {report.generated_at.isoformat()}",
    ]
    console.print(Panel("\n".join(header_lines), title="Deletion Impact", border_style="blue"))

    for entity_type, nodes in report.nodes_by_type.items():
        table = Table(title=f"{entity_type} ({len(nodes)})", title_justify="left", show_lines=False)
        table.add_column("ID", style="bold")
        table.add_column("Severity")
        table.add_column("Via")
        for node in nodes:
            table.add_row(node.entity_id, _coloured_severity(node.severity.value), _via(node.relation_path))
        console.print(table)

    if report.warnings:
        console.print("\n[bold yellow]Warnings[/bold yellow]")
        for warning in report.warnings:
            console.print(f"  [yellow]![/yellow] {warning}")

    if report.summary:
        console.print(f"\n{report.summary}")


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def display_catalog(console: Console, catalog: RelationshipCatalog) -> None:
    """Render the relationship catalog as a single table."""
    table = Table(title=f"Relationship catalog ({len(catalog)} relations)", title_justify="left")
    table.add_column("Entity type", style="bold")
    table.add_column("Dependent type")
    table.add_column("Relation")
    table.add_column("Severity")

    for entity_type in catalog.entity_types():
        for descriptor in catalog.edges_for(entity_type):
            table.add_row(
                entity_type,
                descriptor.dependent_type,
                descriptor.relation_kind.value,
                _coloured_severity(descriptor.severity.value),
            )
    console.print(table)
