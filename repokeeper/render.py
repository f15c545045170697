"""
Rendering functions for repokeeper output.

This module handles all pretty-printing and table formatting.
Core functions return data, this module makes it human-readable.
"""

from rich.table import Table
from rich.console import Console
from rich import box
from typing import List, Optional, Sequence

from .domain.repository import RepositoryRecord
from .domain.tag import TagEntry

console = Console()


def _table(title: str) -> Table:
    return Table(
        title=title,
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )


def render_repositories_table(records: Sequence[RepositoryRecord], root_path: Optional[str] = None) -> None:
    """
    Render managed repositories as a pretty table.

    Args:
        records: Registry records
        root_path: Shown as the table caption when set
    """
    if not records:
        console.print("[yellow]No repositories registered.[/yellow]")
        return

    table = _table("Repositories")
    if root_path:
        table.caption = f"Root: {root_path}"

    table.add_column("ID", justify="right", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Branch", style="blue")
    table.add_column("Path", style="dim")
    table.add_column("Last Sync", style="yellow")

    for record in records:
        name = record.name
        if record.has_warning:
            name += " ⚠️"
        table.add_row(
            str(record.id),
            name,
            record.current_version or "-",
            record.branch,
            record.path or "[dim]not cloned[/dim]",
            record.last_sync_time or "never",
        )

    console.print(table)


def render_tags_table(entries: List[TagEntry], current: Optional[str] = None) -> None:
    """
    Render available versions, marking the checked-out one.

    Args:
        entries: Versions in display order
        current: Label of the current version
    """
    if not entries:
        console.print("[yellow]No dev/qa versions found.[/yellow]")
        return

    table = _table("Versions")
    table.add_column("", width=2)
    table.add_column("Version", style="cyan")
    table.add_column("Checkout", style="dim")

    for entry in entries:
        marker = "[green]●[/green]" if entry.label == current else ""
        table.add_row(marker, entry.label, entry.raw)

    console.print(table)

