"""Console output helpers.

Shared rich Console plus an error panel that shows the error code, why
it happened and how to fix it.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from catalogforge.core.exceptions import error_details, get_root_cause

_console: Optional[Console] = None


def get_console() -> Console:
    """Get shared console instance (lazy-loaded)."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def tip(message: str) -> None:
    """Display a dim guidance line."""
    get_console().print(f"  [dim]Tip: {message}[/dim]")


def render_error(exc: BaseException, context: str = "") -> None:
    """Render an exception as a helpful error panel.

    Args:
        exc: Exception to render
        context: Optional context line (e.g. "While scraping products")
    """
    details = error_details(exc)
    root = get_root_cause(exc)

    content = Text()
    if context:
        content.append(f"{context}\n\n", style="italic")
    content.append(details["message"] or type(exc).__name__, style="bold")
    if root is not exc:
        content.append(f"\nCaused by: {root}", style="dim")
    content.append("\n\nWhy it happened:\n", style="bold yellow")
    content.append(details["why_it_happened"])
    content.append("\n\nHow to fix:\n", style="bold green")
    content.append("\n".join(f"  - {fix}" for fix in details["how_to_fix"]))

    get_console().print(
        Panel(
            content,
            title=f"[bold red]Error: {details['error_code']}[/bold red]",
            border_style="red",
            padding=(1, 2),
        )
    )


def records_table(title: str, records: List[Dict[str, Any]], columns: List[str]) -> Table:
    """Build a table showing selected keys of each record."""
    table = Table(title=title)
    for column in columns:
        table.add_column(column, overflow="fold")
    for record in records:
        table.add_row(*("" if record.get(c) is None else str(record.get(c)) for c in columns))
    return table


def key_value_table(title: str, values: Dict[str, Any]) -> Table:
    table = Table(title=title, show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    for key, value in values.items():
        table.add_row(key, str(value))
    return table
