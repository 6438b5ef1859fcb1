"""
Terminal output helpers for the bot-bridge commands.

Status lines go through click, which drops color when output is not a
terminal. Tables and the import spinner share one rich console.
"""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import click
from rich.console import Console
from rich.status import Status
from rich.table import Table

console = Console()


def echo_success(message: str) -> None:
    """Report a created bot or a passed check."""
    click.secho(f"✓ {message}", fg="green")


def echo_error(message: str) -> None:
    """Report a failed bot or command on stderr."""
    click.secho(f"✗ {message}", fg="red", err=True)


def echo_warning(message: str) -> None:
    """Report something the operator must follow up on, such as orphans."""
    click.secho(f"⚠ {message}", fg="yellow")


def echo_info(message: str) -> None:
    click.secho(f"ℹ {message}", fg="blue")


@contextmanager
def step_progress(message: str) -> Generator[None, None, None]:
    """Spin while a long step (an archive import) runs, then mark it done or failed.

    The mark only says whether the block raised; a finished import may
    still report failed bots.
    """
    status = Status(f"[cyan]{message}...[/cyan]", spinner="dots", console=console)
    status.start()
    try:
        yield
    except Exception:
        status.stop()
        console.print(f"[red]✗[/red] {message}")
        raise
    status.stop()
    console.print(f"[green]✓[/green] {message}")


def format_duration(seconds: float) -> str:
    """Render an import's wall time, e.g. ``4.2s``, ``3m 5s`` or ``1h 2m 0s``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m {secs}s"


def print_table(title: str, columns: list[str], rows: list[list[Any]]) -> None:
    """Print per-bot results or config sections as a rich table.

    Cells are converted with ``str``; ``None`` is shown as ``-``.
    """
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*("-" if cell is None else str(cell) for cell in row))
    console.print(table)
