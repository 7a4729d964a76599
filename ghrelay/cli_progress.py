"""Console rendering helpers for the relay CLI."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import UploadOutcome, UploadStatus

console = Console()
err_console = Console(stderr=True)


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]gh-relay[/bold green]",
        subtitle="[dim]upload relay[/dim]",
        border_style="blue",
    )
    err_console.print(panel)


class SingleFileUploadProgress:
    """Spinner shown while one file goes through the relay."""

    def __init__(self, file_path: Path, display_name: Optional[str] = None):
        self.file_path = Path(file_path)
        self.filename = display_name or self.file_path.name
        try:
            self.file_size = self.file_path.stat().st_size
        except OSError:
            self.file_size = 0
        self._status = None

    def start(self) -> None:
        if self._status is not None:
            return
        self._status = err_console.status(
            f"[cyan]Relaying:[/cyan] {self.filename} ({_human_size(self.file_size)})"
        )
        self._status.start()

    def stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def complete(self, outcome: UploadOutcome) -> None:
        self.stop()

        if outcome.success:
            verb = "Exists" if outcome.result.status == UploadStatus.EXISTING else "Uploaded"
            err_console.print(f"[green]{verb}:[/green] {self.filename}")
            return

        suffix = f" - {outcome.failure.details}" if outcome.failure else ""
        err_console.print(f"[red]Failed:[/red] {self.filename}{suffix}")


def render_outcome(outcome: UploadOutcome) -> None:
    """Render the result panel (or the error) for a finished request."""
    if not outcome.success:
        failure = outcome.failure
        err_console.print(
            Panel(
                failure.details,
                title=f"[bold red]{failure.error}[/bold red]",
                border_style="red",
            )
        )
        return

    result = outcome.result
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")
    table.add_row("URL", result.remote_url)
    for key, value in result.metadata.as_dict().items():
        table.add_row(key.capitalize(), value or "[dim]-[/dim]")

    console.print(
        Panel(
            table,
            title=f"[bold green]{result.filename}[/bold green]",
            subtitle=f"[dim]{result.message}[/dim]",
            border_style="green",
        )
    )
