"""Console rendering and progress helpers for qdrop CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from .models import SubmitResult
from .orchestrator.models import ProgressUpdate, UploadPhase

console = Console()

PHASE_LABELS = {
    UploadPhase.VALIDATING: "validate",
    UploadPhase.CHECKING_IDENTITY: "identity",
    UploadPhase.RESOLVING_TARGET: "replace",
    UploadPhase.TRANSFERRING: "transfer",
    UploadPhase.PERSISTING: "save",
    UploadPhase.COMPLETE: "done",
    UploadPhase.FAILED: "failed",
}


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
        title="[bold green]qdrop[/bold green]",
        subtitle="[dim]build uploader[/dim]",
        border_style="blue",
    )
    console.print(panel)


class SubmitProgressDisplay:
    """Single submit progress renderer: one bar for the whole session."""

    def __init__(self, filename: str, file_size: int = 0):
        self.filename = filename
        self.file_size = file_size
        self._started = False
        self._task_id: Optional[TaskID] = None
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[filename]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[dim]{task.description}"),
            expand=False,
            console=console,
        )

    def start(self) -> None:
        if self._started:
            return
        self._progress.start()
        self._task_id = self._progress.add_task(
            "Preparing...",
            filename=self.filename[:60],
            total=100,
        )
        self._started = True

    def on_progress(self, update: ProgressUpdate) -> None:
        if not self._started:
            self.start()
        self._progress.update(self._task_id, completed=update.percent, description=update.message)

    def on_phase(self, update: ProgressUpdate) -> None:
        stamp = time.strftime("%H:%M:%S")
        label = PHASE_LABELS.get(update.phase, update.phase.value)
        color = "red" if update.phase == UploadPhase.FAILED else "blue"
        self._progress.console.print(f"[dim]{stamp}[/dim] [{color}]{label:<8}[/{color}] {update.message}")

    def complete(self, result: SubmitResult) -> None:
        if self._started:
            self._progress.stop()
            self._started = False

        if result.success:
            size = f" ({_human_size(self.file_size)})" if self.file_size else ""
            console.print(f"[green]Uploaded:[/green] {self.filename}{size}")
            console.print(result.message)
            if result.record is not None:
                console.print(f"[dim]{result.record.artifact_url}[/dim]")
            return

        kind = result.error_kind.value if result.error_kind else "error"
        console.print(f"[red]Failed ({kind}):[/red] {result.message}")
