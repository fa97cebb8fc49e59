"""Progress display for explanation runs."""

from __future__ import annotations

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from ..models import RunState, RunSummary


class GenerationProgress:
    """Rich progress bar fed by the orchestrator's ``on_progress`` callback."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None

    def start(self, description: str = "Collecting metrics...") -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40, complete_style="cyan", finished_style="green"),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )
        self._progress.start()
        self._task_id = self._progress.add_task(description, total=None)

    def update(self, completed: int, total: int) -> None:
        """Progress callback: ``completed`` of ``total`` methods explained."""
        if not self._progress or self._task_id is None:
            return
        self._progress.update(
            self._task_id,
            completed=completed,
            total=total,
            description="Generating explanations",
        )

    def finish(self, summary: RunSummary | None) -> None:
        if self._progress and self._task_id is not None:
            if summary is not None and summary.state is RunState.DONE:
                description = f"[green]Done![/] {summary.completed} methods explained"
            elif summary is not None:
                description = f"[yellow]{summary.state.value.capitalize()}[/]"
            else:
                description = "[yellow]Skipped[/]"
            self._progress.update(self._task_id, description=description)
            self._progress.stop()
        self._progress = None
        self._task_id = None

    def __enter__(self) -> GenerationProgress:
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None


def create_summary_table(summary: RunSummary) -> Table:
    """Key figures of one run."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column(style="bold")

    table.add_row("Metric", summary.metric.label)
    table.add_row("State", summary.state.value)
    table.add_row("Explained", f"{summary.completed}/{summary.total}")
    table.add_row("Skipped", str(summary.skipped))
    table.add_row(
        "Failed",
        f"[{'red' if summary.failed else 'green'}]{summary.failed}[/]",
    )
    if summary.requests:
        table.add_row("Requests", str(summary.requests))
        table.add_row("Tokens", f"{summary.input_tokens} in / {summary.output_tokens} out")
        table.add_row("Cost", f"${summary.cost:.4f} (discounted ${summary.discounted_cost:.4f})")
    table.add_row("Elapsed", f"{summary.elapsed_seconds:.1f}s")
    return table
