"""Watch command: keep explanations fresh while sources change."""

import threading
from pathlib import Path
from typing import Optional

import typer

from ..debounce import ChangeDebouncer
from ..exceptions import SecurityMarkerError
from ..generation.render import is_unavailable
from ..logging_config import setup_logging
from ..models import RunSummary
from ..service import MarkerService
from ..watch import SourceWatcher
from . import app
from ._common import console, resolve_config


@app.command()
def watch(
    path: Path = typer.Argument(Path("."), help="Project root to watch", exists=True, file_okay=False),
    metric: Optional[str] = typer.Option(None, "--metric", "-m", help="Metric: CC, LOC or LCOM"),
    skip_initial: bool = typer.Option(False, "--skip-initial", help="Do not run a refresh on start"),
    config: Optional[Path] = typer.Option(None, "-c", "--config", help="Configuration file (TOML)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    Refresh explanations whenever source files are saved.

    A burst of saves is collapsed into one refresh that runs after the
    configured recompute delay.
    """
    logger = setup_logging(verbose=verbose)

    try:
        settings = resolve_config(path, config=config, metric=metric, verbose=verbose)
        service = MarkerService.for_project(path, settings)
    except SecurityMarkerError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    def on_explanation(signature: str, text: str) -> None:
        marker = "[red]unavailable[/red]" if is_unavailable(text) else "[green]ready[/green]"
        console.print(f"  {marker} {signature}")

    def on_complete(summary: RunSummary) -> None:
        console.print(f"[cyan]Run {summary.message}[/cyan]")

    service.add_explanation_listener(on_explanation)
    service.add_complete_listener(on_complete)

    debouncer = ChangeDebouncer(service.on_sources_changed, settings, project_root=path)
    watcher = SourceWatcher(path, debouncer)
    stop = threading.Event()

    try:
        if not skip_initial:
            console.print("[bold]Initial refresh...[/bold]")
            service.refresh(is_manual_recompute=False)
        watcher.start()
        console.print(
            f"[bold cyan]Watching[/bold cyan] {path.resolve()} "
            f"(refresh {settings.recompute_delay_seconds:.0f}s after the last save, Ctrl+C to stop)"
        )
        while not stop.wait(0.5):
            pass
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping...[/yellow]")
    finally:
        watcher.stop()
        debouncer.cancel()
        service.shutdown(wait=True)
