"""Analyze command: one synchronous explanation run with a progress bar."""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from ..cache import CacheTable
from ..exceptions import SecurityMarkerError
from ..generation.render import is_unavailable
from ..logging_config import setup_logging
from ..models import SeverityLabel
from ..service import MarkerService
from . import app
from ._common import console, level_markup, resolve_config
from .progress import GenerationProgress, create_summary_table


@app.command()
def analyze(
    path: Path = typer.Argument(
        Path("."),
        help="Project root to analyze",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
    ),
    metric: Optional[str] = typer.Option(
        None,
        "--metric",
        "-m",
        help="Metric used to rank methods: CC, LOC or LCOM",
    ),
    recompute: bool = typer.Option(
        False,
        "--recompute",
        help="Regenerate every explanation instead of only missing ones",
    ),
    show_low: Optional[bool] = typer.Option(
        None,
        "--show-low/--hide-low",
        help="Generate explanations for LOW severity methods too",
    ),
    limit: int = typer.Option(
        25,
        "--limit",
        "-n",
        help="Rows to show in the result table (0 for all)",
        min=0,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
):
    """
    Classify methods by security criticality and generate explanations.

    [bold cyan]Examples:[/bold cyan]

      security-marker analyze

      security-marker analyze src --metric LOC --recompute
    """
    logger = setup_logging(verbose=verbose, quiet=quiet)
    service = None

    try:
        settings = resolve_config(
            path, config=config, metric=metric, show_low=show_low, verbose=verbose, quiet=quiet
        )
        service = MarkerService.for_project(path, settings)

        progress = GenerationProgress(console)
        with progress:
            summary = service.refresh_now(is_manual_recompute=recompute, on_progress=progress.update)
            progress.finish(summary)

        if summary is None:
            console.print("[yellow]Another run is already active for this project.[/yellow]")
            raise typer.Exit(0)

        console.print(create_summary_table(summary))
        console.print()
        _print_results(service, limit)

    except typer.Exit:
        raise

    except SecurityMarkerError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    except KeyboardInterrupt:
        logger.info("Analysis interrupted by user")
        if service is not None:
            service.orchestrator.cancel()
        console.print("\n[yellow]Analysis interrupted[/yellow]")
        raise typer.Exit(130)

    except Exception as e:
        logger.exception("Unexpected error during analysis")
        console.print(f"[red]Unexpected error:[/red] {e}")
        raise typer.Exit(1)

    finally:
        if service is not None:
            service.shutdown(wait=False)


def _print_results(service: MarkerService, limit: int) -> None:
    levels = service.cache.snapshot(CacheTable.LEVELS)
    if not levels:
        console.print("[dim]No methods with a non-zero score.[/dim]")
        return

    explanations = service.cache.snapshot(CacheTable.EXPLANATIONS)

    def rank(item: tuple[str, str]) -> int:
        label = SeverityLabel.parse(item[1])
        return label.rank if label is not None else -1

    rows = sorted(levels.items(), key=rank, reverse=True)
    if limit:
        rows = rows[:limit]

    table = Table(title="Security criticality", show_lines=False)
    table.add_column("Level")
    table.add_column("Method", overflow="fold")
    table.add_column("Explanation")
    for signature, level in rows:
        text = explanations.get(signature)
        if text is None:
            status = "[dim]none[/dim]"
        elif is_unavailable(text):
            status = "[red]unavailable[/red]"
        else:
            status = "[green]ready[/green]"
        table.add_row(level_markup(level), signature, status)
    console.print(table)
    if limit and len(levels) > limit:
        console.print(f"[dim]... {len(levels) - limit} more (use --limit 0 to show all)[/dim]")
