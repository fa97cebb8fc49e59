"""Shared CLI helpers."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ..cache import ExplanationCache
from ..config import MarkerConfig, load_config
from ..exceptions import SecurityMarkerError

console = Console()

LEVEL_STYLES = {
    "VERY_HIGH": "bold red",
    "HIGH": "red",
    "MEDIUM": "yellow",
    "LOW": "green",
    "VERY_LOW": "dim green",
}


def level_markup(level: Optional[str]) -> str:
    if not level:
        return "[dim]-[/dim]"
    style = LEVEL_STYLES.get(level, "white")
    return f"[{style}]{level}[/{style}]"


def resolve_config(
    project: Path,
    config: Optional[Path] = None,
    metric: Optional[str] = None,
    show_low: Optional[bool] = None,
    verbose: bool = False,
    quiet: bool = False,
) -> MarkerConfig:
    """Build settings from CLI options."""
    overrides = {}
    if metric is not None:
        overrides["metric"] = metric
    if show_low is not None:
        overrides["show_low_level_explanations"] = show_low
    return load_config(
        config_file=config, project_root=project, verbose=verbose, quiet=quiet, **overrides
    )


def open_project_cache(project: Path, config: Optional[Path] = None) -> ExplanationCache:
    """The project's cache, without building the generation pipeline."""
    try:
        settings = resolve_config(project, config=config)
    except SecurityMarkerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    return ExplanationCache(settings.cache_path(project.resolve()))
