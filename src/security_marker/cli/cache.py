"""Cache management commands."""

from pathlib import Path
from typing import Optional

import typer

from . import app
from ._common import console, open_project_cache


@app.command()
def cache_info(
    path: Path = typer.Argument(Path("."), help="Project root", exists=True, file_okay=False),
    config: Optional[Path] = typer.Option(None, "-c", "--config", help="Configuration file (TOML)"),
):
    """Show cache information and statistics."""
    stats = open_project_cache(path, config).stats()

    console.print("[bold cyan]Security Marker Cache Info[/bold cyan]")
    console.print()
    console.print(f"Directory: [blue]{stats['directory']}[/blue]")
    status = "[green]Valid[/green]" if stats["valid"] else "[yellow]Empty[/yellow]"
    console.print(f"Status: {status}")
    console.print(f"Raw responses: [yellow]{stats['raw_responses']}[/yellow]")
    console.print(f"Explanations: [yellow]{stats['explanations']}[/yellow]")
    console.print(f"Levels: [yellow]{stats['levels']}[/yellow]")
    console.print(f"Last write: {stats['last_write'] or 'never'}")


@app.command()
def cache_clear(
    path: Path = typer.Argument(Path("."), help="Project root", exists=True, file_okay=False),
    config: Optional[Path] = typer.Option(None, "-c", "--config", help="Configuration file (TOML)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete every cached response, explanation and level."""
    cache = open_project_cache(path, config)
    if not yes and not typer.confirm(f"Clear the cache in {cache.cache_dir}?"):
        raise typer.Exit(0)
    cache.clear_all()
    console.print("[green]Cache cleared successfully[/green]")
