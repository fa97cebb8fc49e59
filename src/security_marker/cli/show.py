"""Read-only views over the cached levels and explanations."""

from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from ..cache import CacheTable
from ..generation.render import to_plain_text
from ..matching import SignatureMatcher
from ..models import SeverityLabel
from . import app
from ._common import console, level_markup, open_project_cache


@app.command()
def show(
    path: Path = typer.Argument(Path("."), help="Project root", exists=True, file_okay=False),
    level: Optional[str] = typer.Option(
        None,
        "--level",
        "-l",
        help="Only show methods at this level (e.g. HIGH)",
    ),
    config: Optional[Path] = typer.Option(None, "-c", "--config", help="Configuration file (TOML)"),
):
    """List cached severity levels, most critical first."""
    wanted = None
    if level is not None:
        wanted = SeverityLabel.parse(level)
        if wanted is None:
            console.print(f"[red]Error:[/red] unknown level {level!r}")
            raise typer.Exit(1)

    cache = open_project_cache(path, config)
    levels = cache.snapshot(CacheTable.LEVELS)
    if wanted is not None:
        levels = {sig: lvl for sig, lvl in levels.items() if SeverityLabel.parse(lvl) is wanted}

    if not levels:
        console.print("[yellow]No cached levels.[/yellow] Run [bold]security-marker analyze[/bold] first.")
        raise typer.Exit(0)

    def rank(item: tuple[str, str]) -> tuple[int, str]:
        label = SeverityLabel.parse(item[1])
        return (-(label.rank if label is not None else -1), item[0])

    table = Table(show_header=True)
    table.add_column("Level")
    table.add_column("Method", overflow="fold")
    for signature, lvl in sorted(levels.items(), key=rank):
        table.add_row(level_markup(lvl), signature)
    console.print(table)


@app.command()
def explain(
    path: Path = typer.Argument(..., help="Project root", exists=True, file_okay=False),
    signature: str = typer.Argument(..., help="Method signature, e.g. 'pkg.mod.Class#method(int)'"),
    html: bool = typer.Option(False, "--html", help="Print the raw HTML fragment"),
    config: Optional[Path] = typer.Option(None, "-c", "--config", help="Configuration file (TOML)"),
):
    """Print the cached explanation for one method."""
    cache = open_project_cache(path, config)
    known = cache.keys(CacheTable.EXPLANATIONS) | cache.keys(CacheTable.LEVELS)
    resolved = SignatureMatcher(known).match(signature)

    text = cache.get(CacheTable.EXPLANATIONS, resolved)
    if text is None:
        console.print(f"[yellow]No explanation cached for[/yellow] {signature}")
        raise typer.Exit(1)

    if html:
        console.print(text, markup=False, highlight=False)
        return

    title = f"{resolved}  {level_markup(cache.get(CacheTable.LEVELS, resolved))}"
    console.print(Panel(to_plain_text(text), title=title, title_align="left"))
