"""CLI entry point: registers all subcommands."""

import typer

from .. import __version__
from ._common import console

app = typer.Typer(
    name="security-marker",
    help="Security Marker - security criticality explanations for your methods",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def main() -> None:
    app()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold cyan]Security Marker[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False, "--version", help="Show version and exit", callback=_version_callback, is_eager=True
    ),
):
    """Security criticality classification and explanations per method."""


# Import subcommands to register them
from .analyze import analyze as _analyze  # noqa: F401, E402
from .show import show as _show, explain as _explain  # noqa: F401, E402
from .cache import cache_info as _cache_info, cache_clear as _cache_clear  # noqa: F401, E402
from .watch import watch as _watch  # noqa: F401, E402
