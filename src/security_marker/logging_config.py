"""Rich-backed logging for the CLI; library code only calls ``get_logger``."""

import logging

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "security_marker"

# HTTP client chatter from the generation service, kept out of -v output
_NOISY_LOGGERS = ("openai", "httpx", "httpcore")


def _level_for(verbose: bool, quiet: bool) -> int:
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.DEBUG
    return logging.WARNING


def setup_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """Send log records to stderr through rich and return the package logger.

    ``quiet`` wins over ``verbose``.
    """
    level = _level_for(verbose, quiet)
    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        markup=False,
        show_path=verbose,
    )
    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=[handler], force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` under the ``security_marker`` namespace."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
