"""File watcher forwarding source edits to the change debouncer."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Union

from .debounce import ChangeDebouncer
from .logging_config import get_logger
from .sources import is_source_path

logger = get_logger(__name__)

# watchfiles' own debounce, collapsing the raw event burst of one save
WATCH_DEBOUNCE_MS = 200


class SourceWatcher:
    """Watches a project tree and feeds changed source paths to a debouncer.

    Uses ``watchfiles`` (Rust-backed) in a daemon thread; the debouncer
    decides when a refresh actually runs.
    """

    def __init__(self, root_dir: Union[str, Path], debouncer: ChangeDebouncer) -> None:
        self.root_dir = Path(root_dir).resolve()
        self.debouncer = debouncer
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the watcher thread."""
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop,
            name="security-marker-watcher",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the watcher to stop and wait briefly for it."""
        logger.debug("Stopping watcher thread...")
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            if self._thread.is_alive():
                logger.warning("Watcher thread did not exit cleanly within 5 seconds")
            self._thread = None

    def _watch_loop(self) -> None:
        try:
            from watchfiles import watch
        except ImportError:
            logger.error("watchfiles not installed; file watching disabled")
            return

        logger.info("Watching %s for changes", self.root_dir)

        for changes in watch(
            self.root_dir,
            stop_event=self._stop_event,
            debounce=WATCH_DEBOUNCE_MS,
            rust_timeout=5000,
            watch_filter=_SourceFilter(self.root_dir),
        ):
            if self._stop_event.is_set():
                break
            changed = [Path(path) for _change, path in changes]
            logger.debug("watchfiles reported %d changed file(s)", len(changed))
            self.debouncer.on_source_changed(changed)


class _SourceFilter:
    """watchfiles filter: source files outside hidden and vendored directories."""

    def __init__(self, root_dir: Path) -> None:
        self.root_dir = root_dir

    def __call__(self, change: object, path: str) -> bool:
        p = Path(path)
        try:
            p = p.relative_to(self.root_dir)
        except ValueError:
            pass
        return is_source_path(p)
