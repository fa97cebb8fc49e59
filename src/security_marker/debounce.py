"""Coalesce bursts of source-edit signals into one deferred refresh.

Two timers cooperate: a short save window collects the burst of events a
single save produces, and when it closes a long recompute window is armed
unless one is already pending. The refresh callback runs when the long
window closes, with every path accumulated in between.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Optional, Protocol, Union

from .config import MarkerConfig
from .logging_config import get_logger
from .sources import is_source_path

logger = get_logger(__name__)

PathLike = Union[str, Path]
RefreshCallback = Callable[[frozenset], None]


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


def daemon_timer(interval: float, function: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


class ChangeDebouncer:
    """Turns source-change signals into at most one pending refresh.

    Args:
        refresh_callback: Called with the frozenset of changed paths
        config: Supplies the two windows and the auto_refresh switch
        timer_factory: ``(interval, function) -> timer``; tests inject fakes
        project_root: Paths are judged relative to it when given
    """

    def __init__(
        self,
        refresh_callback: RefreshCallback,
        config: Optional[MarkerConfig] = None,
        timer_factory: TimerFactory = daemon_timer,
        project_root: Optional[PathLike] = None,
    ) -> None:
        self.refresh_callback = refresh_callback
        self.project_root = Path(project_root).resolve() if project_root is not None else None
        self.config = config or MarkerConfig()
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._pending: set[Path] = set()
        self._save_timer: Optional[Timer] = None
        self._recompute_timer: Optional[Timer] = None

    @property
    def save_window(self) -> float:
        return self.config.save_debounce_seconds

    @property
    def recompute_delay(self) -> float:
        return self.config.recompute_delay_seconds

    @property
    def is_pending(self) -> bool:
        with self._lock:
            return self._save_timer is not None or self._recompute_timer is not None

    def on_source_changed(self, affected_scope: Union[PathLike, Iterable[PathLike]]) -> bool:
        """Record a change signal. Returns True if it was accepted."""
        if isinstance(affected_scope, (str, Path)):
            affected_scope = [affected_scope]

        relevant = {Path(p) for p in affected_scope if self._is_relevant(Path(p))}
        if not relevant:
            logger.debug("Ignoring change signal without source files")
            return False

        if not self.config.auto_refresh:
            logger.info("Auto refresh is disabled, ignoring %d changed file(s)", len(relevant))
            return False

        with self._lock:
            self._pending.update(relevant)
            if self._save_timer is None:
                logger.debug("Save window armed for %.1fs", self.save_window)
                self._save_timer = self._start_timer(self.save_window, self._save_window_closed)
            else:
                logger.debug("Coalescing %d changed file(s) into the open save window", len(relevant))
        return True

    def flush(self) -> None:
        """Fire pending work now instead of waiting for the timers."""
        with self._lock:
            self._cancel_timers()
            paths = frozenset(self._pending)
            self._pending.clear()
        if paths:
            self._fire(paths)

    def cancel(self) -> None:
        """Drop pending timers and accumulated paths."""
        with self._lock:
            self._cancel_timers()
            self._pending.clear()

    def _is_relevant(self, path: Path) -> bool:
        if self.project_root is not None and path.is_absolute():
            try:
                path = path.relative_to(self.project_root)
            except ValueError:
                return False
        return is_source_path(path)

    def _save_window_closed(self) -> None:
        with self._lock:
            self._save_timer = None
            if self._recompute_timer is not None:
                logger.info("Refresh already scheduled, skipping duplicate request")
                return
            if not self._pending:
                return
            logger.info(
                "Detected %d source file change(s), refreshing in %.0fs",
                len(self._pending), self.recompute_delay,
            )
            self._recompute_timer = self._start_timer(self.recompute_delay, self._recompute_window_closed)

    def _recompute_window_closed(self) -> None:
        with self._lock:
            paths = frozenset(self._pending)
            self._pending.clear()
        try:
            if paths:
                self._fire(paths)
        finally:
            with self._lock:
                self._recompute_timer = None
                # Changes that arrived while the callback ran still need a refresh
                if self._pending and self._save_timer is None:
                    self._recompute_timer = self._start_timer(
                        self.recompute_delay, self._recompute_window_closed
                    )

    def _fire(self, paths: frozenset) -> None:
        logger.info("Triggering refresh for %d changed file(s)", len(paths))
        try:
            self.refresh_callback(paths)
        except Exception:
            logger.exception("Debounced refresh failed")

    def _start_timer(self, interval: float, function: Callable[[], None]) -> Timer:
        timer = self._timer_factory(interval, function)
        timer.start()
        return timer

    def _cancel_timers(self) -> None:
        for timer in (self._save_timer, self._recompute_timer):
            if timer is not None:
                timer.cancel()
        self._save_timer = None
        self._recompute_timer = None
