"""Single background worker running cancellable tasks off the caller's thread."""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional

from ..logging_config import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]
Work = Callable[[ProgressCallback, threading.Event], Any]


class BackgroundWorker:
    """One long-lived thread executing submitted work in order.

    ``submit`` hands the work a progress callback and a cancellation event.
    Once the work returns, ``on_cancel`` runs if cancellation was requested,
    ``on_complete(result)`` otherwise. Exceptions are logged and re-raised
    into the returned future.
    """

    def __init__(self, name: str = "security-marker-worker") -> None:
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._closed = False

    def submit(
        self,
        work: Work,
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[Callable[[Any], None]] = None,
        on_cancel: Optional[Callable[[], None]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Future:
        if self._closed:
            raise RuntimeError(f"{self.name} is shut down")

        event = cancel_event or threading.Event()

        def progress(done: int, total: int) -> None:
            if on_progress is not None:
                on_progress(done, total)

        def run() -> Any:
            try:
                result = work(progress, event)
            except Exception:
                logger.exception("Background task failed")
                raise
            if event.is_set():
                if on_cancel is not None:
                    on_cancel()
            elif on_complete is not None:
                on_complete(result)
            return result

        future = self._executor.submit(run)
        future.cancel_event = event  # type: ignore[attr-defined]
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait)
