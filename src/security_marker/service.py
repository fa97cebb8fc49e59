"""Project-scoped facade the host calls into.

``MarkerService`` answers per-method lookups from the cache and keeps the
cache fresh: a lookup miss queues one deferred recompute, no matter how
many misses arrive while it is pending.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future
from pathlib import Path
from typing import Optional, Union

from .cache import CacheTable, ExplanationCache
from .config import MarkerConfig
from .debounce import Timer, TimerFactory, daemon_timer
from .generation.orchestrator import (
    CompleteCallback,
    ExplanationCallback,
    GenerationOrchestrator,
    ProgressCallback,
)
from .generation.render import render_placeholder
from .interfaces import GenerationService
from .logging_config import get_logger
from .models import RunSummary

logger = get_logger(__name__)


class MarkerService:
    """Lookups plus refresh scheduling for one project.

    Args:
        orchestrator: Pipeline driver, owning the single-flight guard
        cache: The durable store the orchestrator writes to
        config: Supplies ``miss_recompute_delay``
        timer_factory: Used for the deferred recompute; tests inject fakes
    """

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        cache: ExplanationCache,
        config: Optional[MarkerConfig] = None,
        timer_factory: TimerFactory = daemon_timer,
    ) -> None:
        self.orchestrator = orchestrator
        self.cache = cache
        self.config = config or orchestrator.config
        self._timer_factory = timer_factory
        self._recompute_queued = threading.Lock()
        self._miss_timer: Optional[Timer] = None
        self._explanation_listeners: list[ExplanationCallback] = []
        self._complete_listeners: list[CompleteCallback] = []

    @classmethod
    def for_project(
        cls,
        project_root: Union[str, Path],
        config: MarkerConfig,
        generation_service: Optional[GenerationService] = None,
        source_roots: Optional[Iterable[Union[str, Path]]] = None,
    ) -> MarkerService:
        """Wire the bundled Python collaborators for a project directory."""
        from .generation.llm import OpenAIExplanationService
        from .index import PythonSymbolIndex
        from .metrics import PythonMetricsExtractor

        root = Path(project_root).resolve()
        roots = [Path(r) for r in source_roots] if source_roots else [root]
        cache = ExplanationCache(config.cache_path(root))
        orchestrator = GenerationOrchestrator(
            symbol_index=PythonSymbolIndex(roots),
            extractor=PythonMetricsExtractor(),
            service=generation_service or OpenAIExplanationService(config),
            cache=cache,
            config=config,
            source_roots=roots,
        )
        return cls(orchestrator, cache, config)

    # -- listeners -------------------------------------------------------------

    def add_explanation_listener(self, callback: ExplanationCallback) -> None:
        self._explanation_listeners.append(callback)

    def add_complete_listener(self, callback: CompleteCallback) -> None:
        self._complete_listeners.append(callback)

    # -- lookups -----------------------------------------------------------------

    def explanation_for(self, signature: str) -> Optional[str]:
        """Cached explanation for a method.

        While the active run still has the method queued, a placeholder comes
        back. Otherwise a miss returns None and queues a deferred recompute.
        """
        cached = self.cache.get(CacheTable.EXPLANATIONS, signature)
        if cached is not None:
            return cached

        run = self.orchestrator.current_run
        if run is not None and signature in run.scores:
            level = run.levels.get(signature, "NA")
            return render_placeholder(run.metric, run.scores[signature], level)

        self._queue_recompute()
        return None

    def level_for(self, signature: str) -> Optional[str]:
        return self.cache.get(CacheTable.LEVELS, signature)

    def all_signatures(self) -> set[str]:
        return self.cache.keys(CacheTable.EXPLANATIONS)

    # -- refresh -----------------------------------------------------------------

    def refresh(
        self,
        is_manual_recompute: bool = True,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[Future]:
        """Recompute in the background. Returns None if a run is already active."""
        return self.orchestrator.submit_refresh(
            is_manual_recompute=is_manual_recompute,
            on_explanation=self._publish_explanation,
            on_progress=on_progress,
            on_complete=self._publish_complete,
        )

    def refresh_now(
        self,
        is_manual_recompute: bool = True,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[RunSummary]:
        """Recompute on the calling thread."""
        return self.orchestrator.refresh(
            is_manual_recompute=is_manual_recompute,
            on_explanation=self._publish_explanation,
            on_progress=on_progress,
            on_complete=self._publish_complete,
        )

    def on_sources_changed(self, paths: Iterable[Path]) -> None:
        """Refresh callback for the ChangeDebouncer."""
        invalidate = getattr(self.orchestrator.symbol_index, "invalidate", None)
        if invalidate is not None:
            invalidate()
        self.refresh(is_manual_recompute=False)

    def shutdown(self, wait: bool = True) -> None:
        timer = self._miss_timer
        if timer is not None:
            timer.cancel()
        self.orchestrator.shutdown(wait=wait)

    # -- internals ---------------------------------------------------------------

    def _queue_recompute(self) -> None:
        if not self._recompute_queued.acquire(blocking=False):
            return
        logger.debug("Cache miss, recompute queued in %.0fs", self.config.miss_recompute_delay)
        try:
            self._miss_timer = self._timer_factory(
                self.config.miss_recompute_delay, self._deferred_recompute
            )
            self._miss_timer.start()
        except Exception:
            self._recompute_queued.release()
            raise

    def _deferred_recompute(self) -> None:
        try:
            self.refresh(is_manual_recompute=False)
        finally:
            self._miss_timer = None
            self._recompute_queued.release()

    def _publish_explanation(self, signature: str, text: str) -> None:
        for listener in list(self._explanation_listeners):
            try:
                listener(signature, text)
            except Exception:
                logger.exception("Explanation listener raised")

    def _publish_complete(self, summary: RunSummary) -> None:
        for listener in list(self._complete_listeners):
            try:
                listener(summary)
            except Exception:
                logger.exception("Completion listener raised")
