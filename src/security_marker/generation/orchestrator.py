"""Generation orchestrator for the explanation pipeline.

One refresh runs through these phases:

1. Collecting - extract metric scores for every source root, reconcile the
   signatures against the symbol index, drop zero scores
2. Classifying - bin scores into severity labels, persist them, order the
   methods most severe first
3. Generating - one explanation per method, sequentially, written to the
   cache and delivered to the caller as soon as it exists

Only one run is in flight per orchestrator. A refresh requested while one is
active is dropped, not queued.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future
from pathlib import Path
from typing import Optional, Union

from ..cache import CacheTable, ExplanationCache
from ..classification import classify
from ..config import MarkerConfig
from ..exceptions import ResponseParseError
from ..interfaces import GenerationService, MetricsExtractor, SymbolIndex
from ..logging_config import get_logger
from ..matching import SignatureMatcher
from ..models import (
    ExplanationResponse,
    GenerationRun,
    MetricKind,
    MetricScore,
    RunState,
    RunSummary,
    SeverityLabel,
    Usage,
    band_names,
)
from .pricing import UsageLedger
from .prompts import MISSING_CODE, parse_response
from .render import render_explanation, render_unavailable
from .worker import BackgroundWorker

logger = get_logger(__name__)

ExplanationCallback = Callable[[str, str], None]
ProgressCallback = Callable[[int, int], None]
CompleteCallback = Callable[[RunSummary], None]


class GenerationOrchestrator:
    """Drives metrics -> severity -> explanations for one project.

    Collaborators are injected; the orchestrator itself only holds the
    transient GenerationRun. Persisted state belongs to the cache.
    """

    def __init__(
        self,
        symbol_index: SymbolIndex,
        extractor: MetricsExtractor,
        service: GenerationService,
        cache: ExplanationCache,
        config: MarkerConfig,
        source_roots: Iterable[Union[str, Path]],
        ledger: Optional[UsageLedger] = None,
        worker: Optional[BackgroundWorker] = None,
    ) -> None:
        self.symbol_index = symbol_index
        self.extractor = extractor
        self.service = service
        self.cache = cache
        self.config = config
        self.source_roots = [Path(r) for r in source_roots]
        self.ledger = ledger or UsageLedger(config.llm_model, config.pricing_discount)
        self._worker = worker
        self._guard = threading.Lock()
        self._current: Optional[GenerationRun] = None

    # -- public API ----------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._guard.locked()

    @property
    def current_run(self) -> Optional[GenerationRun]:
        return self._current

    def refresh(
        self,
        is_manual_recompute: bool = False,
        on_explanation: Optional[ExplanationCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[RunSummary]:
        """Run the pipeline on the calling thread.

        Returns the run summary, or None when another run is already active.
        """
        if not self._guard.acquire(blocking=False):
            logger.info("Explanation generation already running, skipping duplicate request")
            return None
        try:
            return self._execute(
                is_manual_recompute, on_explanation, on_progress, on_complete, cancel_event
            )
        finally:
            self._guard.release()

    def submit_refresh(
        self,
        is_manual_recompute: bool = False,
        on_explanation: Optional[ExplanationCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
    ) -> Optional[Future]:
        """Run the pipeline on the background worker.

        The single-flight guard is taken here, at submission, so a second
        request is dropped even before the first one starts executing.
        """
        if not self._guard.acquire(blocking=False):
            logger.info("Explanation generation already running, skipping duplicate request")
            return None

        def work(progress: ProgressCallback, cancel_event: threading.Event) -> RunSummary:
            try:
                return self._execute(
                    is_manual_recompute, on_explanation, progress, on_complete, cancel_event
                )
            finally:
                self._guard.release()

        try:
            if self._worker is None:
                self._worker = BackgroundWorker()
            return self._worker.submit(work, on_progress=on_progress)
        except Exception:
            self._guard.release()
            raise

    def cancel(self) -> bool:
        """Request cooperative cancellation of the active run."""
        run = self._current
        if run is None:
            return False
        run.cancel_event.set()
        logger.info("Cancellation requested for the active generation run")
        return True

    def shutdown(self, wait: bool = True) -> None:
        self.cancel()
        if self._worker is not None:
            self._worker.shutdown(wait=wait)

    # -- pipeline ------------------------------------------------------------

    def _execute(
        self,
        is_manual_recompute: bool,
        on_explanation: Optional[ExplanationCallback],
        on_progress: Optional[ProgressCallback],
        on_complete: Optional[CompleteCallback],
        cancel_event: Optional[threading.Event],
    ) -> RunSummary:
        run = GenerationRun(metric=self.config.metric_kind, is_manual_recompute=is_manual_recompute)
        if cancel_event is not None:
            run.cancel_event = cancel_event
        usage_before = self.ledger.totals()
        self._current = run
        try:
            try:
                run.advance(RunState.COLLECTING)
                scores = self._collect(run.metric)
                run.advance(RunState.CLASSIFYING)
                levels = self._classify(scores)
                run.scores, run.levels = scores, levels
            except Exception:
                logger.exception("Explanation run aborted while collecting metrics")
                run.finish(RunState.ABORTED)
            else:
                ordered = sorted(scores, key=lambda s: scores[s], reverse=True)
                run.advance(RunState.GENERATING)
                self._generate(run, ordered, scores, levels, on_explanation, on_progress)

            summary = self._summarize(run, usage_before)
            logger.info("Explanation run %s", summary.message)
            if summary.requests:
                logger.info(
                    "Generation usage: %d requests, %d input / %d output tokens, "
                    "cost $%.4f (discounted $%.4f)",
                    summary.requests, summary.input_tokens, summary.output_tokens,
                    summary.cost, summary.discounted_cost,
                )
            if on_complete is not None:
                self._notify(on_complete, summary)
            return summary
        finally:
            self._current = None

    def _collect(self, metric: MetricKind) -> dict[str, float]:
        started = time.monotonic()
        matcher = SignatureMatcher(self.symbol_index.all_authoritative_signatures())

        raw: dict[str, float] = {}
        for root in self.source_roots:
            raw.update(self.extractor.extract(root, metric))

        reconciled = matcher.reconcile(raw)
        unresolved = sum(1 for sig in reconciled if sig not in matcher)
        scores = {sig: value for sig, value in reconciled.items() if value != 0}
        logger.info(
            "Collected %s for %d methods in %.0f ms (%d non-zero, %d unresolved)",
            metric.label, len(reconciled), (time.monotonic() - started) * 1000,
            len(scores), unresolved,
        )
        return scores

    def _classify(self, scores: Mapping[str, float]) -> dict[str, str]:
        levels = classify(
            scores,
            bins=self.config.bins,
            labels=band_names(self.config.bins),
            strategy=self.config.classification_strategy,
        )
        self.cache.put_all(CacheTable.LEVELS, levels)
        return levels

    def _should_generate(self, score: MetricScore, level: str, is_manual: bool) -> bool:
        severity = SeverityLabel.parse(level)
        if (
            severity is not None
            and severity <= SeverityLabel.LOW
            and not self.config.show_low_level_explanations
        ):
            return False
        if is_manual:
            return True
        has_explanation = self.cache.get(CacheTable.EXPLANATIONS, score.signature) is not None
        has_response = self.cache.get(CacheTable.RAW_RESPONSES, score.key) is not None
        return not (has_explanation and has_response)

    def _generate(
        self,
        run: GenerationRun,
        ordered: list[str],
        scores: Mapping[str, float],
        levels: Mapping[str, str],
        on_explanation: Optional[ExplanationCallback],
        on_progress: Optional[ProgressCallback],
    ) -> None:
        pending = [
            score for score in (MetricScore(sig, run.metric, scores[sig]) for sig in ordered)
            if self._should_generate(score, levels[score.signature], run.is_manual_recompute)
        ]
        run.signatures = [score.signature for score in pending]
        run.skipped = len(ordered) - len(run.signatures)
        logger.info(
            "Generating explanations for %d methods (%d skipped)", run.total, run.skipped
        )

        for score in pending:
            signature = score.signature
            if run.cancelled:
                logger.warning(
                    "Explanation generation cancelled after %d of %d methods",
                    run.completed, run.total,
                )
                run.finish(RunState.CANCELLED)
                return

            text, ok = self._explain(score, levels[signature])
            self.cache.put(CacheTable.EXPLANATIONS, signature, text)
            if on_explanation is not None:
                self._notify(on_explanation, signature, text)

            run.completed += 1
            if ok:
                run.succeeded += 1
            else:
                run.failed += 1
            if on_progress is not None:
                self._notify(on_progress, run.completed, run.total)

        run.finish(RunState.DONE)

    def _explain(self, score: MetricScore, level: str) -> tuple[str, bool]:
        """Rendered explanation for one method, or the unavailable fallback."""
        try:
            response = self._response_for(score)
        except Exception as e:
            logger.warning("Failed to generate explanation for %s: %s", score.signature, e)
            return render_unavailable(score.metric, score.value, level), False
        return render_explanation(response, score.metric, score.value, level), True

    def _response_for(self, score: MetricScore) -> ExplanationResponse:
        cached = self.cache.get(CacheTable.RAW_RESPONSES, score.key)
        if cached is not None:
            try:
                return parse_response(cached)
            except ResponseParseError as e:
                logger.debug("Discarding cached response for %s: %s", score.key, e)

        source_text = self.symbol_index.source_text_for(score.signature) or MISSING_CODE
        started = time.monotonic()
        try:
            result = self.service.generate(score.signature, score.metric, score.value, source_text)
        except Exception as e:
            # A failed completion may still have been billed
            self._record_usage(getattr(e, "usage", None), started)
            raise
        self._record_usage(result.usage, started)
        self.cache.put(CacheTable.RAW_RESPONSES, score.key, result.raw)
        return result.response

    def _record_usage(self, usage: Optional[Usage], started: float) -> None:
        if usage is not None:
            self.ledger.record(usage, duration_seconds=time.monotonic() - started)

    def _summarize(self, run: GenerationRun, usage_before) -> RunSummary:
        usage_after = self.ledger.totals()
        return RunSummary(
            metric=run.metric,
            state=run.state,
            total=run.total,
            completed=run.completed,
            succeeded=run.succeeded,
            failed=run.failed,
            skipped=run.skipped,
            elapsed_seconds=run.elapsed,
            requests=usage_after.requests - usage_before.requests,
            input_tokens=usage_after.input_tokens - usage_before.input_tokens,
            output_tokens=usage_after.output_tokens - usage_before.output_tokens,
            cost=usage_after.cost - usage_before.cost,
            discounted_cost=usage_after.discounted_cost - usage_before.discounted_cost,
        )

    @staticmethod
    def _notify(callback: Callable[..., None], *args: object) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception("Explanation callback raised")
