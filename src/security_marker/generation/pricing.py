"""Token and cost accounting for generation requests."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from ..logging_config import get_logger
from ..models import Usage

logger = get_logger(__name__)

# USD per 1K tokens: (input, output)
RATES: dict[str, tuple[float, float]] = {
    "gpt-3.5-turbo": (0.0030, 0.0060),
    "gpt-4-8k": (0.0300, 0.0600),
    "gpt-4-32k": (0.0600, 0.1200),
    "gpt-4-turbo": (0.0100, 0.0300),
    "gpt-4o": (0.0025, 0.0100),
    "gpt-4o-mini": (0.00015, 0.00060),
    "gpt-4.5": (0.0750, 0.1500),
    "o1-preview": (0.0150, 0.0600),
    "o1-pro": (0.1500, 0.6000),
    "o3": (0.0020, 0.0080),
    "gpt-5": (0.00125, 0.0100),
    "gpt-5-mini": (0.00025, 0.0020),
    "gpt-5-nano": (0.00005, 0.00040),
}


@dataclass(frozen=True)
class UsageTotals:
    requests: int
    input_tokens: int
    output_tokens: int
    cost: float
    discounted_cost: float


class UsageLedger:
    """Running token/cost totals, safe to update from the generation worker."""

    def __init__(self, model: str = "gpt-4o", discount: float = 0.11) -> None:
        self.model = model
        self.discount = discount
        self._lock = threading.Lock()
        self._requests = 0
        self._input_tokens = 0
        self._output_tokens = 0
        self._cost = 0.0
        self._discounted_cost = 0.0
        self._warned_unknown = False

    def record(self, usage: Usage, duration_seconds: float | None = None) -> None:
        """Add one request's usage to the totals."""
        rate = RATES.get(self.model)
        if rate is None:
            if not self._warned_unknown:
                logger.warning("No pricing known for model %s; cost is reported as 0", self.model)
                self._warned_unknown = True
            rate = (0.0, 0.0)

        input_rate, output_rate = rate
        cost = (usage.input_tokens / 1000.0) * input_rate + (usage.output_tokens / 1000.0) * output_rate

        with self._lock:
            self._requests += 1
            self._input_tokens += usage.input_tokens
            self._output_tokens += usage.output_tokens
            self._cost += cost
            self._discounted_cost += cost * (1 - self.discount)

        if duration_seconds is not None:
            logger.debug(
                "Request took %.2fs: %d in / %d out tokens, $%.5f",
                duration_seconds, usage.input_tokens, usage.output_tokens, cost,
            )

    def totals(self) -> UsageTotals:
        with self._lock:
            return UsageTotals(
                requests=self._requests,
                input_tokens=self._input_tokens,
                output_tokens=self._output_tokens,
                cost=self._cost,
                discounted_cost=self._discounted_cost,
            )

    def reset(self) -> None:
        with self._lock:
            self._requests = 0
            self._input_tokens = 0
            self._output_tokens = 0
            self._cost = 0.0
            self._discounted_cost = 0.0
