"""Explanation generation through an OpenAI-compatible chat completions API."""

from __future__ import annotations

import time
from typing import Any, Optional

from openai import OpenAI

from ..config import MarkerConfig
from ..exceptions import ConfigurationError, GenerationError, ResponseParseError
from ..logging_config import get_logger
from ..models import GenerationResult, MetricKind, Usage
from .prompts import build_messages, parse_response

logger = get_logger(__name__)


class OpenAIExplanationService:
    """GenerationService backed by the ``openai`` client.

    Each call is bounded by the client's timeout and retry policy; any
    failure surfaces as an exception for the orchestrator to handle per
    method. Token usage is reported on the result, or on the raised error
    when a billed completion is unusable; it is not accumulated here.
    """

    def __init__(self, config: MarkerConfig, client: Optional[Any] = None) -> None:
        self.config = config
        self.model = config.llm_model
        self.temperature = config.llm_temperature

        if client is None:
            api_key = config.resolved_api_key()
            if not api_key:
                raise ConfigurationError(
                    "No API key for the generation service. "
                    "Set llm_api_key, SECURITY_MARKER_API_KEY or OPENAI_API_KEY."
                )
            client = OpenAI(
                api_key=api_key,
                base_url=config.llm_base_url,
                timeout=config.llm_timeout_seconds,
                max_retries=config.llm_max_retries,
            )
        self._client = client

    def generate(
        self,
        signature: str,
        metric: MetricKind,
        metric_value: float,
        source_text: str,
    ) -> GenerationResult:
        """Request an explanation for one method and parse it."""
        started = time.monotonic()
        response = self._client.chat.completions.create(
            model=self.model,
            messages=build_messages(metric, metric_value, source_text),
            temperature=self.temperature,
        )

        usage = None
        if getattr(response, "usage", None) is not None:
            usage = Usage(
                input_tokens=response.usage.prompt_tokens or 0,
                output_tokens=response.usage.completion_tokens or 0,
            )

        if not response.choices:
            raise GenerationError(signature, "no choices in completion", usage=usage)
        choice = response.choices[0]
        content = choice.message.content
        if content is None or not content.strip():
            raise GenerationError(
                signature,
                f"empty completion (finish_reason={choice.finish_reason})",
                usage=usage,
            )
        if choice.finish_reason == "length":
            logger.warning("Completion for %s was truncated at the token limit", signature)

        try:
            parsed = parse_response(content)
        except ResponseParseError as e:
            e.usage = usage
            raise

        logger.debug("Generated explanation for %s in %.2fs", signature, time.monotonic() - started)
        return GenerationResult(raw=content, response=parsed, usage=usage)
