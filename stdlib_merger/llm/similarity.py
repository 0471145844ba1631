"""Semantic similarity scoring of function fragments through an LLM."""

from __future__ import annotations

import re
import time
from typing import Callable, Optional, Protocol, Sequence

from ..errors import ExternalServiceError
from ..logging import get_logger
from ..stores.similarity_cache import SimilarityCache
from .runner import LLMRunner

SYSTEM_PROMPT = (
    "You compare standard-library functions from different programming languages. "
    "Answer with a single number between 0 and 1."
)

_NUMBER = re.compile(r"\d+(?:\.\d+)?|\.\d+")


class SimilarityService(Protocol):
    """Scores how likely a group of fragments describes the same operation."""

    def score(self, fragments: Sequence[str]) -> float:
        ...


def build_prompt(fragments: Sequence[str]) -> str:
    lines = [
        "Do the following functions perform the same operation?",
        "Rate the semantic similarity from 0 (unrelated) to 1 (equivalent).",
        "",
    ]
    for index, fragment in enumerate(fragments, start=1):
        lines.append(f"{index}. {fragment}")
    lines.extend(["", "Similarity:"])
    return "\n".join(lines)


def parse_score(text: str) -> float:
    """Pull the first number in [0, 1] out of a model response."""
    match = _NUMBER.search(text.strip())
    if match is None:
        raise ValueError(f"No similarity score in response: {text[:80]!r}")
    return min(max(float(match.group(0)), 0.0), 1.0)


class LLMSimilarity:
    """Similarity service backed by :class:`LLMRunner` with retries and a prompt cache."""

    def __init__(
        self,
        runner: LLMRunner,
        *,
        cache: Optional[SimilarityCache] = None,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.runner = runner
        self.cache = cache
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self.logger = get_logger("llm.similarity")

    def score(self, fragments: Sequence[str]) -> float:
        prompt = build_prompt(fragments)
        if self.cache is not None:
            cached = self.cache.get(prompt, model=self.runner.model)
            if cached is not None:
                return cached

        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            if attempt:
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                self.logger.debug("Retrying similarity request in %.2fs (attempt %d)", delay, attempt + 1)
                self._sleep(delay)
            try:
                score = parse_score(self.runner.run(prompt, system=SYSTEM_PROMPT))
            except (RuntimeError, ValueError) as exc:
                last_error = exc
                self.logger.debug("Similarity request failed: %s", exc)
                continue
            if self.cache is not None:
                self.cache.store(prompt, model=self.runner.model, score=score)
            return score

        raise ExternalServiceError(
            f"Similarity service failed after {self.max_retries + 1} attempts: {last_error}"
        ) from last_error


__all__ = ["LLMSimilarity", "SimilarityService", "build_prompt", "parse_score"]
