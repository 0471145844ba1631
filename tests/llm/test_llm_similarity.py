"""Tests for LLM-backed semantic similarity."""

from __future__ import annotations

from http.client import RemoteDisconnected
from typing import List

import pytest

from stdlib_merger.errors import ExternalServiceError
from stdlib_merger.llm.runner import LLMRequest, LLMRunner
from stdlib_merger.llm.similarity import LLMSimilarity, build_prompt, parse_score
from stdlib_merger.stores.similarity_cache import SimilarityCache


class ScriptedRunner:
    """Replies from a script; exceptions in the script are raised."""

    def __init__(self, *replies) -> None:
        self.replies = list(replies)
        self.requests: List[LLMRequest] = []

    def __call__(self, request: LLMRequest) -> str:
        self.requests.append(request)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


FRAGMENTS = ["[elixir] add(a: number) -> number", "[rust] add(a: i64) -> i64"]


@pytest.mark.parametrize(
    ("text", "expected"),
    [("0.82", 0.82), ("Similarity: 0.9", 0.9), ("1", 1.0), ("3.5", 1.0), (".5", 0.5)],
)
def test_parse_score(text: str, expected: float) -> None:
    assert parse_score(text) == expected


def test_parse_score_without_number() -> None:
    with pytest.raises(ValueError):
        parse_score("they look alike")


def test_build_prompt_numbers_fragments() -> None:
    prompt = build_prompt(FRAGMENTS)

    assert "1. [elixir] add(a: number) -> number" in prompt
    assert "2. [rust] add(a: i64) -> i64" in prompt
    assert prompt.endswith("Similarity:")


def test_retries_with_exponential_backoff() -> None:
    script = ScriptedRunner(RuntimeError("timeout"), "no idea", "0.75")
    sleeps: List[float] = []
    service = LLMSimilarity(LLMRunner(runner=script), max_retries=3, sleep=sleeps.append)

    assert service.score(FRAGMENTS) == 0.75
    assert sleeps == [0.5, 1.0]
    assert len(script.requests) == 3
    assert script.requests[0].system is not None


def test_gives_up_after_max_retries_plus_one_attempts() -> None:
    script = ScriptedRunner(*[RuntimeError("down")] * 3)
    sleeps: List[float] = []
    service = LLMSimilarity(LLMRunner(runner=script), max_retries=2, sleep=sleeps.append)

    with pytest.raises(ExternalServiceError, match="after 3 attempts"):
        service.score(FRAGMENTS)

    assert len(script.requests) == 3
    assert sleeps == [0.5, 1.0]


def test_cached_scores_skip_the_runner(tmp_path) -> None:
    cache = SimilarityCache.in_directory(tmp_path)
    script = ScriptedRunner("0.6")
    runner = LLMRunner(model="m1", runner=script)
    service = LLMSimilarity(runner, cache=cache, sleep=lambda _: None)

    assert service.score(FRAGMENTS) == 0.6
    assert service.score(FRAGMENTS) == 0.6
    assert len(script.requests) == 1
    assert cache.get(build_prompt(FRAGMENTS), model="m1") == 0.6


def test_dropped_connection_surfaces_as_external_service_error(monkeypatch) -> None:
    def disconnected(request, timeout=None):
        raise RemoteDisconnected("Remote end closed connection without response")

    monkeypatch.setattr("stdlib_merger.llm.runner.urlopen", disconnected)
    sleeps: List[float] = []
    service = LLMSimilarity(LLMRunner(api_key="key"), max_retries=1, sleep=sleeps.append)

    with pytest.raises(ExternalServiceError, match="after 2 attempts"):
        service.score(FRAGMENTS)

    assert sleeps == [0.5]
