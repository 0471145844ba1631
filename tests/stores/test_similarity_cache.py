"""Tests for the persistent similarity cache."""

from __future__ import annotations

import json
from pathlib import Path

from stdlib_merger.stores.similarity_cache import CACHE_FILENAME, SimilarityCache, prompt_key


def test_scores_round_trip_through_disk(tmp_path: Path) -> None:
    cache = SimilarityCache.in_directory(tmp_path)
    cache.store("prompt-a", model="m1", score=0.8)
    cache.persist()

    data = json.loads((tmp_path / CACHE_FILENAME).read_text(encoding="utf-8"))
    assert data["version"] == 1
    entry = data["entries"][prompt_key("prompt-a")]
    assert entry["model"] == "m1"
    assert entry["score"] == 0.8
    assert entry["updated_at"].endswith("Z")

    reloaded = SimilarityCache.in_directory(tmp_path)
    assert len(reloaded) == 1
    assert reloaded.get("prompt-a", model="m1") == 0.8


def test_lookup_is_scoped_to_the_model(tmp_path: Path) -> None:
    cache = SimilarityCache.in_directory(tmp_path)
    cache.store("prompt-a", model="m1", score=0.8)

    assert cache.get("prompt-a", model="m2") is None
    assert cache.get("prompt-b", model="m1") is None


def test_prune_and_clear(tmp_path: Path) -> None:
    cache = SimilarityCache.in_directory(tmp_path)
    cache.store("keep", model="m", score=0.1)
    cache.store("drop", model="m", score=0.2)

    cache.prune(["keep"])
    assert cache.get("drop", model="m") is None
    assert cache.get("keep", model="m") == 0.1

    cache.clear()
    cache.persist()
    assert json.loads((tmp_path / CACHE_FILENAME).read_text(encoding="utf-8"))["entries"] == {}


def test_in_memory_cache_never_writes(tmp_path: Path) -> None:
    cache = SimilarityCache.in_directory(None)
    cache.store("prompt", model="m", score=0.5)
    cache.persist()

    assert cache.get("prompt", model="m") == 0.5
    assert list(tmp_path.iterdir()) == []


def test_corrupt_or_outdated_files_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / CACHE_FILENAME
    path.write_text("{not json", encoding="utf-8")
    assert len(SimilarityCache(path)) == 0

    path.write_text(json.dumps({"version": 0, "entries": {"k": {"model": "m", "score": 1}}}), encoding="utf-8")
    assert len(SimilarityCache(path)) == 0
