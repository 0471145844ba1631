"""Persistent cache for semantic-similarity scores."""

from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, Iterable, Optional

_CACHE_VERSION = 1
CACHE_FILENAME = "similarity.json"


def prompt_key(prompt: str) -> str:
    """Cache key for the exact prompt text."""
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()


class SimilarityCache:
    """Stores similarity scores keyed by the SHA-256 of the prompt and the model."""

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self._entries: Dict[str, Dict[str, object]] = {}
        self._dirty = False
        if self._path is not None:
            self._load(self._path)

    @classmethod
    def in_directory(cls, directory: Path | None) -> "SimilarityCache":
        return cls(directory / CACHE_FILENAME if directory is not None else None)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, prompt: str, *, model: str) -> Optional[float]:
        entry = self._entries.get(prompt_key(prompt))
        if not entry or entry.get("model") != model:
            return None
        score = entry.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            return None
        return float(score)

    def store(self, prompt: str, *, model: str, score: float) -> None:
        self._entries[prompt_key(prompt)] = {
            "model": model,
            "score": float(score),
            "updated_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        }
        self._dirty = True

    def prune(self, prompts_to_keep: Iterable[str]) -> None:
        keep = {prompt_key(prompt) for prompt in prompts_to_keep}
        removed = [key for key in self._entries if key not in keep]
        if removed:
            for key in removed:
                self._entries.pop(key, None)
            self._dirty = True

    def persist(self) -> None:
        if not self._dirty or self._path is None:
            return
        payload = {
            "version": _CACHE_VERSION,
            "entries": self._entries,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        self._dirty = False

    def clear(self) -> None:
        self._entries.clear()
        self._dirty = True

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError):
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        self._entries = {
            key: raw
            for key, raw in entries.items()
            if isinstance(key, str) and isinstance(raw, dict) and "score" in raw and "model" in raw
        }
        self._dirty = False


__all__ = ["CACHE_FILENAME", "SimilarityCache", "prompt_key"]
