"""Helper utilities for constructing throwaway library source trees in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Mapping

from stdlib_merger.models import Library
from stdlib_merger.parsers import parse_library


class LibraryBuilder:
    """Writes files for several ecosystems under one tmp directory and parses them."""

    def __init__(self, tmp_path: Path) -> None:
        self.base = tmp_path / "libraries"
        self.base.mkdir()

    def write(self, ecosystem: str, files: Mapping[str, str]) -> Path:
        """Write `path -> contents` entries into the library for ``ecosystem``."""
        root = self.root(ecosystem)
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")
        return root

    def root(self, ecosystem: str) -> Path:
        root = self.base / ecosystem
        root.mkdir(exist_ok=True)
        return root

    def parse(self, ecosystem: str) -> Library:
        return parse_library(self.root(ecosystem), ecosystem)


__all__ = ["LibraryBuilder"]
