"""Tests for parser discovery and fatal parse errors."""

from __future__ import annotations

from pathlib import Path

import pytest

from stdlib_merger.errors import ParseError, UnsupportedEcosystemError
from stdlib_merger.parsers import available_parsers, get_parser, parse_library, supported_ecosystems
from stdlib_merger.parsers.elixir import ElixirParser


def test_builtin_parsers_are_registered() -> None:
    assert {"elixir", "python", "rust"} <= set(available_parsers())
    assert supported_ecosystems() == tuple(sorted(supported_ecosystems()))
    assert isinstance(get_parser("Elixir"), ElixirParser)


def test_unknown_ecosystem_fails_fast(tmp_path: Path) -> None:
    with pytest.raises(UnsupportedEcosystemError) as excinfo:
        parse_library(tmp_path, "haskell")

    assert "haskell" in str(excinfo.value)


def test_missing_root_raises_parse_error(tmp_path: Path) -> None:
    missing = tmp_path / "nowhere"

    with pytest.raises(ParseError) as excinfo:
        parse_library(missing, "elixir")

    assert excinfo.value.ecosystem == "elixir"
    assert excinfo.value.path == str(missing)


def test_empty_library_parses_with_no_functions(tmp_path: Path) -> None:
    library = parse_library(tmp_path, "python")

    assert library.functions == []
    assert library.warnings == []


def test_build_directories_are_skipped(tmp_path: Path) -> None:
    (tmp_path / "_build").mkdir()
    (tmp_path / "_build" / "gen.ex").write_text(
        "defmodule Gen do\n  def x, do: 1\nend\n", encoding="utf-8"
    )

    library = parse_library(tmp_path, "elixir")

    assert library.functions == []
