"""Tests for stripping extracted functions out of the original libraries."""

from __future__ import annotations

import ast
from pathlib import Path
from typing import Dict, Sequence

import pytest
from tests._fixtures.library_builder import LibraryBuilder

from stdlib_merger.matcher import find_patterns
from stdlib_merger.models import FunctionSignature, Library
from stdlib_merger.parsers import parse_library
from stdlib_merger.stripper import MIGRATION_FILENAME, LibraryStripper, strip


@pytest.fixture
def parsed(math_libraries: Dict[str, Path]) -> Dict[str, Library]:
    return {eco: parse_library(root, eco) for eco, root in math_libraries.items()}


class FixedRewriter:
    def __init__(self, ecosystem: str, output: str) -> None:
        self.ecosystem = ecosystem
        self.output = output
        self.calls = []

    def can_rewrite(self, ecosystem: str) -> bool:
        return ecosystem == self.ecosystem

    def rewrite(
        self,
        module_source: str,
        removals: Sequence[FunctionSignature],
        references: Sequence[str],
    ) -> str:
        self.calls.append(([func.name for func in removals], list(references)))
        return self.output


def test_python_sources_are_rewritten_with_imports(parsed, tmp_path: Path) -> None:
    patterns = find_patterns(parsed.values())

    result = LibraryStripper().strip(parsed["python"], patterns, tmp_path)

    assert [func.name for func in result.removed_functions] == ["add", "concat"]
    assert result.added_references == [
        "from aggregate_library import add",
        "from aggregate_library import concat",
    ]
    assert result.rewritten is True
    rewritten = tmp_path / "stripped_libraries" / "python" / "src" / "std_math.py"
    assert result.rewritten_files == [str(rewritten)]
    text = rewritten.read_text(encoding="utf-8")
    ast.parse(text)
    assert "def add" not in text
    assert "def concat" not in text
    assert "def _helper(x):" in text
    assert text.index("from __future__ import annotations") < text.index(
        "from aggregate_library import add"
    )
    migration = (tmp_path / "stripped_libraries" / "python" / MIGRATION_FILENAME).read_text(
        encoding="utf-8"
    )
    assert "- `src/std_math.py`" in migration
    assert "`std_math.add` (std_math.py:6:1)" in migration


def test_elixir_rewrite_drops_doc_and_spec_and_aliases_after_moduledoc(
    parsed, tmp_path: Path
) -> None:
    patterns = find_patterns(parsed.values())

    result = LibraryStripper().strip(parsed["elixir"], patterns, tmp_path)

    text = Path(result.rewritten_files[0]).read_text(encoding="utf-8")
    assert text == (
        "defmodule Std.Math do\n"
        '  @moduledoc """\n'
        "  Arithmetic and text helpers.\n"
        '  """\n'
        "\n"
        "  alias AggregateLibrary.Add\n"
        "  alias AggregateLibrary.Concat\n"
        "\n"
        "  defp helper(x), do: x\n"
        "end\n"
    )


def test_rust_without_rewriter_only_documents_the_migration(parsed, tmp_path: Path) -> None:
    patterns = find_patterns(parsed.values())

    result = strip(parsed["rust"], patterns, tmp_path)

    assert result.rewritten is False
    assert result.added_references == ["use aggregate_library::add;", "use aggregate_library::concat;"]
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("No source rewriter for rust")
    migration = (tmp_path / "stripped_libraries" / "rust" / MIGRATION_FILENAME).read_text(
        encoding="utf-8"
    )
    assert "No source rewriter is available for Rust" in migration
    assert "use aggregate_library::add;" in migration


def test_injected_rewriter_handles_its_ecosystem(parsed, tmp_path: Path) -> None:
    patterns = find_patterns(parsed.values())
    rewriter = FixedRewriter("rust", "// stripped\n")

    result = LibraryStripper(rewriters=[rewriter]).strip(parsed["rust"], patterns, tmp_path)

    assert rewriter.calls == [
        (["add", "concat"], ["use aggregate_library::add;", "use aggregate_library::concat;"])
    ]
    assert result.rewritten is True
    assert Path(result.rewritten_files[0]).read_text(encoding="utf-8") == "// stripped\n"
    assert result.warnings == []


def test_invalid_python_rewrite_is_skipped(parsed, tmp_path: Path) -> None:
    patterns = find_patterns(parsed.values())
    rewriter = FixedRewriter("python", "def (:\n")

    result = LibraryStripper(rewriters=[rewriter]).strip(parsed["python"], patterns, tmp_path)

    assert result.rewritten is False
    assert result.rewritten_files == []
    assert "produced invalid Python" in result.warnings[0]


def test_library_without_extracted_functions(parsed, tmp_path: Path) -> None:
    result = LibraryStripper().strip(parsed["elixir"], [], tmp_path)

    assert result.removed_functions == []
    assert result.rewritten is False
    assert result.warnings == []
    migration = (tmp_path / "stripped_libraries" / "elixir" / MIGRATION_FILENAME).read_text(
        encoding="utf-8"
    )
    assert "No functions were extracted from this library." in migration
    assert "No rewriting was necessary." in migration


def test_elixir_clauses_split_by_another_function_keep_it(
    library_builder: LibraryBuilder, tmp_path: Path
) -> None:
    library_builder.write(
        "elixir",
        {
            "lib/m.ex": """
            defmodule M do
              def f(0), do: 0
              def g(x), do: x
              def f(n), do: n
            end
            """,
        },
    )
    library_builder.write("python", {"m.py": "def f(n):\n    return n\n"})
    elixir = library_builder.parse("elixir")
    patterns = find_patterns([elixir, library_builder.parse("python")])

    result = LibraryStripper().strip(elixir, patterns, tmp_path / "out")

    f = result.removed_functions[0]
    assert f.metadata["spans"] == [(2, 2), (4, 4)]
    text = Path(result.rewritten_files[0]).read_text(encoding="utf-8")
    assert "  def g(x), do: x\n" in text
    assert "def f(" not in text
    assert "  alias AggregateLibrary.F\n" in text
