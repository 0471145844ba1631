"""Tests for the run-level markdown reports."""

from __future__ import annotations

from pathlib import Path

from tests._fixtures.signatures import make_function, make_ranking

from stdlib_merger.config import DEFAULT_WEIGHTS
from stdlib_merger.models import ExtractedModule
from stdlib_merger.reports import (
    COMPOSITION_GUIDE,
    MIGRATION_GUIDE,
    RANKING_REPORT,
    SIMILARITY_REPORT,
    ReportGenerator,
)

GENERATED_AT = "2026-01-01T00:00:00+00:00"


def _rankings():
    add = make_ranking(
        "add",
        make_function("add", "elixir", module_path="Std.Math"),
        make_function("add", "python", module_path="std_math"),
        best="python",
    )
    concat = make_ranking(
        "concat",
        make_function("concat", "elixir", module_path="Std.Math"),
        make_function("concat", "python", module_path="std_math"),
        best="elixir",
        category="string",
    )
    concat.pattern.similarity_score = 0.8
    concat.pattern.metadata["semantic_confidence"] = 0.75
    trim = make_ranking("trim", make_function("trim", "elixir"), best="elixir", category="string")
    trim.pattern.similarity_score = 0.5
    trim.pattern.is_universal = False
    return [add, concat, trim]


def _render(**kwargs):
    rankings = _rankings()
    generator = ReportGenerator(clock=lambda: GENERATED_AT)
    return generator.render_all(
        [ranking.pattern for ranking in rankings],
        rankings,
        ecosystems=["python", "elixir"],
        weights=DEFAULT_WEIGHTS,
        **kwargs,
    )


def test_render_all_produces_every_report() -> None:
    reports = _render()

    assert set(reports) == {COMPOSITION_GUIDE, MIGRATION_GUIDE, SIMILARITY_REPORT, RANKING_REPORT}
    for content in reports.values():
        assert f"**Generated:** {GENERATED_AT}" in content
        assert content.endswith("\n")


def test_composition_guide_lists_formula_winners_and_distribution() -> None:
    guide = _render()[COMPOSITION_GUIDE]

    assert "aggregate_library = elixir ∩ python" in guide
    assert "- Total patterns found: 3" in guide
    assert "- Universal patterns: 2" in guide
    assert "- Ecosystems analyzed: 2 (elixir, python)" in guide
    assert "| add | other | python | 0.90 | python picked for tests |" in guide
    assert "| string | 2 |" in guide
    assert "| elixir | 2 |" in guide
    assert guide.index("| elixir | 2 |") < guide.index("| python | 1 |")


def test_similarity_report_buckets_by_confidence() -> None:
    report = _render()[SIMILARITY_REPORT]

    assert "| add | 1.00 | - | elixir, python | yes |" in report
    assert "| concat | 0.80 | 0.75 | elixir, python | yes |" in report
    high = report.split("## High-Confidence")[1].split("## Medium-Confidence")[0]
    medium = report.split("## Medium-Confidence")[1].split("## Low-Confidence")[0]
    low = report.split("## Low-Confidence")[1]
    assert "- add (1.00)" in high
    assert "- concat (0.80)" in medium
    assert "- trim (0.50)" in low


def test_ranking_report_shows_weights_and_per_criterion_tables() -> None:
    report = _render()[RANKING_REPORT]

    assert "| clarity | 0.20 |" in report
    assert "| error_handling | 0.25 |" in report
    assert "| add | python | 0.90 | elixir |" in report
    assert "### concat" in report
    assert "| Criterion | elixir | python |" in report
    assert "| **weighted** | **0.90** | **0.50** |" in report
    assert "elixir picked for tests" in report


def test_migration_guide_uses_emitted_function_names() -> None:
    rankings = _rankings()
    add = rankings[0]
    extracted = [
        ExtractedModule(
            pattern=add.pattern,
            ranking=add,
            translation=None,
            output_path="add.py",
            code="",
            placeholder=True,
            function_name="add_numbers",
        )
    ]

    guide = _render(extracted_modules=extracted)[MIGRATION_GUIDE]

    assert "Patterns extracted to the aggregate library (python): 3." in guide
    assert "Unified module: `aggregate_library.add.add_numbers`" in guide
    assert "Unified module: `aggregate_library.concat.concat`" in guide
    assert "> The unified module is a placeholder" in guide
    assert "Elixir, before:\n```elixir\nStd.Math.add(...)\n```" in guide
    assert "Elixir, after:\n```elixir\nalias AggregateLibrary.Add\n```" in guide
    assert "from aggregate_library import add" in guide


def test_write_creates_files(tmp_path: Path) -> None:
    rankings = _rankings()
    generator = ReportGenerator(clock=lambda: GENERATED_AT)

    written = generator.write([r.pattern for r in rankings], rankings, tmp_path / "out")

    assert set(written) == {COMPOSITION_GUIDE, MIGRATION_GUIDE, SIMILARITY_REPORT, RANKING_REPORT}
    for name, path in written.items():
        assert Path(path) == tmp_path / "out" / name
        assert Path(path).read_text(encoding="utf-8").startswith("# ")


def test_empty_run_still_renders() -> None:
    reports = ReportGenerator(clock=lambda: GENERATED_AT).render_all([], [])

    assert "No patterns were ranked." in reports[COMPOSITION_GUIDE]
    assert "(no libraries)" in reports[COMPOSITION_GUIDE]
    assert "No patterns were found." in reports[SIMILARITY_REPORT]
    assert "None found." in reports[SIMILARITY_REPORT]
    assert "No patterns were extracted." in reports[MIGRATION_GUIDE]
