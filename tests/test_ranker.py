"""Tests for multi-criteria ranking."""

from __future__ import annotations

import pytest

from tests._fixtures.signatures import make_function

from stdlib_merger.config import DEFAULT_WEIGHTS
from stdlib_merger.models import CRITERIA_NAMES, Pattern
from stdlib_merger.ranker import (
    EcosystemPriors,
    default_criteria,
    rank,
    rank_all,
    score_clarity,
    score_error_handling,
)

NEUTRAL = EcosystemPriors(performance={}, safety={}, text_support={}, idiom_bonus={})


def _pattern(name: str, *funcs) -> Pattern:
    return Pattern(
        id=name,
        name=name,
        implementations={func.ecosystem: func for func in funcs},
        similarity_score=1.0,
        is_universal=True,
    )


def _divide_pattern() -> Pattern:
    rust = make_function(
        "divide",
        "rust",
        params=("dividend", "divisor"),
        returns="Result<f64, String>",
        docstring="Divides the dividend by the divisor and reports division by zero as an error.",
        examples=["assert_eq!(divide(4.0, 2.0), Ok(2.0));"],
    )
    elixir = make_function("divide", "elixir", params=("a", "b"), docstring="Divides.")
    return _pattern("divide", elixir, rust)


def test_rank_prefers_documented_result_returning_implementation() -> None:
    ranking = rank(_divide_pattern(), default_criteria(priors=NEUTRAL))

    assert ranking.best_ecosystem == "rust"
    assert ranking.best_implementation.ecosystem == "rust"
    assert ranking.scores["rust"] == pytest.approx(0.725)
    assert ranking.scores["elixir"] == pytest.approx(0.48)
    assert ranking.criterion_scores["rust"]["clarity"] == pytest.approx(1.0)
    assert ranking.criterion_scores["elixir"]["clarity"] == pytest.approx(0.4)
    assert ranking.criterion_scores["rust"]["error_handling"] == 1.0
    assert "Excellent API clarity (1.00)" in ranking.justification
    assert "Explicit error handling (Result/Either type)" in ranking.justification
    assert "elixir score: 0.48" in ranking.justification
    assert ranking.ordered_ecosystems() == ["rust", "elixir"]


def test_best_ecosystem_is_argmax_of_scores() -> None:
    ranking = rank(_divide_pattern(), default_criteria())

    assert ranking.scores[ranking.best_ecosystem] == max(ranking.scores.values())
    assert all(0.0 <= score <= 1.0 for score in ranking.scores.values())


def test_zero_weights_score_everything_zero_and_keep_first() -> None:
    ranking = rank(_divide_pattern(), default_criteria(dict.fromkeys(CRITERIA_NAMES, 0.0)))

    assert ranking.scores == {"elixir": 0.0, "rust": 0.0}
    assert ranking.best_ecosystem == "elixir"
    assert "rust tied at 0.00" in ranking.justification


def test_ties_go_to_first_implementation() -> None:
    pattern = _pattern(
        "join",
        make_function("join", "python"),
        make_function("join", "ruby"),
    )

    ranking = rank(pattern, default_criteria(priors=NEUTRAL))

    assert ranking.scores["python"] == ranking.scores["ruby"]
    assert ranking.best_ecosystem == "python"
    assert "ruby tied at" in ranking.justification


def test_single_implementation_justification() -> None:
    pattern = _pattern("noop", make_function("noop", "python", params=("a", "b", "c"), returns="int"))

    ranking = rank(pattern, default_criteria(priors=NEUTRAL))

    assert ranking.justification == "python is the only implementation"


def test_weights_only_change_relative_influence() -> None:
    pattern = _divide_pattern()
    base = rank(pattern, default_criteria(priors=NEUTRAL))
    halved = rank(
        pattern,
        default_criteria({name: weight * 0.5 for name, weight in DEFAULT_WEIGHTS.items()}, NEUTRAL),
    )

    assert halved.scores == pytest.approx(base.scores)


def test_clarity_is_capped_and_penalizes_long_names() -> None:
    documented = make_function(
        "trim",
        "elixir",
        params=("text",),
        docstring="x" * 60,
        examples=["iex> trim(\" a \")"],
    )
    long_name = make_function("a_really_long_function_name", "elixir", params=("_x",))

    assert score_clarity(documented) == 1.0
    assert score_clarity(long_name) == pytest.approx(0.1)


@pytest.mark.parametrize(
    ("returns", "docstring", "expected"),
    [
        ("Result<i64, String>", "", 1.0),
        ("{:ok, term} | {:error, term}", "", 1.0),
        ("Option<i64>", "", 0.7),
        ("String.t | nil", "", 0.7),
        ("None", "", 0.5),
        ("nil", "", 0.5),
        ("int", "Raises ValueError on bad input.", 0.3),
        ("int", "Adds numbers.", 0.5),
    ],
)
def test_error_handling_scores(returns: str, docstring: str, expected: float) -> None:
    func = make_function("f", "python", returns=returns, docstring=docstring)

    assert score_error_handling(func) == expected


def test_language_priors_feed_text_support_and_performance() -> None:
    criteria = default_criteria()
    split_rust = make_function("split", "rust")
    split_elixir = make_function("split", "elixir")
    split_python = make_function("split", "python")
    add_elixir = make_function("add", "elixir")

    assert criteria.text_support.scorer(split_elixir) == 1.0
    assert criteria.text_support.scorer(split_rust) == 0.8
    assert criteria.text_support.scorer(split_python) == 0.5
    assert criteria.text_support.scorer(add_elixir) == 0.5
    assert criteria.performance.scorer(split_rust) == 0.9
    assert criteria.safety.scorer(split_python) == 0.5


def test_rank_all_keeps_input_order_in_parallel() -> None:
    patterns = [
        _pattern(f"op{index}", make_function(f"op{index}", "elixir"), make_function(f"op{index}", "rust"))
        for index in range(8)
    ]

    rankings = rank_all(patterns, default_criteria(), parallel=True, max_workers=4)

    assert [ranking.pattern.name for ranking in rankings] == [f"op{index}" for index in range(8)]


def test_rank_rejects_empty_pattern() -> None:
    with pytest.raises(ValueError):
        rank(_pattern("empty"), default_criteria())
