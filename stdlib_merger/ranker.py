"""Multi-criteria ranking of a pattern's implementations."""

from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .config import DEFAULT_WEIGHTS
from .logging import get_logger
from .models import (
    Criterion,
    FunctionSignature,
    Pattern,
    QualityCriteria,
    Ranking,
    is_optional_type,
    is_result_type,
    is_void_type,
)

_STRING_OPERATION = re.compile(r"string|str|text|char|split|trim|upper|lower")
_ERROR_MENTION = re.compile(r"raises?|throws?|error")

logger = get_logger("ranker")


@dataclass(frozen=True)
class EcosystemPriors:
    """Per-ecosystem lookup tables used by the language-driven scorers."""

    performance: Mapping[str, float] = field(
        default_factory=lambda: {"rust": 0.9, "elixir": 0.7, "haskell": 0.6}
    )
    safety: Mapping[str, float] = field(
        default_factory=lambda: {"rust": 1.0, "elixir": 0.9, "haskell": 0.9}
    )
    text_support: Mapping[str, float] = field(
        default_factory=lambda: {"elixir": 1.0, "haskell": 0.9, "rust": 0.8}
    )
    idiom_bonus: Mapping[str, float] = field(
        default_factory=lambda: {"haskell": 0.5, "elixir": 0.3, "rust": 0.2}
    )
    default: float = 0.5


def score_clarity(func: FunctionSignature) -> float:
    score = 0.0
    if len(func.name) < 10:
        score += 0.3
    elif len(func.name) < 20:
        score += 0.2
    else:
        score += 0.1
    if all(len(param.name) > 1 and not param.name.startswith("_") for param in func.params):
        score += 0.2
    if len(func.docstring) > 50:
        score += 0.3
    elif func.docstring:
        score += 0.1
    if func.examples:
        score += 0.2
    return min(score, 1.0)


def score_error_handling(func: FunctionSignature) -> float:
    if is_result_type(func.return_type):
        return 1.0
    if is_optional_type(func.return_type):
        return 0.7
    if _ERROR_MENTION.search(func.docstring.lower()):
        return 0.3
    return 0.5


def make_performance_scorer(priors: EcosystemPriors):
    def score_performance(func: FunctionSignature) -> float:
        return priors.performance.get(func.ecosystem, priors.default)

    return score_performance


def make_safety_scorer(priors: EcosystemPriors):
    def score_safety(func: FunctionSignature) -> float:
        return priors.safety.get(func.ecosystem, priors.default)

    return score_safety


def make_text_support_scorer(priors: EcosystemPriors):
    def score_text_support(func: FunctionSignature) -> float:
        if not _STRING_OPERATION.search(func.name.lower()):
            return 0.5
        return priors.text_support.get(func.ecosystem, priors.default)

    return score_text_support


def make_composability_scorer(priors: EcosystemPriors):
    def score_composability(func: FunctionSignature) -> float:
        score = priors.idiom_bonus.get(func.ecosystem, 0.0)
        if not is_void_type(func.return_type):
            score += 0.3
        if len(func.params) <= 2:
            score += 0.2
        return min(score, 1.0)

    return score_composability


def default_criteria(
    weights: Optional[Mapping[str, float]] = None,
    priors: Optional[EcosystemPriors] = None,
) -> QualityCriteria:
    """Build the standard criteria; missing weights fall back to the defaults."""
    merged = dict(DEFAULT_WEIGHTS)
    merged.update(weights or {})
    priors = priors or EcosystemPriors()
    return QualityCriteria(
        clarity=Criterion(merged["clarity"], score_clarity),
        performance=Criterion(merged["performance"], make_performance_scorer(priors)),
        error_handling=Criterion(merged["error_handling"], score_error_handling),
        text_support=Criterion(merged["text_support"], make_text_support_scorer(priors)),
        safety=Criterion(merged["safety"], make_safety_scorer(priors)),
        composability=Criterion(merged["composability"], make_composability_scorer(priors)),
    )


def criterion_breakdown(func: FunctionSignature, criteria: QualityCriteria) -> Dict[str, float]:
    return {name: criterion.scorer(func) for name, criterion in criteria.items()}


def weighted_score(breakdown: Mapping[str, float], criteria: QualityCriteria) -> float:
    total = criteria.total_weight
    if total <= 0:
        return 0.0
    return sum(breakdown[name] * criterion.weight for name, criterion in criteria.items()) / total


def rank(pattern: Pattern, criteria: QualityCriteria) -> Ranking:
    """Score every implementation of ``pattern`` and pick the best one."""
    if not pattern.implementations:
        raise ValueError(f"Pattern {pattern.name} has no implementations to rank")

    breakdowns: Dict[str, Dict[str, float]] = {}
    scores: Dict[str, float] = {}
    for ecosystem, func in pattern.implementations.items():
        breakdowns[ecosystem] = criterion_breakdown(func, criteria)
        scores[ecosystem] = weighted_score(breakdowns[ecosystem], criteria)

    best = max(scores, key=lambda eco: scores[eco])
    justification = justify(best, scores, breakdowns[best])
    logger.debug("Ranked %s: best=%s (%.2f)", pattern.name, best, scores[best])
    return Ranking(
        pattern=pattern,
        scores=scores,
        best_ecosystem=best,
        best_implementation=pattern.implementations[best],
        justification=justification,
        criterion_scores=breakdowns,
    )


def rank_all(
    patterns: Sequence[Pattern],
    criteria: QualityCriteria,
    *,
    parallel: bool = False,
    max_workers: Optional[int] = None,
) -> List[Ranking]:
    """Rank many patterns; results keep the input order."""
    if not parallel or len(patterns) < 2:
        return [rank(pattern, criteria) for pattern in patterns]
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(lambda pattern: rank(pattern, criteria), patterns))


def justify(best: str, scores: Mapping[str, float], breakdown: Mapping[str, float]) -> str:
    reasons: List[str] = []
    if breakdown.get("clarity", 0.0) > 0.8:
        reasons.append(f"Excellent API clarity ({breakdown['clarity']:.2f})")
    error_score = breakdown.get("error_handling", 0.0)
    if error_score >= 1.0:
        reasons.append("Explicit error handling (Result/Either type)")
    elif error_score >= 0.7:
        reasons.append("Good error handling (Maybe/Option type)")
    if breakdown.get("text_support", 0.0) >= 0.9:
        reasons.append("Excellent Unicode support")
    if breakdown.get("performance", 0.0) >= 0.9:
        reasons.append("High performance")
    if breakdown.get("composability", 0.0) >= 0.7:
        reasons.append("Highly composable")

    best_score = scores[best]
    for ecosystem, score in scores.items():
        if ecosystem == best:
            continue
        if score < best_score:
            reasons.append(f"{ecosystem} score: {score:.2f} (-{best_score - score:.2f})")
        else:
            reasons.append(f"{ecosystem} tied at {score:.2f}")
    if not reasons:
        return f"{best} is the only implementation"
    return "; ".join(reasons)


__all__ = [
    "EcosystemPriors",
    "criterion_breakdown",
    "default_criteria",
    "justify",
    "rank",
    "rank_all",
    "score_clarity",
    "score_error_handling",
    "weighted_score",
]
