"""Fail-safe placeholder modules for patterns that cannot be carried to the target."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .models import Ranking, Translation, format_signature

if TYPE_CHECKING:
    from .extraction.emitters import Emitter

TRANSLATION_PENDING = "Translation not yet implemented"


def placeholder_message(
    pattern_name: str, source: str, target: str, reason: Optional[str] = None
) -> str:
    """Return the error text raised by a placeholder function."""
    if source == target:
        message = f"{pattern_name}: no source body was captured from {source}"
    else:
        message = f"{pattern_name}: translation from {source} to {target} is not implemented yet"
    cleaned = _format_reason(reason)
    return f"{message} ({cleaned})" if cleaned else message


def build_placeholder_module(
    ranking: Ranking,
    emitter: Emitter,
    *,
    function_name: str,
    reason: Optional[str] = None,
    add_docstrings: bool = True,
) -> str:
    """Render a module that documents the winner and raises when called."""
    message = placeholder_message(
        ranking.pattern.name, ranking.best_ecosystem, emitter.ecosystem, reason
    )
    return emitter.render_placeholder(
        ranking, message, function_name=function_name, add_docstrings=add_docstrings
    )


def placeholder_translation(
    ranking: Ranking, target: str, code: str, reason: Optional[str] = None
) -> Translation:
    """Zero-confidence translation record attached to a placeholder module."""
    func = ranking.best_implementation
    warning = TRANSLATION_PENDING
    cleaned = _format_reason(reason)
    if cleaned:
        warning = f"{warning}: {cleaned}"
    return Translation(
        source_ecosystem=ranking.best_ecosystem,
        target_ecosystem=target,
        source_code=func.body or format_signature(func),
        target_code=code,
        confidence=0.0,
        warnings=[warning],
    )


def _format_reason(reason: Optional[str]) -> str:
    if not reason:
        return ""
    return " ".join(reason.split())


__all__ = [
    "TRANSLATION_PENDING",
    "build_placeholder_module",
    "placeholder_message",
    "placeholder_translation",
]
