"""Error taxonomy for the merge pipeline."""

from __future__ import annotations


class MergerError(RuntimeError):
    """Base class for stdlib-merger failures."""


class ParseError(MergerError):
    """Raised when a library root or a single source file cannot be parsed."""

    def __init__(self, ecosystem: str, path: str, reason: str) -> None:
        super().__init__(f"[{ecosystem}] {path}: {reason}")
        self.ecosystem = ecosystem
        self.path = path
        self.reason = reason


class UnsupportedEcosystemError(MergerError):
    """Raised when no parser adapter is registered for an ecosystem."""

    def __init__(self, ecosystem: str, available: tuple[str, ...] = ()) -> None:
        detail = f"Unsupported ecosystem: {ecosystem}"
        if available:
            detail += f" (available: {', '.join(available)})"
        super().__init__(detail)
        self.ecosystem = ecosystem


class TranslationUnavailableError(MergerError):
    """Raised when code cannot be carried between two ecosystems."""

    def __init__(self, source: str, target: str, reason: str | None = None) -> None:
        message = f"No translation from {source} to {target}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.source = source
        self.target = target


class ExternalServiceError(MergerError):
    """Raised when a hosted model call fails or the similarity service gives up."""


__all__ = [
    "ExternalServiceError",
    "MergerError",
    "ParseError",
    "TranslationUnavailableError",
    "UnsupportedEcosystemError",
]
