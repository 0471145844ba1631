"""Per-ecosystem naming and reference conventions for generated artifacts."""

from __future__ import annotations

import keyword
import re
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from .errors import UnsupportedEcosystemError

UNIFIED_PACKAGE = "aggregate_library"
UNIFIED_NAMESPACE = "AggregateLibrary"

_NON_IDENTIFIER = re.compile(r"[^0-9a-zA-Z_]+")


def camelize(name: str) -> str:
    """``string_split`` -> ``StringSplit``."""
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[_\W]+", name) if part)


def to_identifier(name: str) -> str:
    """Return a snake_case identifier valid in Python, Rust and Elixir."""
    cleaned = _NON_IDENTIFIER.sub("_", name).strip("_").lower()
    if not cleaned:
        cleaned = "unnamed"
    if cleaned[0].isdigit():
        cleaned = f"_{cleaned}"
    if keyword.iskeyword(cleaned) or cleaned in {"fn", "impl", "mod", "use", "end", "do"}:
        cleaned = f"{cleaned}_"
    return cleaned


@dataclass(frozen=True)
class Ecosystem:
    """Conventions for one source ecosystem."""

    tag: str
    display_name: str
    extension: str
    comment_prefix: str
    module_name: Callable[[str], str]
    reference: Callable[[str], str]
    fence: str

    def unified_module(self, pattern_name: str) -> str:
        return self.module_name(pattern_name)

    def reference_statement(self, pattern_name: str) -> str:
        """Statement a stripped library adds to reach the unified module."""
        return self.reference(pattern_name)


_ECOSYSTEMS: Dict[str, Ecosystem] = {
    "elixir": Ecosystem(
        tag="elixir",
        display_name="Elixir",
        extension=".ex",
        comment_prefix="#",
        module_name=lambda name: f"{UNIFIED_NAMESPACE}.{camelize(name)}",
        reference=lambda name: f"alias {UNIFIED_NAMESPACE}.{camelize(name)}",
        fence="elixir",
    ),
    "python": Ecosystem(
        tag="python",
        display_name="Python",
        extension=".py",
        comment_prefix="#",
        module_name=lambda name: f"{UNIFIED_PACKAGE}.{to_identifier(name)}",
        reference=lambda name: f"from {UNIFIED_PACKAGE} import {to_identifier(name)}",
        fence="python",
    ),
    "rust": Ecosystem(
        tag="rust",
        display_name="Rust",
        extension=".rs",
        comment_prefix="//",
        module_name=lambda name: f"{UNIFIED_PACKAGE}::{to_identifier(name)}",
        reference=lambda name: f"use {UNIFIED_PACKAGE}::{to_identifier(name)};",
        fence="rust",
    ),
}


def get_ecosystem(tag: str) -> Ecosystem:
    key = tag.strip().lower()
    try:
        return _ECOSYSTEMS[key]
    except KeyError:
        raise UnsupportedEcosystemError(tag, known_ecosystems()) from None


def known_ecosystems() -> Tuple[str, ...]:
    return tuple(sorted(_ECOSYSTEMS))


__all__ = [
    "Ecosystem",
    "UNIFIED_NAMESPACE",
    "UNIFIED_PACKAGE",
    "camelize",
    "get_ecosystem",
    "known_ecosystems",
    "to_identifier",
]
