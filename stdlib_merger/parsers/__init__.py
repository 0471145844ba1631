"""Library parser adapters and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from pathlib import Path
from typing import Callable, Dict, Iterable, Tuple

from ..errors import ParseError, UnsupportedEcosystemError
from ..models import Library
from .base import LibraryParser
from .elixir import ElixirParser
from .python import PythonParser
from .rust import RustParser

_ENTRY_POINT_GROUP = "stdlib_merger.parsers"

_BUILTIN_FACTORIES: dict[str, Callable[[], LibraryParser]] = {
    "elixir": ElixirParser,
    "python": PythonParser,
    "rust": RustParser,
}


def available_parsers() -> Dict[str, Callable[[], LibraryParser]]:
    """Return parser factories keyed by ecosystem tag, plugins included."""

    factories: Dict[str, Callable[[], LibraryParser]] = dict(_BUILTIN_FACTORIES)
    for entry in _iter_entry_points():
        key = entry.name.lower()
        if key in factories:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover - broken third-party plugin
            raise RuntimeError(f"Failed to load parser entry point '{entry.name}': {exc}") from exc

        def _factory(obj: object = loaded) -> LibraryParser:
            return _coerce_parser(obj)

        factories[key] = _factory
    return factories


def get_parser(ecosystem: str) -> LibraryParser:
    """Instantiate the adapter registered for ``ecosystem``."""

    factories = available_parsers()
    key = ecosystem.strip().lower()
    factory = factories.get(key)
    if factory is None:
        raise UnsupportedEcosystemError(ecosystem, tuple(sorted(factories)))
    instance = factory()
    if not isinstance(instance, LibraryParser):
        raise TypeError(f"Parser factory for '{ecosystem}' did not return a LibraryParser instance")
    return instance


def parse_library(path: str | Path, ecosystem: str) -> Library:
    """Parse the library rooted at ``path`` with the adapter for ``ecosystem``."""

    root = Path(path)
    if not root.exists():
        raise ParseError(ecosystem, str(root), "library root does not exist")
    if not root.is_dir():
        raise ParseError(ecosystem, str(root), "library root is not a directory")
    parser = get_parser(ecosystem)
    return parser.parse(root)


def supported_ecosystems() -> Tuple[str, ...]:
    return tuple(sorted(available_parsers()))


def _coerce_parser(obj: object) -> LibraryParser:
    if isinstance(obj, LibraryParser):
        return obj
    if isinstance(obj, type) and issubclass(obj, LibraryParser):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, LibraryParser):
            return instance
    raise TypeError("Parser entry point must be a LibraryParser subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "LibraryParser",
    "available_parsers",
    "get_parser",
    "parse_library",
    "supported_ecosystems",
]
