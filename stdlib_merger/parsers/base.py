"""Base classes for library parser adapters."""

from __future__ import annotations

import os
import re
import textwrap
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from ..logging import get_logger
from ..models import Library, Module

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    "_build",
    "deps",
    "target",
    "build",
    "dist",
}

_EXAMPLE_HEADING = re.compile(r"^\s*#+\s*Examples?\b", re.IGNORECASE)


class LibraryParser(ABC):
    """Contract for adapters that turn a source tree into a :class:`Library`."""

    ecosystem: str = ""
    extensions: Tuple[str, ...] = ()

    def __init__(self) -> None:
        self.logger = get_logger(f"parsers.{self.ecosystem or 'base'}")

    def supports(self, path: Path) -> bool:
        """Return True when the file should be handed to :meth:`parse_file`."""
        return path.suffix in self.extensions

    @abstractmethod
    def parse_file(self, path: Path, root: Path) -> Optional[Module]:
        """Parse one source file. Returning None skips the file silently."""

    def parse(self, root: Path) -> Library:
        """Walk ``root`` and parse every supported file, skipping files that fail."""
        library = Library(ecosystem=self.ecosystem, root=str(root))
        warnings: List[str] = []
        files = list(self.discover(root))
        self.logger.debug("Found %d %s source files under %s", len(files), self.ecosystem, root)

        for path in files:
            relative = path.relative_to(root).as_posix()
            try:
                module = self.parse_file(path, root)
            except Exception as exc:  # per-file failures are recorded, never fatal
                message = f"Failed to parse {relative}: {exc}"
                self.logger.warning("[%s] %s", self.ecosystem, message)
                warnings.append(message)
                continue
            if module is None:
                continue
            key = module.name if module.name not in library.modules else f"{module.name}@{relative}"
            library.modules[key] = module
            for nested in module.walk():
                for func in nested.functions:
                    func.metadata.setdefault("ecosystem", self.ecosystem)
                    library.functions.append(func)

        library.metadata["warnings"] = warnings
        library.metadata["files_parsed"] = len(files) - len(warnings)
        if not library.functions:
            self.logger.warning("[%s] No functions extracted from %s", self.ecosystem, root)
        return library

    def discover(self, root: Path) -> Iterator[Path]:
        """Yield supported files in a stable, sorted order."""
        for current, dirs, filenames in os.walk(root):
            dirs[:] = sorted(d for d in dirs if d not in _EXCLUDED_DIRS and not d.startswith("."))
            for filename in sorted(filenames):
                path = Path(current) / filename
                if self.supports(path):
                    yield path


def read_source(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def dedent_block(lines: List[str]) -> str:
    return textwrap.dedent("\n".join(lines)).strip("\n")


def extract_examples(docstring: str, prompt: str, continuation: str | None = None) -> List[str]:
    """Collect example snippets introduced by ``prompt`` (``iex>``, ``>>>``).

    Consecutive prompt lines form one example; a blank line closes it. Elixir
    docs only count prompts below an ``## Example(s)`` heading when one exists.
    """
    lines = docstring.splitlines()
    has_heading = any(_EXAMPLE_HEADING.match(line) for line in lines)
    in_section = not has_heading
    examples: List[str] = []
    current: List[str] = []

    for line in lines:
        stripped = line.strip()
        if has_heading and _EXAMPLE_HEADING.match(line):
            in_section = True
            continue
        if not in_section:
            continue
        if stripped.startswith(prompt) or (
            continuation is not None and current and stripped.startswith(continuation)
        ):
            current.append(stripped)
        elif not stripped and current:
            examples.append("\n".join(current))
            current = []

    if current:
        examples.append("\n".join(current))
    return examples


def split_top_level(
    text: str, separator: str = ",", quotes: Tuple[str, ...] = ('"', "'")
) -> List[str]:
    """Split ``text`` on ``separator`` outside of brackets and string literals."""
    parts: List[str] = []
    depth = 0
    quote: Optional[str] = None
    current: List[str] = []
    previous = ""
    for char in text:
        if quote:
            current.append(char)
            if char == quote and previous != "\\":
                quote = None
            previous = char
            continue
        if char in quotes:
            quote = char
        elif char in "([{<":
            depth += 1
        elif char in ")]}>" and depth > 0 and not (char == ">" and previous in "-="):
            depth -= 1
        if char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            previous = char
            continue
        current.append(char)
        previous = char
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [part for part in parts if part]


def find_matching(text: str, start: int, open_char: str = "(", close_char: str = ")") -> int:
    """Return the index of the bracket closing the one at ``start``, or -1."""
    depth = 0
    quote: Optional[str] = None
    index = start
    while index < len(text):
        char = text[index]
        if quote:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char == '"':
            quote = char
        elif char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return -1


__all__ = [
    "LibraryParser",
    "dedent_block",
    "extract_examples",
    "find_matching",
    "read_source",
    "split_top_level",
]
