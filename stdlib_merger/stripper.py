"""Remove extracted functions from the original libraries and point them at the unified modules."""

from __future__ import annotations

import ast
import re
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from jinja2 import Environment

from .config import MergerConfig
from .ecosystems import get_ecosystem
from .logging import get_logger
from .models import FunctionSignature, Library, Pattern, StrippedLibrary, full_name
from .templating import create_environment

MIGRATION_FILENAME = "MIGRATION.md"

_ELIXIR_ATTRIBUTE = re.compile(r"^\s*@(doc|spec|impl|deprecated)\b")
_ELIXIR_DOC_OPEN = re.compile(r'^\s*@doc\s+(~[sS])?"""\s*$')
_DEFMODULE = re.compile(r"^(?P<indent>\s*)defmodule\s+\S+\s+do\b")

logger = get_logger("stripper")


class SourceRewriter(Protocol):
    """Capability to drop functions from a source file and add references."""

    def can_rewrite(self, ecosystem: str) -> bool:
        ...

    def rewrite(
        self,
        module_source: str,
        removals: Sequence[FunctionSignature],
        references: Sequence[str],
    ) -> str:
        ...


class LineRangeRewriter:
    """Deletes the recorded line span of each function and inserts the references."""

    ecosystems = ("python", "elixir")

    def __init__(self, ecosystem: str) -> None:
        self.ecosystem = ecosystem

    def can_rewrite(self, ecosystem: str) -> bool:
        return ecosystem == self.ecosystem and ecosystem in self.ecosystems

    def rewrite(
        self,
        module_source: str,
        removals: Sequence[FunctionSignature],
        references: Sequence[str],
    ) -> str:
        lines = module_source.splitlines()
        dropped = set()
        for func in removals:
            for position, (start, end) in enumerate(_line_spans(func)):
                start -= 1
                if self.ecosystem == "elixir" and position == 0:
                    start = _elixir_leading_attributes(lines, start)
                dropped.update(range(start, end))

        kept: List[str] = []
        for index, line in enumerate(lines):
            if index in dropped:
                continue
            if not line.strip() and kept and not kept[-1].strip():
                continue
            kept.append(line)

        if self.ecosystem == "python":
            kept = _insert_python_references(kept, references)
        else:
            kept = _insert_elixir_references(kept, references)
        return "\n".join(kept).rstrip() + "\n"


def default_rewriters() -> List[SourceRewriter]:
    return [LineRangeRewriter(ecosystem) for ecosystem in LineRangeRewriter.ecosystems]


class LibraryStripper:
    """Writes stripped sources (when possible) and a migration guide per library."""

    def __init__(
        self,
        config: MergerConfig | None = None,
        rewriters: Sequence[SourceRewriter] | None = None,
        *,
        env: Environment | None = None,
    ) -> None:
        self.config = config or MergerConfig()
        self.rewriters = list(rewriters) if rewriters is not None else default_rewriters()
        self.env = env or create_environment()

    def strip(
        self, library: Library, patterns: Sequence[Pattern], output_root: Path
    ) -> StrippedLibrary:
        dialect = get_ecosystem(library.ecosystem)
        output_dir = Path(output_root) / "stripped_libraries" / library.ecosystem
        output_dir.mkdir(parents=True, exist_ok=True)

        removed: List[FunctionSignature] = []
        references: List[str] = []
        by_file: Dict[str, List[FunctionSignature]] = defaultdict(list)
        references_by_file: Dict[str, List[str]] = defaultdict(list)
        for pattern in patterns:
            func = pattern.implementations.get(library.ecosystem)
            if func is None:
                continue
            reference = dialect.reference_statement(pattern.name)
            removed.append(func)
            references.append(reference)
            by_file[func.source_location.file].append(func)
            if reference not in references_by_file[func.source_location.file]:
                references_by_file[func.source_location.file].append(reference)

        result = StrippedLibrary(
            original=library,
            removed_functions=removed,
            added_references=references,
            output_path=str(output_dir),
        )

        rewriter = self._rewriter_for(library.ecosystem)
        if removed and rewriter is None:
            message = (
                f"No source rewriter for {library.ecosystem}; sources left untouched, "
                "see MIGRATION.md for the functions to remove by hand"
            )
            logger.warning(message)
            result.warnings.append(message)
        elif rewriter is not None:
            for relative, functions in by_file.items():
                source_path = Path(library.root) / relative
                try:
                    original = source_path.read_text(encoding="utf-8")
                except OSError as exc:
                    message = f"Could not read {relative} for rewriting: {exc}"
                    logger.warning(message)
                    result.warnings.append(message)
                    continue
                rewritten = rewriter.rewrite(original, functions, references_by_file[relative])
                if library.ecosystem == "python" and not _parses(rewritten):
                    message = f"Rewriting {relative} produced invalid Python; left it untouched"
                    logger.warning(message)
                    result.warnings.append(message)
                    continue
                destination = output_dir / "src" / relative
                destination.parent.mkdir(parents=True, exist_ok=True)
                destination.write_text(rewritten, encoding="utf-8")
                result.rewritten_files.append(str(destination))
            result.rewritten = bool(result.rewritten_files)

        migration = self.render_migration(result)
        (output_dir / MIGRATION_FILENAME).write_text(migration, encoding="utf-8")
        logger.info(
            "Stripped %d functions from %s%s",
            len(removed),
            library.ecosystem,
            " (documentation only)" if removed and not result.rewritten else "",
        )
        return result

    def render_migration(self, stripped: StrippedLibrary) -> str:
        dialect = get_ecosystem(stripped.original.ecosystem)
        template = self.env.get_template("reports/library_migration.md.j2")
        entries = [
            {"name": full_name(func), "location": str(func.source_location), "reference": reference}
            for func, reference in zip(stripped.removed_functions, stripped.added_references)
        ]
        return (
            template.render(
                ecosystem=dialect.display_name,
                fence=dialect.fence,
                comment=dialect.comment_prefix,
                entries=entries,
                references=list(dict.fromkeys(stripped.added_references)),
                rewritten=stripped.rewritten,
                rewritten_files=[
                    Path(path).relative_to(stripped.output_path).as_posix()
                    for path in stripped.rewritten_files
                ],
                target=self.config.extraction.target_ecosystem,
            ).rstrip()
            + "\n"
        )

    def _rewriter_for(self, ecosystem: str) -> Optional[SourceRewriter]:
        for rewriter in self.rewriters:
            if rewriter.can_rewrite(ecosystem):
                return rewriter
        return None


def strip(
    library: Library,
    patterns: Sequence[Pattern],
    output_root: Path,
    config: MergerConfig | None = None,
    rewriters: Sequence[SourceRewriter] | None = None,
) -> StrippedLibrary:
    return LibraryStripper(config, rewriters).strip(library, patterns, Path(output_root))


def _parses(source: str) -> bool:
    try:
        ast.parse(source)
    except SyntaxError:
        return False
    return True


def _line_spans(func: FunctionSignature) -> List[Tuple[int, int]]:
    """1-based inclusive line ranges to delete; multi-clause Elixir functions carry one per clause."""
    spans = func.metadata.get("spans")
    if spans:
        return [(int(first), int(last)) for first, last in spans]
    location = func.source_location
    return [(location.line, location.end_line or location.line)]


def _elixir_leading_attributes(lines: List[str], start: int) -> int:
    """Extend a removal upwards over the ``@doc``/``@spec`` block that belongs to it."""
    index = start - 1
    first = start
    while index >= 0:
        stripped = lines[index].strip()
        if stripped == '"""':
            opener = index - 1
            while opener >= 0 and not _ELIXIR_DOC_OPEN.match(lines[opener]):
                opener -= 1
            if opener < 0:
                break
            first = opener
            index = opener - 1
            continue
        if _ELIXIR_ATTRIBUTE.match(lines[index]):
            first = index
            index -= 1
            continue
        if stripped.startswith("|"):
            # continuation of a multi-line @spec
            opener = index - 1
            while opener >= 0 and lines[opener].strip() and not _ELIXIR_ATTRIBUTE.match(lines[opener]):
                opener -= 1
            if opener < 0 or not _ELIXIR_ATTRIBUTE.match(lines[opener]):
                break
            first = opener
            index = opener - 1
            continue
        break
    return first


def _insert_python_references(lines: List[str], references: Sequence[str]) -> List[str]:
    if not references:
        return lines
    insert_at = 0
    try:
        tree = ast.parse("\n".join(lines))
    except SyntaxError:
        tree = None
    if tree is not None:
        for node in tree.body:
            is_docstring = (
                isinstance(node, ast.Expr)
                and isinstance(node.value, ast.Constant)
                and isinstance(node.value.value, str)
                and node is tree.body[0]
            )
            is_future = isinstance(node, ast.ImportFrom) and node.module == "__future__"
            if not (is_docstring or is_future):
                break
            insert_at = node.end_lineno or insert_at
    block = list(references)
    if insert_at:
        block = [""] + block
    return lines[:insert_at] + block + [""] + lines[insert_at:]


def _insert_elixir_references(lines: List[str], references: Sequence[str]) -> List[str]:
    if not references:
        return lines
    for index, line in enumerate(lines):
        match = _DEFMODULE.match(line)
        if match is None:
            continue
        indent = match.group("indent") + "  "
        insert_at = index + 1
        # keep aliases below the @moduledoc heredoc
        if insert_at < len(lines) and re.match(r'^\s*@moduledoc\s+(~[sS])?"""', lines[insert_at]):
            closing = insert_at + 1
            while closing < len(lines) and lines[closing].strip() != '"""':
                closing += 1
            insert_at = closing + 1
        elif insert_at < len(lines) and re.match(r"^\s*@moduledoc\b", lines[insert_at]):
            insert_at += 1
        block = [""] + [f"{indent}{reference}" for reference in references]
        return lines[:insert_at] + block + lines[insert_at:]
    return list(references) + [""] + lines


__all__ = [
    "LibraryStripper",
    "LineRangeRewriter",
    "MIGRATION_FILENAME",
    "SourceRewriter",
    "default_rewriters",
    "strip",
]
