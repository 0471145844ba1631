"""Per-ecosystem code emitters rendered from jinja2 templates."""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from jinja2 import Environment

from ..ecosystems import Ecosystem, get_ecosystem, to_identifier
from ..errors import UnsupportedEcosystemError
from ..models import Ranking, format_signature, full_name
from ..templating import create_environment

_ELIXIR_NAME = re.compile(r"^[a-z_]\w*[?!]?$")
_RUST_FN_LINE = re.compile(
    r"^(?P<indent>\s*)(?P<pub>pub(?:\s*\([^)]*\))?\s+)?(?:(?:const|async|unsafe|default)\s+)*"
    r"(?:extern\s+\"[^\"]*\"\s+)?fn\b"
)


class Emitter:
    """Renders unified modules for one target ecosystem."""

    ecosystem = ""
    comment_prefix = "#"

    def __init__(self, env: Environment | None = None) -> None:
        self.env = env or create_environment()
        self.dialect: Ecosystem = get_ecosystem(self.ecosystem)

    @property
    def extension(self) -> str:
        return self.dialect.extension

    def function_name(self, ranking: Ranking, *, normalize_api: bool) -> str:
        if normalize_api:
            return to_identifier(ranking.pattern.name)
        return to_identifier(ranking.best_implementation.name)

    def parameter_names(self, ranking: Ranking) -> List[str]:
        names: List[str] = []
        for position, param in enumerate(ranking.best_implementation.params):
            base = to_identifier(param.name.lstrip("*&")) if param.name.strip("*&_") else f"arg{position}"
            candidate = base
            suffix = 2
            while candidate in names:
                candidate = f"{base}_{suffix}"
                suffix += 1
            names.append(candidate)
        return names

    def render_source(
        self,
        ranking: Ranking,
        body: str,
        *,
        function_name: str,
        add_docstrings: bool,
        preserve_comments: bool,
        source_note: Optional[str] = None,
    ) -> str:
        """Render a module around ``body``, code already in this ecosystem."""
        original = ranking.best_implementation.name
        if function_name != original:
            body = self.rename(body, original, function_name)
        if not preserve_comments:
            body = self.strip_comments(body)
        template = self.env.get_template(f"{self.ecosystem}/module.j2")
        return _finish(
            template.render(
                module_name=self.dialect.unified_module(ranking.pattern.name),
                header=module_header(ranking, source_note) if add_docstrings else "",
                docstring=self._documentation(ranking) if add_docstrings else "",
                body=self.prepare_body(body),
            )
        )

    def render_placeholder(
        self,
        ranking: Ranking,
        message: str,
        *,
        function_name: str,
        add_docstrings: bool = True,
    ) -> str:
        """Render a syntactically valid module whose function raises ``message``."""
        template = self.env.get_template(f"{self.ecosystem}/placeholder.j2")
        return _finish(
            template.render(
                module_name=self.dialect.unified_module(ranking.pattern.name),
                header=module_header(ranking, message),
                docstring=self._documentation(ranking) if add_docstrings else "",
                function_name=function_name,
                params=self.placeholder_params(self.parameter_names(ranking)),
                message=message,
            )
        )

    def placeholder_params(self, names: Sequence[str]) -> List[str]:
        return list(names)

    def prepare_body(self, body: str) -> str:
        return body

    def rename(self, body: str, old: str, new: str) -> str:
        raise NotImplementedError

    def strip_comments(self, body: str) -> str:
        prefix = self.comment_prefix
        return "\n".join(line for line in body.splitlines() if not line.strip().startswith(prefix))

    def _documentation(self, ranking: Ranking) -> str:
        func = ranking.best_implementation
        doc = func.docstring.strip()
        signature = f"Original signature ({ranking.best_ecosystem}): {format_signature(func)}"
        return f"{doc}\n\n{signature}" if doc else signature


class PythonEmitter(Emitter):
    ecosystem = "python"

    def rename(self, body: str, old: str, new: str) -> str:
        pattern = re.compile(rf"^(\s*(?:async\s+)?def\s+){re.escape(old)}\b", re.MULTILINE)
        return pattern.sub(lambda match: f"{match.group(1)}{new}", body, count=1)


class ElixirEmitter(Emitter):
    ecosystem = "elixir"

    def function_name(self, ranking: Ranking, *, normalize_api: bool) -> str:
        name = ranking.best_implementation.name
        if not normalize_api and ranking.best_ecosystem == self.ecosystem and _ELIXIR_NAME.match(name):
            return name
        return super().function_name(ranking, normalize_api=normalize_api)

    def placeholder_params(self, names: Sequence[str]) -> List[str]:
        return [name if name.startswith("_") else f"_{name}" for name in names]

    def rename(self, body: str, old: str, new: str) -> str:
        pattern = re.compile(rf"^(\s*defp?\s+){re.escape(old)}(?=[\s(,]|$)", re.MULTILINE)
        return pattern.sub(lambda match: f"{match.group(1)}{new}", body)


class RustEmitter(Emitter):
    ecosystem = "rust"
    comment_prefix = "//"

    def placeholder_params(self, names: Sequence[str]) -> List[str]:
        generics = _generic_names(len(names))
        return [f"_{name.lstrip('_')}: {generic}" for name, generic in zip(names, generics)]

    def render_placeholder(
        self,
        ranking: Ranking,
        message: str,
        *,
        function_name: str,
        add_docstrings: bool = True,
    ) -> str:
        names = self.parameter_names(ranking)
        template = self.env.get_template(f"{self.ecosystem}/placeholder.j2")
        return _finish(
            template.render(
                header=module_header(ranking, message),
                docstring=self._documentation(ranking) if add_docstrings else "",
                function_name=function_name,
                generics=_generic_names(len(names)),
                params=self.placeholder_params(names),
                message=message,
            )
        )

    def rename(self, body: str, old: str, new: str) -> str:
        return re.sub(rf"\bfn\s+{re.escape(old)}\b", f"fn {new}", body, count=1)

    def prepare_body(self, body: str) -> str:
        lines = body.splitlines()
        for index, line in enumerate(lines):
            match = _RUST_FN_LINE.match(line)
            if match is None:
                continue
            if not match.group("pub"):
                lines[index] = f"{match.group('indent')}pub {line[len(match.group('indent')):]}"
            break
        return "\n".join(lines)


_EMITTERS = {
    "python": PythonEmitter,
    "elixir": ElixirEmitter,
    "rust": RustEmitter,
}


def get_emitter(ecosystem: str, env: Environment | None = None) -> Emitter:
    try:
        factory = _EMITTERS[ecosystem.lower()]
    except KeyError:
        raise UnsupportedEcosystemError(ecosystem, tuple(sorted(_EMITTERS))) from None
    return factory(env)


def module_header(ranking: Ranking, note: Optional[str] = None) -> str:
    pattern = ranking.pattern
    winner = ranking.best_implementation
    others = [eco for eco in pattern.implementations if eco != ranking.best_ecosystem]
    lines = [
        f"Unified implementation of `{pattern.name}` ({pattern.category}).",
        "",
        f"Selected from {ranking.best_ecosystem} ({full_name(winner)}), "
        f"score {ranking.scores[ranking.best_ecosystem]:.2f}.",
        f"Why: {ranking.justification}",
    ]
    if others:
        lines.append(f"Also implemented in: {', '.join(others)}")
    if note:
        lines.extend(["", note])
    return "\n".join(lines)


def _finish(rendered: str) -> str:
    return rendered.rstrip() + "\n"


def _generic_names(count: int) -> List[str]:
    return [f"T{index}" for index in range(1, count + 1)]


__all__ = [
    "ElixirEmitter",
    "Emitter",
    "PythonEmitter",
    "RustEmitter",
    "get_emitter",
    "module_header",
]
