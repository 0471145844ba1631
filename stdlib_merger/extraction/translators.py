"""Cross-ecosystem translators and their registry."""

from __future__ import annotations

import ast
import re
from typing import Dict, List, Optional, Protocol, Tuple

from ..errors import TranslationUnavailableError
from ..llm.runner import LLMRunner
from ..logging import get_logger
from ..models import FunctionSignature, Translation, format_signature

LLM_CONFIDENCE = 0.5
LLM_REVIEW_WARNING = "Machine translated by an LLM; review before relying on it"

_FENCED = re.compile(r"```[\w+-]*\n(?P<code>.*?)```", re.DOTALL)

SYSTEM_PROMPT = (
    "You translate standard-library functions between programming languages. "
    "Reply with a single fenced code block containing only the translated function."
)


class Translator(Protocol):
    """Carries one function from a source ecosystem into a target ecosystem."""

    def supports(self, source: str, target: str) -> bool:
        ...

    def translate(self, func: FunctionSignature, source: str, target: str) -> Translation:
        ...


class TranslatorRegistry:
    """Ordered collection of translators; the first one supporting a pair wins."""

    def __init__(self, translators: Optional[List[Translator]] = None) -> None:
        self._translators: List[Translator] = list(translators or [])

    def register(self, translator: Translator) -> None:
        self._translators.append(translator)

    def find(self, source: str, target: str) -> Optional[Translator]:
        for translator in self._translators:
            if translator.supports(source, target):
                return translator
        return None

    def __len__(self) -> int:
        return len(self._translators)


class LLMTranslator:
    """Asks an LLM to port a function body. Results always need review."""

    def __init__(
        self,
        runner: LLMRunner,
        *,
        pairs: Optional[List[Tuple[str, str]]] = None,
    ) -> None:
        self.runner = runner
        self.pairs = set(pairs) if pairs is not None else None
        self.logger = get_logger("extraction.llm")

    def supports(self, source: str, target: str) -> bool:
        if source == target:
            return False
        return self.pairs is None or (source, target) in self.pairs

    def translate(self, func: FunctionSignature, source: str, target: str) -> Translation:
        source_code = func.body or format_signature(func)
        prompt = build_prompt(func, source, target)
        try:
            response = self.runner.run(prompt, system=SYSTEM_PROMPT)
        except RuntimeError as exc:
            raise TranslationUnavailableError(source, target, str(exc)) from exc

        code = extract_code(response)
        if not code:
            raise TranslationUnavailableError(source, target, "empty translation")
        if target == "python":
            try:
                ast.parse(code)
            except SyntaxError as exc:
                raise TranslationUnavailableError(
                    source, target, f"translated code does not parse: {exc.msg}"
                ) from exc
        self.logger.debug("Translated %s from %s to %s", func.name, source, target)
        return Translation(
            source_ecosystem=source,
            target_ecosystem=target,
            source_code=source_code,
            target_code=code,
            confidence=LLM_CONFIDENCE,
            warnings=[LLM_REVIEW_WARNING],
        )


def build_prompt(func: FunctionSignature, source: str, target: str) -> str:
    parts = [
        f"Translate this {source} function to idiomatic {target}.",
        f"Keep the function name `{func.name}` and its behaviour.",
        "",
        f"```{source}",
        func.body or format_signature(func),
        "```",
    ]
    if func.docstring:
        parts.extend(["", "Documentation:", func.docstring])
    return "\n".join(parts)


def extract_code(response: str) -> str:
    match = _FENCED.search(response)
    code = match.group("code") if match else response
    return code.strip("\n").rstrip()


__all__ = [
    "LLMTranslator",
    "LLM_CONFIDENCE",
    "LLM_REVIEW_WARNING",
    "Translator",
    "TranslatorRegistry",
    "build_prompt",
    "extract_code",
]
