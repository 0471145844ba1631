"""Generate one unified-library module per ranked pattern."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from jinja2 import Environment

from ..config import ExtractionConfig
from ..errors import TranslationUnavailableError
from ..failsafe import build_placeholder_module, placeholder_translation
from ..logging import get_logger
from ..models import ExtractedModule, Ranking, Translation
from ..templating import create_environment
from .emitters import Emitter, get_emitter
from .translators import TranslatorRegistry


class ModuleExtractor:
    """Emits the winning implementation, translating or falling back to a placeholder."""

    def __init__(
        self,
        config: ExtractionConfig | None = None,
        translators: TranslatorRegistry | None = None,
        *,
        env: Environment | None = None,
    ) -> None:
        self.config = config or ExtractionConfig()
        self.translators = translators or TranslatorRegistry()
        self.env = env or create_environment()
        self.logger = get_logger("extractor")
        self._emitters: Dict[str, Emitter] = {}

    def emitter(self, ecosystem: str) -> Emitter:
        if ecosystem not in self._emitters:
            self._emitters[ecosystem] = get_emitter(ecosystem, self.env)
        return self._emitters[ecosystem]

    def extract(self, ranking: Ranking, output_root: Path, *, write: bool = True) -> ExtractedModule:
        target = self.config.target_ecosystem
        source = ranking.best_ecosystem
        emitter = self.emitter(target)
        func = ranking.best_implementation
        function_name = emitter.function_name(ranking, normalize_api=self.config.normalize_api)

        translation: Optional[Translation] = None
        code: Optional[str] = None
        reason: Optional[str] = None

        if source == target:
            if func.body:
                code = emitter.render_source(
                    ranking,
                    func.body,
                    function_name=function_name,
                    add_docstrings=self.config.add_docstrings,
                    preserve_comments=self.config.preserve_comments,
                )
            else:
                reason = "the parser did not capture a body"
        else:
            translator = self.translators.find(source, target)
            if translator is None:
                reason = f"no translator registered for {source} -> {target}"
            else:
                try:
                    translation = translator.translate(func, source, target)
                except TranslationUnavailableError as exc:
                    reason = str(exc)
                else:
                    code = emitter.render_source(
                        ranking,
                        translation.target_code,
                        function_name=function_name,
                        add_docstrings=self.config.add_docstrings,
                        preserve_comments=self.config.preserve_comments,
                        source_note=(
                            f"Translated from {source} with confidence {translation.confidence:.2f}; "
                            "review before use."
                        ),
                    )

        placeholder = code is None
        if code is None:
            self.logger.warning(
                "Using placeholder for %s (%s -> %s): %s", ranking.pattern.name, source, target, reason
            )
            code = build_placeholder_module(
                ranking,
                emitter,
                function_name=function_name,
                reason=reason,
                add_docstrings=self.config.add_docstrings,
            )
            if source != target:
                translation = placeholder_translation(ranking, target, code, reason)

        code = self._with_license_header(code, emitter)
        if placeholder and translation is not None:
            translation.target_code = code

        output_path = Path(output_root) / f"{ranking.pattern.name}{emitter.extension}"
        if write:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(code, encoding="utf-8")
            self.logger.debug("Wrote %s", output_path)

        return ExtractedModule(
            pattern=ranking.pattern,
            ranking=ranking,
            translation=translation,
            output_path=str(output_path),
            code=code,
            placeholder=placeholder,
            function_name=function_name,
        )

    def _with_license_header(self, code: str, emitter: Emitter) -> str:
        if not self.config.spdx_header:
            return code
        return f"{emitter.comment_prefix} SPDX-License-Identifier: {self.config.spdx_header}\n\n{code}"


def extract(
    ranking: Ranking,
    output_root: Path,
    config: ExtractionConfig | None = None,
    translators: TranslatorRegistry | None = None,
) -> ExtractedModule:
    return ModuleExtractor(config, translators).extract(ranking, Path(output_root))


__all__ = ["ModuleExtractor", "extract"]
