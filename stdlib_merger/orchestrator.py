"""Pipeline orchestration for merge/analyze/rank flows."""

from __future__ import annotations

import logging
import os
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .config import MergerConfig
from .errors import ParseError
from .extraction import LLMTranslator, ModuleExtractor, TranslatorRegistry
from .llm import LLMRunner, LLMSimilarity, SimilarityService
from .logging import get_logger, log_stage
from .matcher import PatternMatcher
from .models import Library, MergeResult, Pattern, Ranking
from .parsers import parse_library
from .ranker import EcosystemPriors, default_criteria, rank, rank_all
from .reports import ReportGenerator
from .stores.similarity_cache import SimilarityCache
from .stripper import LibraryStripper, SourceRewriter

LibrarySource = Tuple[str, Union[str, Path]]
LibrarySources = Union[Sequence[LibrarySource], Mapping[str, Union[str, Path]]]

MERGE_STAGES = 6


@dataclass
class AnalysisResult:
    """Libraries and patterns found by a dry run."""

    libraries: List[Library]
    patterns: List[Pattern]
    warnings: List[str] = field(default_factory=list)

    @property
    def universal_patterns(self) -> List[Pattern]:
        return [pattern for pattern in self.patterns if pattern.is_universal]


class Orchestrator:
    """Coordinates the parse, match, rank, extract, strip and report stages."""

    def __init__(
        self,
        parser: Callable[[Union[str, Path], str], Library] | None = None,
        similarity: SimilarityService | None = None,
        llm_runner: LLMRunner | None = None,
        translators: TranslatorRegistry | None = None,
        rewriters: Optional[Sequence[SourceRewriter]] = None,
        reporter: ReportGenerator | None = None,
        priors: EcosystemPriors | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.parser = parser or parse_library
        self.reporter = reporter or ReportGenerator()
        self.priors = priors or EcosystemPriors()
        self.logger = get_logger("orchestrator")
        self.stage = "configuration"
        self._similarity = similarity
        self._llm_runner = llm_runner
        self._translators = translators
        self._rewriters = list(rewriters) if rewriters is not None else None
        self._sleep = sleep

    def run_merge(
        self,
        libraries: LibrarySources,
        output_dir: Union[str, Path],
        config: MergerConfig | None = None,
    ) -> MergeResult:
        """Run the full pipeline and write every artifact under ``output_dir``."""
        config = config or MergerConfig()
        sources = self._normalize_sources(libraries)
        output_root = Path(output_dir).expanduser().resolve()
        self.logger.info(
            "Starting merge of %d libraries into %s", len(sources), output_root
        )
        warnings: List[str] = []

        self.stage = "parse"
        with log_stage(self.logger, 1, MERGE_STAGES, "Parsing libraries"):
            parsed = self._parse_all(sources, config)
            warnings.extend(self._library_warnings(parsed))

        self.stage = "match"
        with log_stage(self.logger, 2, MERGE_STAGES, "Finding common patterns"):
            patterns, match_warnings = self._find_patterns(parsed, config)
            warnings.extend(match_warnings)

        self.stage = "rank"
        with log_stage(self.logger, 3, MERGE_STAGES, "Ranking implementations"):
            criteria = default_criteria(config.weights, self.priors)
            rankings = rank_all(
                patterns,
                criteria,
                parallel=config.performance.parallel,
                max_workers=config.performance.max_workers,
            )

        self.stage = "extract"
        with log_stage(self.logger, 4, MERGE_STAGES, "Extracting unified modules"):
            extractor = ModuleExtractor(
                config.extraction,
                self._resolve_translators(config, warnings),
                env=self.reporter.env,
            )
            extracted = [extractor.extract(ranking, output_root) for ranking in rankings]
            for module in extracted:
                if module.placeholder:
                    warnings.append(
                        f"Pattern {module.pattern.name} was emitted as a placeholder "
                        f"({module.ranking.best_ecosystem} -> {config.extraction.target_ecosystem})"
                    )

        self.stage = "strip"
        with log_stage(self.logger, 5, MERGE_STAGES, "Stripping original libraries"):
            stripper = LibraryStripper(config, self._rewriters, env=self.reporter.env)
            stripped = [stripper.strip(library, patterns, output_root) for library in parsed]
            for library in stripped:
                warnings.extend(library.warnings)

        self.stage = "report"
        reports: Dict[str, str] = {}
        with log_stage(self.logger, 6, MERGE_STAGES, "Generating reports"):
            if config.output.generate_reports:
                reports = self.reporter.write(
                    patterns,
                    rankings,
                    output_root,
                    ecosystems=[library.ecosystem for library in parsed],
                    target=config.extraction.target_ecosystem,
                    weights=config.weights,
                    extracted_modules=extracted,
                )
            else:
                self.logger.debug("Report generation disabled via configuration")

        winners = Counter(ranking.best_ecosystem for ranking in rankings)
        statistics = {
            "total_patterns": len(patterns),
            "universal_patterns": sum(1 for pattern in patterns if pattern.is_universal),
            "libraries_parsed": len(parsed),
            "modules_generated": len(extracted),
            "placeholder_modules": sum(1 for module in extracted if module.placeholder),
            "total_lines": sum(module.line_count for module in extracted),
            "functions_removed": sum(len(library.removed_functions) for library in stripped),
            "best_by_ecosystem": dict(sorted(winners.items())),
        }
        self.stage = "done"
        self.logger.info(
            "Merge complete: %d patterns, %d modules, %d warnings",
            statistics["total_patterns"],
            statistics["modules_generated"],
            len(warnings),
        )
        return MergeResult(
            patterns=patterns,
            rankings=rankings,
            extracted_modules=extracted,
            stripped_libraries=stripped,
            reports=reports,
            statistics=statistics,
            warnings=warnings,
        )

    def run_analyze(
        self, libraries: LibrarySources, config: MergerConfig | None = None
    ) -> AnalysisResult:
        """Parse and match without writing anything; a missing library root becomes a warning."""
        config = config or MergerConfig()
        sources = self._normalize_sources(libraries)
        warnings: List[str] = []

        self.stage = "parse"
        parsed: List[Library] = []
        for ecosystem, path in sources:
            try:
                parsed.append(self.parser(path, ecosystem))
            except ParseError as exc:
                message = f"Skipping {ecosystem} library: {exc}"
                self.logger.warning(message)
                warnings.append(message)
        warnings.extend(self._library_warnings(parsed))

        self.stage = "match"
        patterns, match_warnings = self._find_patterns(parsed, config)
        warnings.extend(match_warnings)
        self.stage = "done"
        return AnalysisResult(libraries=parsed, patterns=patterns, warnings=warnings)

    def run_rank(
        self,
        libraries: LibrarySources,
        pattern_name: str,
        config: MergerConfig | None = None,
    ) -> Optional[Ranking]:
        """Rank a single pattern by name; ``None`` when no such pattern was found."""
        config = config or MergerConfig()
        analysis = self.run_analyze(libraries, config)
        wanted = pattern_name.strip().lower()
        self.stage = "rank"
        for pattern in analysis.patterns:
            if pattern.name == wanted or pattern.id == wanted:
                ranking = rank(pattern, default_criteria(config.weights, self.priors))
                self.stage = "done"
                return ranking
        self.logger.info("Pattern %s not found among %d patterns", pattern_name, len(analysis.patterns))
        self.stage = "done"
        return None

    def _parse_all(
        self, sources: Sequence[Tuple[str, Path]], config: MergerConfig
    ) -> List[Library]:
        if not config.performance.parallel or len(sources) < 2:
            return [self.parser(path, ecosystem) for ecosystem, path in sources]
        # pool.map keeps input order and re-raises the first failure
        with ThreadPoolExecutor(max_workers=config.performance.max_workers) as pool:
            return list(pool.map(lambda source: self.parser(source[1], source[0]), sources))

    def _find_patterns(
        self, libraries: Sequence[Library], config: MergerConfig
    ) -> Tuple[List[Pattern], List[str]]:
        warnings: List[str] = []
        similarity, cache = self._resolve_similarity(config, warnings)
        matcher = PatternMatcher(config.matching, similarity)
        patterns = matcher.find_patterns(libraries)
        warnings.extend(matcher.warnings)
        if cache is not None:
            try:
                cache.persist()
            except OSError as exc:
                self.logger.warning("Unable to persist similarity cache: %s", exc)
        return patterns, warnings

    def _resolve_similarity(
        self, config: MergerConfig, warnings: List[str]
    ) -> Tuple[Optional[SimilarityService], Optional[SimilarityCache]]:
        if self._similarity is not None:
            return self._similarity, None
        runner = self._resolve_llm_runner(config, warnings)
        if runner is None or config.llm is None:
            return None, None
        cache = SimilarityCache.in_directory(config.performance.cache_dir)
        service = LLMSimilarity(
            runner,
            cache=cache,
            max_retries=config.llm.max_retries,
            sleep=self._sleep,
        )
        return service, cache

    def _resolve_llm_runner(
        self, config: MergerConfig, warnings: List[str]
    ) -> Optional[LLMRunner]:
        if self._llm_runner is not None:
            return self._llm_runner
        if config.llm is None:
            self.logger.debug("No LLM configuration detected; using name similarity only.")
            return None
        if not os.getenv(config.llm.api_key_env) and config.llm.base_url is None:
            message = (
                f"LLM configured but {config.llm.api_key_env} is not set; "
                "semantic similarity and translation disabled"
            )
            self.logger.warning(message)
            if message not in warnings:
                warnings.append(message)
            return None
        self._llm_runner = LLMRunner.from_config(config.llm)
        return self._llm_runner

    def _resolve_translators(
        self, config: MergerConfig, warnings: List[str]
    ) -> TranslatorRegistry:
        if self._translators is not None:
            return self._translators
        registry = TranslatorRegistry()
        if config.extraction.llm_translation:
            runner = self._resolve_llm_runner(config, warnings)
            if runner is None:
                message = "extraction.llm_translation is enabled but no LLM is available"
                self.logger.warning(message)
                warnings.append(message)
            else:
                registry.register(LLMTranslator(runner))
        return registry

    def _library_warnings(self, libraries: Sequence[Library]) -> List[str]:
        warnings: List[str] = []
        for library in libraries:
            warnings.extend(f"[{library.ecosystem}] {warning}" for warning in library.warnings)
            if not library.functions:
                message = f"Library {library.ecosystem} at {library.root} contains no functions"
                self.logger.warning(message)
                warnings.append(message)
            elif self.logger.isEnabledFor(logging.DEBUG):
                self.logger.debug(
                    "Parsed %d functions from %s", len(library.functions), library.ecosystem
                )
        return warnings

    @staticmethod
    def _normalize_sources(libraries: LibrarySources) -> List[Tuple[str, Path]]:
        items = libraries.items() if isinstance(libraries, Mapping) else libraries
        sources: List[Tuple[str, Path]] = []
        seen = set()
        for ecosystem, path in items:
            tag = ecosystem.strip().lower()
            if tag in seen:
                raise ValueError(f"Library for ecosystem '{tag}' given more than once")
            seen.add(tag)
            sources.append((tag, Path(path).expanduser()))
        if not sources:
            raise ValueError("At least one library is required")
        return sources


__all__ = ["AnalysisResult", "LibrarySource", "MERGE_STAGES", "Orchestrator"]
