"""Markdown reports summarising a merge run."""

from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from jinja2 import Environment

from .ecosystems import get_ecosystem
from .logging import get_logger
from .models import CRITERIA_NAMES, ExtractedModule, Pattern, Ranking, full_name
from .templating import create_environment

COMPOSITION_GUIDE = "COMPOSITION-GUIDE.md"
MIGRATION_GUIDE = "MIGRATION-GUIDE.md"
SIMILARITY_REPORT = "SIMILARITY-REPORT.md"
RANKING_REPORT = "RANKING-REPORT.md"

REPORT_TEMPLATES: Dict[str, str] = {
    COMPOSITION_GUIDE: "reports/composition_guide.md.j2",
    MIGRATION_GUIDE: "reports/migration_guide.md.j2",
    SIMILARITY_REPORT: "reports/similarity_report.md.j2",
    RANKING_REPORT: "reports/ranking_report.md.j2",
}

HIGH_CONFIDENCE = 0.9
MEDIUM_CONFIDENCE = 0.7


def _utc_now() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


class ReportGenerator:
    """Renders the four run-level reports from patterns and rankings."""

    def __init__(
        self,
        env: Environment | None = None,
        *,
        clock: Callable[[], str] = _utc_now,
    ) -> None:
        self.env = env or create_environment()
        self.clock = clock
        self.logger = get_logger("reports")

    def render_all(
        self,
        patterns: Sequence[Pattern],
        rankings: Sequence[Ranking],
        *,
        ecosystems: Sequence[str] = (),
        target: str = "python",
        weights: Optional[Dict[str, float]] = None,
        extracted_modules: Sequence[ExtractedModule] = (),
    ) -> Dict[str, str]:
        """Return ``{filename: markdown}`` for every report."""
        context = self._context(
            patterns,
            rankings,
            ecosystems=ecosystems,
            target=target,
            weights=weights or {},
            extracted_modules=extracted_modules,
        )
        rendered: Dict[str, str] = {}
        for filename, template_name in REPORT_TEMPLATES.items():
            template = self.env.get_template(template_name)
            rendered[filename] = template.render(**context).rstrip() + "\n"
        return rendered

    def write(
        self,
        patterns: Sequence[Pattern],
        rankings: Sequence[Ranking],
        output_dir: Path,
        **kwargs: Any,
    ) -> Dict[str, str]:
        """Render and write the reports; returns ``{filename: path}``."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        written: Dict[str, str] = {}
        for filename, content in self.render_all(patterns, rankings, **kwargs).items():
            path = output_dir / filename
            path.write_text(content, encoding="utf-8")
            written[filename] = str(path)
            self.logger.debug("Wrote %s", path)
        return written

    def _context(
        self,
        patterns: Sequence[Pattern],
        rankings: Sequence[Ranking],
        *,
        ecosystems: Sequence[str],
        target: str,
        weights: Dict[str, float],
        extracted_modules: Sequence[ExtractedModule],
    ) -> Dict[str, Any]:
        analyzed = sorted(ecosystems) or sorted(
            {eco for pattern in patterns for eco in pattern.implementations}
        )
        function_names = {module.pattern.name: module.function_name for module in extracted_modules}
        placeholders = {module.pattern.name for module in extracted_modules if module.placeholder}

        categories = Counter(pattern.category for pattern in patterns)
        winners = Counter(ranking.best_ecosystem for ranking in rankings)

        return {
            "generated_at": self.clock(),
            "target": target,
            "ecosystems": analyzed,
            "patterns": list(patterns),
            "universal": [pattern for pattern in patterns if pattern.is_universal],
            "rankings": [_ranking_row(ranking) for ranking in rankings],
            "categories": _by_count(categories),
            "distribution": _by_count(winners),
            "high_confidence": [p for p in patterns if p.similarity_score > HIGH_CONFIDENCE],
            "medium_confidence": [
                p
                for p in patterns
                if MEDIUM_CONFIDENCE <= p.similarity_score <= HIGH_CONFIDENCE
            ],
            "low_confidence": [p for p in patterns if p.similarity_score < MEDIUM_CONFIDENCE],
            "criteria": list(CRITERIA_NAMES),
            "weights": weights,
            "migrations": [
                _migration(ranking, target, function_names.get(ranking.pattern.name))
                for ranking in rankings
            ],
            "placeholders": placeholders,
        }


def _by_count(counter: Counter) -> List[tuple]:
    return sorted(counter.items(), key=lambda item: (-item[1], item[0]))


def _ranking_row(ranking: Ranking) -> Dict[str, Any]:
    ordered = ranking.ordered_ecosystems()
    return {
        "pattern": ranking.pattern,
        "best": ranking.best_ecosystem,
        "score": ranking.scores[ranking.best_ecosystem],
        "runners_up": [eco for eco in ordered if eco != ranking.best_ecosystem],
        "scores": ranking.scores,
        "breakdown": ranking.criterion_scores,
        # keeps table cells on one line
        "justification": ranking.justification.replace("|", "/"),
        "ecosystems": sorted(ranking.scores),
    }


def _migration(ranking: Ranking, target: str, function_name: Optional[str]) -> Dict[str, Any]:
    unified = get_ecosystem(target)
    module = unified.unified_module(ranking.pattern.name)
    name = function_name or ranking.best_implementation.name
    steps = []
    for ecosystem, func in ranking.pattern.implementations.items():
        dialect = get_ecosystem(ecosystem)
        steps.append(
            {
                "ecosystem": dialect.display_name,
                "fence": dialect.fence,
                "before": full_name(func),
                "reference": dialect.reference_statement(ranking.pattern.name),
            }
        )
    return {
        "pattern": ranking.pattern.name,
        "best": ranking.best_ecosystem,
        "module": module,
        "function": name,
        "steps": steps,
    }


__all__ = [
    "COMPOSITION_GUIDE",
    "MIGRATION_GUIDE",
    "RANKING_REPORT",
    "REPORT_TEMPLATES",
    "ReportGenerator",
    "SIMILARITY_REPORT",
]
