"""Cross-library pattern matching: name clustering plus optional semantic validation."""

from __future__ import annotations

import hashlib
import re
from collections import Counter
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .config import MatchingConfig
from .errors import ExternalServiceError
from .llm.similarity import SimilarityService
from .logging import get_logger
from .models import Cluster, FunctionSignature, Library, Pattern, format_signature

_PREFIXES = ("stdlib_", "std_")
_SUFFIXES = ("_ex", "_rs", "_hs", "_py")
_NON_IDENTIFIER = re.compile(r"[^a-z0-9_]")

_CATEGORY_RULES = (
    ("string", re.compile(r"split|join|trim|concat|substring|length|upper|lower")),
    ("collection", re.compile(r"map|filter|reduce|fold|find|sort|reverse|zip")),
    ("file-io", re.compile(r"read|write|file|open|close")),
    ("time", re.compile(r"time|date|duration|now|timestamp")),
    ("result", re.compile(r"result|option|maybe|either|ok|error")),
    ("stream", re.compile(r"stream|iter|lazy|take|drop")),
)


def normalize_name(name: str) -> str:
    """Case-fold and drop ``_``/``-`` so ``to_upper`` and ``toUpper`` compare equal."""
    return name.lower().replace("_", "").replace("-", "")


def levenshtein(left: str, right: str) -> int:
    """Edit distance with unit cost insert, delete and substitute."""
    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)
    if len(left) < len(right):
        left, right = right, left

    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            cost = 0 if left_char == right_char else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def name_similarity(left: str, right: str) -> float:
    """``1 - levenshtein / max_len`` over normalized names, in [0, 1]."""
    return _normalized_similarity(normalize_name(left), normalize_name(right))


def _normalized_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def _within(left: str, right: str, threshold: float) -> bool:
    longest = max(len(left), len(right))
    # the length gap alone bounds the similarity from above
    if longest and 1.0 - abs(len(left) - len(right)) / longest < threshold:
        return False
    return _normalized_similarity(left, right) >= threshold


def _unique_name(name: str, taken: Set[str]) -> str:
    if name not in taken:
        return name
    suffix = 2
    while f"{name}_{suffix}" in taken:
        suffix += 1
    return f"{name}_{suffix}"


def pattern_name(centroid: str) -> str:
    """``Std_String_Split_ex`` -> ``string_split``."""
    name = centroid.lower()
    for prefix in _PREFIXES:
        if name.startswith(prefix):
            name = name[len(prefix) :]
            break
    for suffix in _SUFFIXES:
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    name = _NON_IDENTIFIER.sub("", name.replace("-", "_"))
    return name or "pattern"


def pattern_id(centroid: str) -> str:
    return hashlib.sha1(centroid.encode("utf-8")).hexdigest()[:12]


def categorize(name: str) -> str:
    lowered = name.lower()
    for category, rule in _CATEGORY_RULES:
        if rule.search(lowered):
            return category
    return "other"


def centroid_name(functions: Sequence[FunctionSignature]) -> str:
    """Most frequent name; ties go to the shortest, then the lexically smallest."""
    counts = Counter(func.name for func in functions)
    return min(counts, key=lambda name: (-counts[name], len(name), name))


def average_distance(functions: Sequence[FunctionSignature]) -> float:
    pairs = list(combinations(functions, 2))
    if not pairs:
        return 0.0
    return sum(1.0 - name_similarity(a.name, b.name) for a, b in pairs) / len(pairs)


class PatternMatcher:
    """Groups functions from several libraries into cross-ecosystem patterns."""

    def __init__(
        self,
        config: MatchingConfig | None = None,
        similarity: SimilarityService | None = None,
    ) -> None:
        self.config = config or MatchingConfig()
        self.similarity = similarity
        self.warnings: List[str] = []
        self.logger = get_logger("matcher")
        self._semantic_enabled = similarity is not None

    def find_patterns(self, libraries: Iterable[Library]) -> List[Pattern]:
        ordered = sorted(libraries, key=lambda library: library.ecosystem)
        ecosystems = [library.ecosystem for library in ordered]
        functions = [
            func
            for library in ordered
            for func in library.functions
            if self.config.include_private or func.metadata.get("visibility") != "private"
        ]
        self.logger.debug(
            "Clustering %d functions from %d libraries", len(functions), len(ordered)
        )

        clusters = self.cluster(functions)
        patterns: List[Pattern] = []
        used_names: Set[str] = set()
        for cluster in clusters:
            present = {func.ecosystem for func in cluster.functions}
            if self.config.require_all_libraries and not set(ecosystems) <= present:
                continue
            confidence = self._semantic_confidence(cluster)
            if confidence is not None and confidence < self.config.semantic_similarity_threshold:
                self.logger.debug(
                    "Rejected cluster %s (semantic confidence %.2f)", cluster.centroid_name, confidence
                )
                continue
            pattern = self._to_pattern(cluster, ecosystems, confidence)
            pattern.name = _unique_name(pattern.name, used_names)
            used_names.add(pattern.name)
            patterns.append(pattern)

        self.logger.info(
            "Found %d patterns (%d universal)",
            len(patterns),
            sum(1 for pattern in patterns if pattern.is_universal),
        )
        return patterns

    def cluster(self, functions: Sequence[FunctionSignature]) -> List[Cluster]:
        """Greedy seeding: each unused function seeds a cluster of later look-alikes.

        A candidate joins only when it is within the threshold of every member
        already in the cluster, so all pairs in a cluster satisfy it.
        """
        threshold = self.config.name_similarity_threshold
        normalized = [normalize_name(func.name) for func in functions]
        used = [False] * len(functions)
        clusters: List[Cluster] = []

        for seed_index in range(len(functions)):
            if used[seed_index]:
                continue
            used[seed_index] = True
            member_indices = [seed_index]
            for index in range(seed_index + 1, len(functions)):
                if used[index]:
                    continue
                if all(
                    _within(normalized[member], normalized[index], threshold)
                    for member in member_indices
                ):
                    member_indices.append(index)
                    used[index] = True
            members = [functions[index] for index in member_indices]
            if len(members) < 2:
                continue
            clusters.append(
                Cluster(
                    functions=members,
                    centroid_name=centroid_name(members),
                    avg_distance=average_distance(members),
                )
            )
        return clusters

    def _semantic_confidence(self, cluster: Cluster) -> Optional[float]:
        if not self._semantic_enabled or self.similarity is None:
            return None
        fragments = [_fragment(func) for func in _representatives(cluster).values()]
        try:
            return self.similarity.score(fragments)
        except ExternalServiceError as exc:
            self._semantic_enabled = False
            message = f"Semantic similarity unavailable, continuing with name matching only: {exc}"
            self.logger.warning(message)
            self.warnings.append(message)
            return None

    def _to_pattern(
        self, cluster: Cluster, ecosystems: Sequence[str], confidence: Optional[float]
    ) -> Pattern:
        implementations = _representatives(cluster)
        name = pattern_name(cluster.centroid_name)
        metadata: Dict[str, object] = {
            "centroid": cluster.centroid_name,
            "cluster_size": len(cluster.functions),
            "avg_distance": cluster.avg_distance,
        }
        if confidence is not None:
            metadata["semantic_confidence"] = confidence
        return Pattern(
            id=pattern_id(cluster.centroid_name),
            name=name,
            implementations=implementations,
            similarity_score=min(max(1.0 - cluster.avg_distance, 0.0), 1.0),
            is_universal=all(eco in implementations for eco in ecosystems),
            category=categorize(name),
            metadata=metadata,
        )


def find_patterns(
    libraries: Iterable[Library],
    config: MatchingConfig | None = None,
    similarity: SimilarityService | None = None,
) -> List[Pattern]:
    return PatternMatcher(config, similarity).find_patterns(libraries)


def _representatives(cluster: Cluster) -> Dict[str, FunctionSignature]:
    """One function per ecosystem, preferring the longer docstring."""
    chosen: Dict[str, FunctionSignature] = {}
    for func in cluster.functions:
        current = chosen.get(func.ecosystem)
        if current is None or len(func.docstring) > len(current.docstring):
            chosen[func.ecosystem] = func
    return {eco: chosen[eco] for eco in sorted(chosen)}


def _fragment(func: FunctionSignature) -> str:
    summary = func.docstring.strip().splitlines()[0] if func.docstring.strip() else ""
    rendered = f"[{func.ecosystem}] {format_signature(func)}"
    return f"{rendered}: {summary}" if summary else rendered


__all__ = [
    "PatternMatcher",
    "average_distance",
    "categorize",
    "centroid_name",
    "find_patterns",
    "levenshtein",
    "name_similarity",
    "normalize_name",
    "pattern_id",
    "pattern_name",
]
