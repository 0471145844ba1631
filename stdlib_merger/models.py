"""Core data models shared across stdlib-merger components."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

_RESULT_NAMES = {"result", "either"}
_OPTIONAL_NAMES = {"maybe", "option", "optional"}
_NIL_NAMES = {"nil", "none", "nothing"}
_VOID_NAMES = {"unit", "void", "none", "nil", "()", "nothing", "noreturn", "never"}
_ELIXIR_OK_TUPLE = re.compile(r"\{\s*:ok\b")
_ELIXIR_ERROR = re.compile(r"(\{\s*:error\b|(^|\|)\s*:error\s*($|\|))")
_CLOSERS = {"<": ">", "[": "]", "(": ")", "{": "}"}


@dataclass(frozen=True)
class SourceLocation:
    """Position of an extracted entity inside its source file."""

    file: str
    line: int
    column: int = 1
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    def __post_init__(self) -> None:
        if self.end_line is None:
            object.__setattr__(self, "end_line", self.line)
        if self.end_column is None:
            object.__setattr__(self, "end_column", self.column)

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass(frozen=True)
class TypeRef:
    """A type name with optional generic parameters, compared structurally."""

    name: str
    params: Tuple["TypeRef", ...] = ()

    @classmethod
    def parse(cls, text: str) -> "TypeRef":
        """Parse annotations such as ``List<String>``, ``list[str]`` or ``Map.t()``."""
        cleaned = " ".join(text.split())
        if not cleaned:
            return UNKNOWN_TYPE
        opener = _find_generic_opener(cleaned)
        if opener is not None:
            index, open_char = opener
            name = cleaned[:index].strip()
            if name and cleaned.endswith(_CLOSERS[open_char]):
                inner = cleaned[index + 1 : -1]
                params = tuple(cls.parse(part) for part in _split_top_level(inner) if part.strip())
                return cls(name, params)
        if cleaned.endswith("()") and len(cleaned) > 2:
            cleaned = cleaned[:-2]
        return cls(cleaned)

    @property
    def base_name(self) -> str:
        """Return the last path segment (``io::Result`` -> ``Result``)."""
        return re.split(r"::|\.", self.name)[-1]

    def __str__(self) -> str:
        if not self.params:
            return self.name
        return f"{self.name}<{', '.join(str(param) for param in self.params)}>"


UNKNOWN_TYPE = TypeRef("unknown")


@dataclass
class Parameter:
    """Function parameter with an optional opaque default expression."""

    name: str
    type: TypeRef = UNKNOWN_TYPE
    default: Optional[str] = None

    def __str__(self) -> str:
        rendered = f"{self.name}: {self.type}"
        if self.default is not None:
            rendered += f" = {self.default}"
        return rendered


@dataclass
class FunctionSignature:
    """Function signature extracted from a library source file."""

    name: str
    module_path: str
    params: List[Parameter] = field(default_factory=list)
    return_type: TypeRef = UNKNOWN_TYPE
    docstring: str = ""
    examples: List[str] = field(default_factory=list)
    source_location: SourceLocation = field(default_factory=lambda: SourceLocation("", 0, 0))
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def ecosystem(self) -> str:
        return str(self.metadata.get("ecosystem", ""))

    @property
    def body(self) -> Optional[str]:
        body = self.metadata.get("body")
        return body if isinstance(body, str) and body.strip() else None

    def __str__(self) -> str:
        return format_signature(self)


@dataclass
class Module:
    """A source module and the functions it declares."""

    name: str
    path: str
    functions: List[FunctionSignature] = field(default_factory=list)
    submodules: List["Module"] = field(default_factory=list)
    docstring: str = ""
    source_location: SourceLocation = field(default_factory=lambda: SourceLocation("", 0, 0))

    def walk(self) -> Iterator["Module"]:
        yield self
        for submodule in self.submodules:
            yield from submodule.walk()


@dataclass
class Library:
    """A parsed standard library for one ecosystem."""

    ecosystem: str
    root: str
    modules: Dict[str, Module] = field(default_factory=dict)
    functions: List[FunctionSignature] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def warnings(self) -> List[str]:
        return list(self.metadata.get("warnings", []))


@dataclass
class Cluster:
    """Working group of name-similar functions prior to pattern creation."""

    functions: List[FunctionSignature]
    centroid_name: str
    avg_distance: float


@dataclass
class Pattern:
    """A cross-ecosystem equivalence class of functions."""

    id: str
    name: str
    implementations: Dict[str, FunctionSignature]
    similarity_score: float
    is_universal: bool = False
    category: str = "other"
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return (
            f"Pattern({self.name}, {len(self.implementations)} impls, "
            f"score={self.similarity_score:.2f})"
        )


Scorer = Callable[[FunctionSignature], float]

CRITERIA_NAMES = (
    "clarity",
    "performance",
    "error_handling",
    "text_support",
    "safety",
    "composability",
)


@dataclass
class Criterion:
    """A weighted scoring function over a single implementation."""

    weight: float
    scorer: Scorer


@dataclass
class QualityCriteria:
    """The fixed set of criteria used by the ranker. Weights need not sum to 1."""

    clarity: Criterion
    performance: Criterion
    error_handling: Criterion
    text_support: Criterion
    safety: Criterion
    composability: Criterion

    def items(self) -> List[Tuple[str, Criterion]]:
        return [(name, getattr(self, name)) for name in CRITERIA_NAMES]

    @property
    def total_weight(self) -> float:
        return sum(criterion.weight for _, criterion in self.items())


@dataclass
class Ranking:
    """Scored comparison of a pattern's implementations with a selected winner."""

    pattern: Pattern
    scores: Dict[str, float]
    best_ecosystem: str
    best_implementation: FunctionSignature
    justification: str
    criterion_scores: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def ordered_ecosystems(self) -> List[str]:
        """Ecosystems by descending score, ties kept in iteration order."""
        return sorted(self.scores, key=lambda eco: -self.scores[eco])

    def __str__(self) -> str:
        return f"Ranking({self.pattern.name}, best={self.best_ecosystem})"


@dataclass
class Translation:
    """Code carried from the winning ecosystem into the target ecosystem."""

    source_ecosystem: str
    target_ecosystem: str
    source_code: str
    target_code: str
    confidence: float
    warnings: List[str] = field(default_factory=list)


@dataclass
class ExtractedModule:
    """Unified-library module generated for a single pattern."""

    pattern: Pattern
    ranking: Ranking
    translation: Optional[Translation]
    output_path: str
    code: str
    placeholder: bool = False
    function_name: str = ""

    @property
    def line_count(self) -> int:
        return len(self.code.splitlines())


@dataclass
class StrippedLibrary:
    """Original library with the extracted functions marked for removal."""

    original: Library
    removed_functions: List[FunctionSignature]
    added_references: List[str]
    output_path: str
    rewritten: bool = False
    rewritten_files: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class MergeResult:
    """Everything produced by one pipeline run."""

    patterns: List[Pattern]
    rankings: List[Ranking]
    extracted_modules: List[ExtractedModule]
    stripped_libraries: List[StrippedLibrary]
    reports: Dict[str, str] = field(default_factory=dict)
    statistics: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


def format_signature(func: FunctionSignature) -> str:
    """Render ``name(a: T, b: U) -> R``."""
    params = ", ".join(f"{param.name}: {param.type}" for param in func.params)
    return f"{func.name}({params}) -> {func.return_type}"


def full_name(func: FunctionSignature) -> str:
    return f"{func.module_path}.{func.name}" if func.module_path else func.name


def is_result_type(type_ref: TypeRef) -> bool:
    """True for Result/Either shaped types, including Elixir ``{:ok, _} | {:error, _}``."""
    if type_ref.base_name.lower() in _RESULT_NAMES:
        return True
    return bool(_ELIXIR_OK_TUPLE.search(type_ref.name) and _ELIXIR_ERROR.search(type_ref.name))


def is_optional_type(type_ref: TypeRef) -> bool:
    """True for Maybe/Option shaped types and unions with nil/None.

    A bare ``None``/``nil`` return is void, not optional.
    """
    if is_void_type(type_ref):
        return False
    base = type_ref.base_name.lower()
    if base in _OPTIONAL_NAMES:
        return True
    if base == "union" and any(param.name.lower() in _NIL_NAMES for param in type_ref.params):
        return True
    if "|" in type_ref.name and not is_result_type(type_ref):
        members = {part.strip().lower() for part in type_ref.name.split("|")}
        return bool(members & _NIL_NAMES)
    return False


def is_void_type(type_ref: TypeRef) -> bool:
    return type_ref.name.strip().lower() in _VOID_NAMES


def _find_generic_opener(text: str) -> Optional[Tuple[int, str]]:
    depth = 0
    for index, char in enumerate(text):
        if char in "({":
            depth += 1
        elif char in ")}":
            depth -= 1
        elif depth == 0 and char in "<[":
            return index, char
    return None


def _split_top_level(text: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for char in text:
        if char in "<[({":
            depth += 1
        elif char in ">])}":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    if current:
        parts.append("".join(current).strip())
    return parts


__all__ = [
    "CRITERIA_NAMES",
    "Criterion",
    "QualityCriteria",
    "Cluster",
    "ExtractedModule",
    "FunctionSignature",
    "Library",
    "MergeResult",
    "Module",
    "Parameter",
    "Pattern",
    "Ranking",
    "SourceLocation",
    "StrippedLibrary",
    "Translation",
    "TypeRef",
    "UNKNOWN_TYPE",
    "format_signature",
    "full_name",
    "is_optional_type",
    "is_result_type",
    "is_void_type",
]
