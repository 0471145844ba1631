"""Configuration loading for stdlib-merger (YAML)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .ecosystems import known_ecosystems
from .models import CRITERIA_NAMES

DEFAULT_WEIGHTS: Dict[str, float] = {
    "clarity": 0.2,
    "performance": 0.15,
    "error_handling": 0.25,
    "text_support": 0.15,
    "safety": 0.15,
    "composability": 0.1,
}

_CRITERIA_ALIASES = {
    "api_clarity": "clarity",
    "unicode_support": "text_support",
    "memory_safety": "safety",
}

_PROVIDERS = {"openai", "anthropic"}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed or validated."""


@dataclass
class MatchingConfig:
    """Thresholds for the pattern matcher."""

    name_similarity_threshold: float = 0.8
    semantic_similarity_threshold: float = 0.7
    require_all_libraries: bool = True
    include_private: bool = False


@dataclass
class ExtractionConfig:
    """How unified modules are emitted."""

    target_ecosystem: str = "python"
    normalize_api: bool = False
    add_docstrings: bool = True
    preserve_comments: bool = True
    llm_translation: bool = False
    spdx_header: Optional[str] = None


@dataclass
class LLMConfig:
    """External model used for semantic similarity and optional translation."""

    provider: str = "openai"
    model: Optional[str] = None
    api_key_env: str = "STDLIB_MERGER_API_KEY"
    base_url: Optional[str] = None
    max_retries: int = 3
    timeout_seconds: float = 30.0
    temperature: float = 0.0
    max_tokens: Optional[int] = None


@dataclass
class OutputConfig:
    generate_reports: bool = True


@dataclass
class PerformanceConfig:
    parallel: bool = True
    cache_dir: Optional[Path] = None
    max_workers: Optional[int] = None


@dataclass
class MergerConfig:
    """Represents the settings defined in a stdlib-merger YAML file."""

    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    llm: Optional[LLMConfig] = None
    output: OutputConfig = field(default_factory=OutputConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    source: Optional[Path] = None


def load_config(config_path: Optional[Path] = None) -> MergerConfig:
    """Load configuration from disk; a missing file yields the defaults."""
    if config_path is None:
        return MergerConfig()
    config_file = config_path.expanduser().resolve()
    if not config_file.exists():
        return MergerConfig(source=config_file)

    data = _read_config(config_file)
    config = parse_config(data, base_dir=config_file.parent)
    config.source = config_file
    return config


def parse_config(data: Any, base_dir: Optional[Path] = None) -> MergerConfig:
    """Build a validated :class:`MergerConfig` from an already-loaded mapping."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("configuration must contain a mapping at the root")

    config = MergerConfig()
    config.weights = _parse_weights(_as_dict(data.get("quality_criteria"), "quality_criteria"))

    matching_data = _as_dict(data.get("matching"), "matching")
    config.matching = MatchingConfig(
        name_similarity_threshold=_unit_interval(
            matching_data.get("name_similarity_threshold"), "matching.name_similarity_threshold", 0.8
        ),
        semantic_similarity_threshold=_unit_interval(
            matching_data.get("semantic_similarity_threshold"),
            "matching.semantic_similarity_threshold",
            0.7,
        ),
        require_all_libraries=_as_bool(
            _first(matching_data, "require_all_libraries", "require_all_stlibs"), True
        ),
        include_private=_as_bool(matching_data.get("include_private"), False),
    )

    extraction_data = _as_dict(data.get("extraction"), "extraction")
    target = _as_str(_first(extraction_data, "target_ecosystem", "target_language")) or "python"
    target = target.strip().lower()
    if target not in known_ecosystems():
        raise ConfigError(
            f"extraction.target_ecosystem '{target}' is not supported "
            f"(available: {', '.join(known_ecosystems())})"
        )
    config.extraction = ExtractionConfig(
        target_ecosystem=target,
        normalize_api=_as_bool(extraction_data.get("normalize_api"), False),
        add_docstrings=_as_bool(extraction_data.get("add_docstrings"), True),
        preserve_comments=_as_bool(extraction_data.get("preserve_comments"), True),
        llm_translation=_as_bool(extraction_data.get("llm_translation"), False),
        spdx_header=_as_str(extraction_data.get("spdx_header")),
    )

    llm_data = _as_dict(data.get("llm"), "llm")
    if llm_data:
        provider = (_as_str(llm_data.get("provider")) or "openai").lower()
        if provider not in _PROVIDERS:
            raise ConfigError(f"llm.provider must be one of {', '.join(sorted(_PROVIDERS))}")
        config.llm = LLMConfig(
            provider=provider,
            model=_as_str(llm_data.get("model")),
            api_key_env=_as_str(llm_data.get("api_key_env")) or "STDLIB_MERGER_API_KEY",
            base_url=_as_str(llm_data.get("base_url")),
            max_retries=_non_negative_int(llm_data.get("max_retries"), "llm.max_retries", 3),
            timeout_seconds=_positive_float(
                llm_data.get("timeout_seconds"), "llm.timeout_seconds", 30.0
            ),
            temperature=_as_float(llm_data.get("temperature"), "llm.temperature", 0.0),
            max_tokens=_optional_int(llm_data.get("max_tokens"), "llm.max_tokens"),
        )

    output_data = _as_dict(data.get("output"), "output")
    config.output = OutputConfig(
        generate_reports=_as_bool(output_data.get("generate_reports"), True)
    )

    performance_data = _as_dict(data.get("performance"), "performance")
    cache_dir = _as_str(performance_data.get("cache_dir"))
    cache_path: Optional[Path] = None
    if cache_dir:
        cache_path = Path(cache_dir).expanduser()
        if not cache_path.is_absolute() and base_dir is not None:
            cache_path = base_dir / cache_path
    config.performance = PerformanceConfig(
        parallel=_as_bool(performance_data.get("parallel"), True),
        cache_dir=cache_path,
        max_workers=_optional_int(performance_data.get("max_workers"), "performance.max_workers"),
    )
    return config


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc


def _parse_weights(section: Dict[str, Any]) -> Dict[str, float]:
    weights = dict(DEFAULT_WEIGHTS)
    for raw_key, raw_value in section.items():
        key = _CRITERIA_ALIASES.get(str(raw_key), str(raw_key))
        if key not in CRITERIA_NAMES:
            raise ConfigError(f"Unknown quality criterion: {raw_key}")
        value = raw_value.get("weight") if isinstance(raw_value, dict) else raw_value
        weights[key] = _unit_interval(value, f"quality_criteria.{raw_key}.weight", weights[key])
    return weights


def _first(section: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in section:
            return section[key]
    return None


def _as_dict(value: Any, name: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return value


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1", "on"}:
            return True
        if lowered in {"false", "no", "0", "off"}:
            return False
    raise ConfigError(f"Expected a boolean, got {value!r}")


def _as_float(value: Any, name: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def _unit_interval(value: Any, name: str, default: float) -> float:
    number = _as_float(value, name, default)
    if not 0.0 <= number <= 1.0:
        raise ConfigError(f"{name} must be within [0, 1], got {number}")
    return number


def _positive_float(value: Any, name: str, default: float) -> float:
    number = _as_float(value, name, default)
    if number <= 0:
        raise ConfigError(f"{name} must be positive, got {number}")
    return number


def _optional_int(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigError(f"{name} must be an integer")
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _non_negative_int(value: Any, name: str, default: int) -> int:
    number = _optional_int(value, name)
    if number is None:
        return default
    if number < 0:
        raise ConfigError(f"{name} must not be negative")
    return number


__all__ = [
    "ConfigError",
    "DEFAULT_WEIGHTS",
    "ExtractionConfig",
    "LLMConfig",
    "MatchingConfig",
    "MergerConfig",
    "OutputConfig",
    "PerformanceConfig",
    "load_config",
    "parse_config",
]
