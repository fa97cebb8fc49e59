"""Configuration loading and management for Security Marker.

Configuration sources are merged in priority order:
    1. Defaults (defined in MarkerConfig)
    2. Global config (~/.security-marker.toml)
    3. Project config (<project>/security-marker.toml)
    4. Explicit config file
    5. Environment variables (SECURITY_MARKER_* prefix)
    6. Keyword overrides (typically CLI flags)

Example:
    >>> config = load_config(metric="LOC", verbose=True)
    >>> config.metric_kind.label
    'Lines of Code'
    >>> config.verbosity
    'verbose'
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError
from .models import MetricKind

Verbosity = Literal["quiet", "normal", "verbose"]
Strategy = Literal["quantile", "uniform"]

ENV_PREFIX = "SECURITY_MARKER_"
PROJECT_CONFIG_NAME = "security-marker.toml"
GLOBAL_CONFIG_NAME = ".security-marker.toml"


@dataclass(frozen=True)
class MarkerConfig:
    """Settings consulted by the explanation pipeline.

    Attributes:
        Classification:
            metric: Active metric id (CC, LOC, LCOM), process-wide
            bins: Number of severity bands (3 or 5)
            classification_strategy: "quantile" (equal-frequency) or "uniform"
            show_low_level_explanations: Generate explanations for LOW methods

        Scheduling:
            auto_refresh: React to source-change signals
            save_debounce_seconds: Window collapsing bursts of save events
            recompute_delay_seconds: Delay before a triggered recompute runs
            miss_recompute_delay: Delay before a cache-miss recompute runs

        Storage:
            cache_dir: Durable cache directory, relative to the project root

        Generation service:
            llm_model, llm_base_url, llm_api_key, llm_temperature,
            llm_timeout_seconds, llm_max_retries, pricing_discount

        Output:
            verbosity: Logging verbosity level
    """

    # Classification
    metric: str = MetricKind.COMPLEXITY.metric_id
    bins: int = 3
    classification_strategy: Strategy = "quantile"
    show_low_level_explanations: bool = False

    # Scheduling
    auto_refresh: bool = True
    save_debounce_seconds: float = 2.0
    recompute_delay_seconds: float = 30.0
    miss_recompute_delay: float = 30.0

    # Storage
    cache_dir: str = ".security-marker/cache"

    # Generation service
    llm_model: str = "gpt-4o"
    llm_base_url: Optional[str] = None
    llm_api_key: Optional[str] = None
    llm_temperature: float = 0.2
    llm_timeout_seconds: int = 60
    llm_max_retries: int = 2
    pricing_discount: float = 0.11

    # Output
    verbosity: Verbosity = "normal"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not MetricKind.is_known(self.metric):
            raise InvalidConfigError(
                "metric", self.metric, f"expected one of {[k.metric_id for k in MetricKind]}"
            )
        if self.bins not in (3, 5):
            raise InvalidConfigError("bins", self.bins, "only 3 or 5 severity bands are supported")
        if self.classification_strategy not in ("quantile", "uniform"):
            raise InvalidConfigError(
                "classification_strategy", self.classification_strategy,
                "expected 'quantile' or 'uniform'",
            )

        for name in ("save_debounce_seconds", "recompute_delay_seconds", "miss_recompute_delay"):
            if getattr(self, name) < 0:
                raise InvalidConfigError(name, getattr(self, name), "must be non-negative")

        if not 0.0 <= self.llm_temperature <= 2.0:
            raise InvalidConfigError("llm_temperature", self.llm_temperature, "must be in [0, 2]")
        if self.llm_timeout_seconds < 1:
            raise InvalidConfigError("llm_timeout_seconds", self.llm_timeout_seconds, "must be at least 1")
        if self.llm_max_retries < 0:
            raise InvalidConfigError("llm_max_retries", self.llm_max_retries, "must be non-negative")
        if not 0.0 <= self.pricing_discount < 1.0:
            raise InvalidConfigError("pricing_discount", self.pricing_discount, "must be in [0, 1)")
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError("verbosity", self.verbosity, "expected quiet, normal or verbose")

    @property
    def metric_kind(self) -> MetricKind:
        return MetricKind.from_id(self.metric)

    def cache_path(self, project_root: Path) -> Path:
        """Resolve the cache directory against a project root."""
        path = Path(self.cache_dir).expanduser()
        if path.is_absolute():
            return path
        return Path(project_root) / path

    def resolved_api_key(self) -> Optional[str]:
        """API key from config, then SECURITY_MARKER_API_KEY, then OPENAI_API_KEY."""
        return (
            self.llm_api_key
            or os.environ.get(f"{ENV_PREFIX}API_KEY")
            or os.environ.get("OPENAI_API_KEY")
        )


def load_config(
    config_file: Optional[Path] = None,
    project_root: Optional[Path] = None,
    **overrides: Any,
) -> MarkerConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        project_root: Directory searched for security-marker.toml (default: cwd)
        **overrides: Direct overrides (typically from CLI flags); None values are ignored

    Returns:
        Validated MarkerConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing
    """
    merged: dict[str, Any] = {}

    global_config = Path.home() / GLOBAL_CONFIG_NAME
    if global_config.exists():
        merged.update(_load_section(global_config))

    project_config = Path(project_root or Path.cwd()) / PROJECT_CONFIG_NAME
    if project_config.exists():
        merged.update(_load_section(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        merged.update(_load_section(config_file))

    merged.update(_load_env_vars())

    if overrides.pop("verbose", False):
        overrides["verbosity"] = "verbose"
    if overrides.pop("quiet", False):
        overrides["verbosity"] = "quiet"

    merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return MarkerConfig(**merged)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def _load_section(path: Path) -> dict[str, Any]:
    """Load a TOML file; settings may sit at top level or under [security-marker]."""
    try:
        data = _load_toml_file(path)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Invalid config file '{path}': {e}")
    section = data.get("security-marker", data)
    if not isinstance(section, dict):
        raise ConfigurationError(f"Invalid config file '{path}': [security-marker] must be a table")
    return dict(section)


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from SECURITY_MARKER_* environment variables.

    SECURITY_MARKER_API_KEY is read lazily by MarkerConfig.resolved_api_key.
    """
    type_hints = get_type_hints(MarkerConfig)
    result: dict[str, Any] = {}

    for field_name in MarkerConfig.__dataclass_fields__:
        env_key = f"{ENV_PREFIX}{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise ConfigurationError(f"Invalid {env_key}: {e}")
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse environment variable string to the correct type."""
    origin = getattr(type_hint, "__origin__", None)

    args = getattr(type_hint, "__args__", ())
    if type(None) in args:
        non_none_types = [t for t in args if t is not type(None)]
        if non_none_types:
            type_hint = non_none_types[0]
            origin = getattr(type_hint, "__origin__", None)

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        if lower in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict."""
    try:
        import tomllib
    except ModuleNotFoundError:
        try:
            import tomli as tomllib  # type: ignore
        except ImportError:
            raise ConfigurationError(
                "TOML support requires Python 3.11+ or 'tomli' package. "
                "Install with: pip install tomli"
            )

    with open(path, "rb") as f:
        return tomllib.load(f)
