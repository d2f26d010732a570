"""Pipeline configuration assembled from a YAML file and environment variables.

:class:`PipelineConfig` is passed explicitly to the pipeline; nothing in the
generation logic reads the environment on its own.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = ["DEFAULT_CONFIG_NAME", "PipelineConfig", "load_config"]

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "config.yaml"
SECONDS_PER_DAY = 24 * 60 * 60

_FALSE_VALUES = {"false", "0", "no", "off"}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() not in _FALSE_VALUES


def _parse_positive_float(value: str) -> float:
    parsed = float(value)
    if parsed <= 0:
        raise ValueError(f"expected a positive number, got {value!r}")
    return parsed


def _parse_positive_int(value: str) -> int:
    parsed = int(value)
    if parsed <= 0:
        raise ValueError(f"expected a positive integer, got {value!r}")
    return parsed


def _parse_unit_float(value: str) -> float:
    parsed = float(value)
    if not 0.0 <= parsed <= 1.0:
        raise ValueError(f"expected a number in [0, 1], got {value!r}")
    return parsed


_ENV_FIELDS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "AI_ENABLED": ("generation_enabled", _parse_bool),
    "AI_ENSEMBLE": ("ensemble_enabled", _parse_bool),
    "AI_MAX_HOURS": ("max_hours", _parse_positive_float),
    "AI_COMPLETENESS_THRESHOLD": ("completeness_threshold", _parse_unit_float),
    "AI_MIN_ACTIVITIES": ("min_activities", _parse_positive_int),
    "AI_MAX_ACTIVITIES": ("max_activities", _parse_positive_int),
    "AI_CACHE_TTL_DAYS": ("cache_ttl_days", _parse_positive_int),
    "REDIS_URL": ("redis_url", str),
    "AI_MODEL": ("model", str),
    "AI_TIMEOUT": ("timeout_seconds", _parse_positive_float),
    "AI_MAX_OUTPUT_TOKENS": ("expand_max_tokens", _parse_positive_int),
    "AI_LOGS_DIR": ("logs_dir", Path),
}


class PipelineConfig(BaseModel):
    """Feature flags, thresholds and endpoints for one pipeline instance.

    Attributes:
        generation_enabled: When *False*, every cache miss returns the fallback preset.
        ensemble_enabled: Two-stage skeleton → expand generation; *False* expands directly.
        max_hours: Hour ceiling enforced by the splitter.
        completeness_threshold: Minimum average completeness for a candidate to be accepted.
        min_activities / max_activities: Activity count bounds for validation.
        cache_ttl_days: Lifetime of cached presets.
        redis_url: Cache endpoint.
        initial_temperature / retry_temperature: Expand temperatures for the first and later attempts.
        max_expand_attempts: Upper bound on expand calls per request.
        logs_dir: Directory for per-run JSON logs (disabled when unset).
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    generation_enabled: bool = True
    ensemble_enabled: bool = True
    max_hours: float = Field(default=8, gt=0)
    completeness_threshold: float = Field(default=0.65, ge=0, le=1)
    min_activities: int = Field(default=5, ge=1)
    max_activities: int = Field(default=20, ge=1)
    cache_ttl_days: int = Field(default=7, ge=1)
    redis_url: str = "redis://localhost:6379"
    cache_connect_timeout: float = Field(default=5.0, gt=0)
    cache_max_retries: int = Field(default=3, ge=0)
    initial_temperature: float = Field(default=0.6, ge=0, le=2)
    retry_temperature: float = Field(default=0.8, ge=0, le=2)
    max_expand_attempts: int = Field(default=2, ge=1)
    model: str = "gpt-4o-mini"
    timeout_seconds: float = Field(default=50.0, gt=0)
    skeleton_max_tokens: int = Field(default=2048, gt=0)
    expand_max_tokens: int = Field(default=8192, gt=0)
    logs_dir: Optional[Path] = None

    @model_validator(mode="after")
    def _check_activity_bounds(self) -> "PipelineConfig":
        if self.min_activities > self.max_activities:
            raise ValueError("min_activities must not exceed max_activities")
        return self

    @property
    def cache_ttl_seconds(self) -> int:
        return self.cache_ttl_days * SECONDS_PER_DAY

    def expand_temperature(self, attempt: int) -> float:
        """Temperature for the ``attempt``-th (1-based) expand call."""
        return self.initial_temperature if attempt <= 1 else self.retry_temperature

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any] | None) -> "PipelineConfig":
        """Build from the ``pipeline`` section of a parsed configuration file."""
        section: Any = (config or {}).get("pipeline", {})
        if not isinstance(section, Mapping):
            section = {}
        return cls.model_validate(dict(section))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PipelineConfig":
        """Build from environment variables alone."""
        return cls().with_env_overrides(environ)

    def with_env_overrides(self, environ: Mapping[str, str] | None = None) -> "PipelineConfig":
        """Return a copy where environment variables replace configured values.

        Unparseable values are logged and ignored so a typo never disables the service.
        """
        env = os.environ if environ is None else environ
        updates: dict[str, Any] = {}
        for variable, (field_name, parser) in _ENV_FIELDS.items():
            raw = env.get(variable)
            if raw is None or not str(raw).strip():
                continue
            try:
                updates[field_name] = parser(str(raw).strip())
            except ValueError as error:
                LOGGER.warning("Ignoring %s=%r: %s", variable, raw, error)
        if not updates:
            return self
        merged = self.model_dump()
        merged.update(updates)
        return type(self).model_validate(merged)


def load_config(
    path: Path | str | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> PipelineConfig:
    """Load ``config.yaml`` (when present) and apply environment overrides."""
    data: dict[str, Any] = {}
    config_path = Path(path) if path is not None else Path(DEFAULT_CONFIG_NAME)
    if config_path.is_file():
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, Mapping):
            raise ValueError(f"Configuration file {config_path} must contain a mapping.")
        data = dict(loaded)
    elif path is not None:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    return PipelineConfig.from_mapping(data).with_env_overrides(environ)
