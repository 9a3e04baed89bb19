"""Configuration dataclasses for the pharma-assurance engine.

Each config is a frozen ``dataclass`` with a ``validate()`` method that
raises ``ConfigurationError`` (a ``ValueError``) on invalid combinations.
Configs are immutable for the duration of a request and hashable, so they
can take part in cache keys.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

from pharma_assurance.domain.exceptions import ConfigurationError


# ===================================================================== #
#  Engine Configuration                                                  #
# ===================================================================== #

@dataclass(frozen=True)
class EngineConfig:
    """Parameters governing one orchestrated research request.

    Attributes
    ----------
    quality_threshold:
        Acceptance threshold in [0, 1].  Used as-is when
        ``use_selected_threshold`` is ``False``; otherwise the parameter
        selector's context-specific threshold wins.
    max_retry_attempts:
        Maximum generation calls per request.
    timeout_seconds:
        Per-call timeout for generation and scoring.
    min_source_count:
        Minimum valid sources a candidate must cite.
    inter_attempt_delay:
        Seconds to wait before each retry.
    enable_caching:
        Serve repeated requests from the result cache.
    cache_ttl_seconds:
        Lifetime of a cached result.
    use_selected_threshold:
        Prefer the selector's threshold over ``quality_threshold``.
    enforce_cost_ceiling:
        Stop before an attempt that would exceed the request's cost ceiling.
    """

    quality_threshold: float = 0.85
    max_retry_attempts: int = 3
    timeout_seconds: float = 180.0
    min_source_count: int = 3
    inter_attempt_delay: float = 2.0
    enable_caching: bool = True
    cache_ttl_seconds: float = 86_400.0
    use_selected_threshold: bool = True
    enforce_cost_ceiling: bool = True

    def validate(self) -> None:
        """Raise ``ConfigurationError`` if any field is out of valid range."""
        if not (0.0 <= self.quality_threshold <= 1.0):
            raise ConfigurationError(
                f"quality_threshold must be in [0, 1], got {self.quality_threshold}",
                setting="quality_threshold",
            )
        if self.max_retry_attempts < 1:
            raise ConfigurationError(
                f"max_retry_attempts must be >= 1, got {self.max_retry_attempts}",
                setting="max_retry_attempts",
            )
        if self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"timeout_seconds must be > 0, got {self.timeout_seconds}",
                setting="timeout_seconds",
            )
        if self.min_source_count < 0:
            raise ConfigurationError(
                f"min_source_count must be >= 0, got {self.min_source_count}",
                setting="min_source_count",
            )
        if self.inter_attempt_delay < 0:
            raise ConfigurationError(
                f"inter_attempt_delay must be >= 0, got {self.inter_attempt_delay}",
                setting="inter_attempt_delay",
            )
        if self.cache_ttl_seconds <= 0:
            raise ConfigurationError(
                f"cache_ttl_seconds must be > 0, got {self.cache_ttl_seconds}",
                setting="cache_ttl_seconds",
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EngineConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Deep Validation Configuration                                         #
# ===================================================================== #

@dataclass(frozen=True)
class DeepValidationConfig:
    """Parameters for itemized (deal) validation.

    Attributes
    ----------
    max_retry_attempts:
        Research-and-validate attempts before giving up.
    validation_threshold:
        Base acceptance threshold in [0, 1]; an attempt's average deal
        score (0-100) is compared against ``validation_threshold * 100``.
    min_source_count:
        Deals citing fewer sources are discarded before any scoring.
    min_accepted_deals:
        Accepted deals an attempt needs to stop early.
    source_pass_ratio:
        Fraction of a deal's sources that must validate individually.
    source_validation_bonus / cross_verification_bonus:
        Points added to a deal's score when the check passes (cap 100).
    enable_deep_source_validation / enable_cross_verification /
    enable_population_enrichment:
        Toggle the post-acceptance stages.
    inter_attempt_delay:
        Seconds to wait before each retry.
    """

    max_retry_attempts: int = 5
    validation_threshold: float = 0.85
    min_source_count: int = 3
    min_accepted_deals: int = 2
    source_pass_ratio: float = 0.8
    source_validation_bonus: float = 5.0
    cross_verification_bonus: float = 3.0
    enable_deep_source_validation: bool = True
    enable_cross_verification: bool = True
    enable_population_enrichment: bool = True
    inter_attempt_delay: float = 2.0

    def validate(self) -> None:
        if self.max_retry_attempts < 1:
            raise ConfigurationError(
                f"max_retry_attempts must be >= 1, got {self.max_retry_attempts}",
                setting="max_retry_attempts",
            )
        if not (0.0 <= self.validation_threshold <= 1.0):
            raise ConfigurationError(
                f"validation_threshold must be in [0, 1], got {self.validation_threshold}",
                setting="validation_threshold",
            )
        if self.min_source_count < 1:
            raise ConfigurationError(
                f"min_source_count must be >= 1, got {self.min_source_count}",
                setting="min_source_count",
            )
        if self.min_accepted_deals < 1:
            raise ConfigurationError(
                f"min_accepted_deals must be >= 1, got {self.min_accepted_deals}",
                setting="min_accepted_deals",
            )
        if not (0.0 < self.source_pass_ratio <= 1.0):
            raise ConfigurationError(
                f"source_pass_ratio must be in (0, 1], got {self.source_pass_ratio}",
                setting="source_pass_ratio",
            )
        if self.source_validation_bonus < 0 or self.cross_verification_bonus < 0:
            raise ConfigurationError("bonuses must be >= 0", setting="bonus")
        if self.inter_attempt_delay < 0:
            raise ConfigurationError(
                f"inter_attempt_delay must be >= 0, got {self.inter_attempt_delay}",
                setting="inter_attempt_delay",
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DeepValidationConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Loaders                                                               #
# ===================================================================== #

_CONFIG_MAP: dict[str, type] = {
    "engine": EngineConfig,
    "deep_validation": DeepValidationConfig,
}

# env var -> (field, converter)
_ENV_VARS: dict[str, tuple[str, Any]] = {
    "QUALITY_THRESHOLD_SCORE": ("quality_threshold", float),
    "MAX_RETRY_ATTEMPTS": ("max_retry_attempts", int),
    "DEEP_RESEARCH_TIMEOUT": ("timeout_seconds", lambda v: float(v) / 1000.0),
    "MIN_SOURCE_COUNT": ("min_source_count", int),
    "RATE_LIMIT_DELAY_MS": ("inter_attempt_delay", lambda v: float(v) / 1000.0),
}


def load_config_from_env(
    environ: Mapping[str, str] | None = None,
    base: EngineConfig | None = None,
) -> EngineConfig:
    """Build an ``EngineConfig`` from environment variables.

    Recognized variables: ``QUALITY_THRESHOLD_SCORE`` (0-1),
    ``MAX_RETRY_ATTEMPTS``, ``DEEP_RESEARCH_TIMEOUT`` (milliseconds),
    ``MIN_SOURCE_COUNT`` and ``RATE_LIMIT_DELAY_MS``.  Unset variables keep
    the value from *base* (or the defaults).
    """
    env = os.environ if environ is None else environ
    changes: dict[str, Any] = {}
    for var, (name, convert) in _ENV_VARS.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            changes[name] = convert(raw)
        except ValueError as exc:
            raise ConfigurationError(
                f"{var} must be numeric, got {raw!r}", setting=var
            ) from exc
    cfg = replace(base or EngineConfig(), **changes)
    cfg.validate()
    return cfg


def load_config_from_json(json_str: str) -> dict[str, Any]:
    """Parse a JSON string into a dict of typed config objects.

    The JSON is expected to be an object whose top-level keys correspond to
    config section names (``engine``, ``deep_validation``).  Unknown
    sections are preserved as raw dicts.
    """
    try:
        raw = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Config is not valid JSON: {exc.msg}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError("Top-level JSON must be an object")
    result: dict[str, Any] = {}
    for section, data in raw.items():
        cls = _CONFIG_MAP.get(section)
        if cls is not None and isinstance(data, dict):
            result[section] = cls.from_dict(data)
        else:
            result[section] = data
    return result
