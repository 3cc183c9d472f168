"""
Core configuration for the advisory response pipeline.

Centralises the tunable knobs for concurrency, timeouts, caching and retry
timings so magic numbers do not spread through the services. Values can be
overridden via env vars (a local ``.env`` file is honoured) to balance
cost/latency per environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from advisory_board.utils.error_handling import ConfigurationError, ErrorKind
from advisory_board.utils.retry import calculate_exponential_backoff

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


# ────────────────────────────────────────────────────────────
#  Orchestration defaults (env-overridable)
# ────────────────────────────────────────────────────────────
MAX_CONCURRENT_REQUESTS = _env_int("ADVISOR_MAX_CONCURRENT", 5)
RESPONSE_TIMEOUT_SEC = _env_float("ADVISOR_RESPONSE_TIMEOUT", 15.0)
ENABLE_CACHING = _env_bool("ADVISOR_ENABLE_CACHING", True)
FALLBACK_TO_STATIC = _env_bool("ADVISOR_FALLBACK_TO_STATIC", True)
RESULT_CACHE_TTL_SEC = _env_float("ADVISOR_RESULT_CACHE_TTL", 600.0)
RESULT_CACHE_MAX_ENTRIES = 100

# Fallback cache sizing
FALLBACK_CACHE_MAX_ENTRIES = _env_int("ADVISOR_FALLBACK_CACHE_MAX", 1000)
FALLBACK_CACHE_LOW_WATERMARK = _env_int("ADVISOR_FALLBACK_CACHE_TRIM_TO", 800)
FALLBACK_CACHE_TTL_SEC = _env_float("ADVISOR_FALLBACK_CACHE_TTL", 30 * 60.0)
EMERGENCY_CACHE_TTL_SEC = 24 * 60 * 60.0

# Stale recovery bookkeeping
RECOVERY_STALE_AFTER_SEC = 5 * 60.0

# ────────────────────────────────────────────────────────────
#  Model client defaults
# ────────────────────────────────────────────────────────────
DEFAULT_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 800
LLM_TIMEOUT_SEC = _env_float("LLM_TIMEOUT_SEC", 30.0)

# Board ids recognised by the catalog, analyzer and prompt builder
DOMAIN_IDS: Tuple[str, ...] = ("productboard", "cliniboard", "eduboard", "remediboard")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry timings for one error kind.

    ``max_retries`` counts total attempts including the first call; delays
    are in seconds.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    backoff_multiplier: float = 2.0
    retryable: FrozenSet[ErrorKind] = field(default_factory=frozenset)

    def delay_for(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (1-based)."""
        if retry_number < 1:
            return 0.0
        return calculate_exponential_backoff(
            retry_number,
            base_delay=self.base_delay,
            factor=self.backoff_multiplier,
            max_delay=self.max_delay,
        )

    def allows(self, kind: ErrorKind) -> bool:
        return kind in self.retryable


@dataclass
class OrchestratorConfig:
    max_concurrent_requests: int = MAX_CONCURRENT_REQUESTS
    response_timeout: float = RESPONSE_TIMEOUT_SEC
    enable_caching: bool = ENABLE_CACHING
    fallback_to_static: bool = FALLBACK_TO_STATIC
    # None: each error kind uses its own policy from the strategy table
    retry_policy: Optional[RetryPolicy] = None
    result_cache_ttl: float = RESULT_CACHE_TTL_SEC
    result_cache_max_entries: int = RESULT_CACHE_MAX_ENTRIES
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        """Re-read the environment (module constants are captured at import)."""
        return cls(
            max_concurrent_requests=_env_int("ADVISOR_MAX_CONCURRENT", 5),
            response_timeout=_env_float("ADVISOR_RESPONSE_TIMEOUT", 15.0),
            enable_caching=_env_bool("ADVISOR_ENABLE_CACHING", True),
            fallback_to_static=_env_bool("ADVISOR_FALLBACK_TO_STATIC", True),
            result_cache_ttl=_env_float("ADVISOR_RESULT_CACHE_TTL", 600.0),
        )

    def merged(self, overrides: Optional[Dict[str, Any]] = None) -> "OrchestratorConfig":
        """Return a copy with ``overrides`` applied; unknown keys are rejected."""
        if not overrides:
            return self
        known = set(self.__dataclass_fields__)
        unknown = sorted(k for k in overrides if k not in known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration option(s): {', '.join(unknown)}",
                context={"unknown": unknown},
            )
        overrides = dict(overrides)
        if "retry_policy" in overrides:
            overrides["retry_policy"] = _coerce_retry_policy(overrides["retry_policy"])
        return replace(self, **overrides)


def _coerce_retry_policy(value: Any) -> Optional[RetryPolicy]:
    """Accept a RetryPolicy, None, or a plain mapping of RetryPolicy fields."""
    if value is None or isinstance(value, RetryPolicy):
        return value
    if not isinstance(value, Mapping):
        raise ConfigurationError(
            f"retry_policy must be a RetryPolicy or a mapping, got {type(value).__name__}",
            context={"field": "retry_policy"},
        )
    known = set(RetryPolicy.__dataclass_fields__)
    unknown = sorted(str(k) for k in value if k not in known)
    if unknown:
        raise ConfigurationError(
            f"Unknown retry_policy option(s): {', '.join(unknown)}",
            context={"unknown": unknown},
        )
    fields: Dict[str, Any] = {}
    try:
        if "max_retries" in value:
            fields["max_retries"] = int(value["max_retries"])
        for name in ("base_delay", "max_delay", "backoff_multiplier"):
            if name in value:
                fields[name] = float(value[name])
        if "retryable" in value:
            fields["retryable"] = frozenset(ErrorKind(k) for k in value["retryable"])
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid retry_policy value: {e}",
            context={"field": "retry_policy"},
        ) from e
    return RetryPolicy(**fields)


def validate_config(config: OrchestratorConfig) -> Tuple[List[str], List[str]]:
    """Return ``(errors, warnings)`` for a configuration."""
    errors: List[str] = []
    warnings: List[str] = []

    if config.max_concurrent_requests < 1:
        errors.append("max_concurrent_requests must be at least 1")
    elif config.max_concurrent_requests > 20:
        warnings.append("max_concurrent_requests is very high (>20); the model endpoint may throttle")

    if config.response_timeout <= 0:
        errors.append("response_timeout must be positive")

    if config.result_cache_ttl < 0:
        errors.append("result_cache_ttl must be non-negative")

    policy = config.retry_policy
    if policy is not None:
        if policy.max_retries < 0:
            errors.append("Max retries must be non-negative")
        elif policy.max_retries > 10:
            warnings.append("Max retries is very high (>10). This may cause long delays")

        if policy.base_delay < 0:
            errors.append("Base delay must be non-negative")
        elif policy.base_delay > 10:
            warnings.append("Base delay is very high (>10s). This may cause long delays")

        if policy.max_delay < policy.base_delay:
            errors.append("Max delay must be greater than or equal to base delay")

        if policy.backoff_multiplier < 1:
            errors.append("Backoff multiplier must be at least 1")
        elif policy.backoff_multiplier > 5:
            warnings.append("Backoff multiplier is very high (>5). This may cause exponential delays")

    return errors, warnings


def ensure_valid(config: OrchestratorConfig) -> List[str]:
    """Raise ConfigurationError on invalid config; return warnings otherwise."""
    errors, warnings = validate_config(config)
    if errors:
        raise ConfigurationError(
            "Invalid orchestrator configuration: " + "; ".join(errors),
            context={"errors": errors},
        )
    return warnings
