"""
Configuration for the request deduplicator.

Values are resolved with the following precedence:

1. Explicit value (highest precedence)
2. Environment variable
3. Default value (lowest precedence)
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from .exceptions import ValidationError

# Default values
DEFAULT_ENABLED = True
DEFAULT_TTL_SECONDS = 60
DEFAULT_IN_FLIGHT_TTL_SECONDS = 5
DEFAULT_PREFIX = "openfga_dedup"
DEFAULT_POLL_INTERVAL_SECONDS = 0.01
MIN_TTL_SECONDS = 1

# Environment variable names
ENV_PREFIX = "OPENFGA_DEDUP_"
ENV_ENABLED = f"{ENV_PREFIX}ENABLED"
ENV_TTL = f"{ENV_PREFIX}TTL"
ENV_IN_FLIGHT_TTL = f"{ENV_PREFIX}IN_FLIGHT_TTL"
ENV_PREFIX_NAME = f"{ENV_PREFIX}PREFIX"
ENV_POLL_INTERVAL = f"{ENV_PREFIX}POLL_INTERVAL"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


@dataclass(frozen=True)
class DeduplicationConfig:
    """Deduplicator settings.

    Attributes:
        enabled: When False, ``execute`` calls the callback directly with no
            caching or bookkeeping
        ttl: Lifetime of cached results in seconds
        in_flight_ttl: Lifetime of the in-flight marker and maximum time a
            waiter blocks, in seconds
        prefix: Namespace prepended to every key
        poll_interval: Seconds between checks while waiting on another process
    """

    enabled: bool = DEFAULT_ENABLED
    ttl: int = DEFAULT_TTL_SECONDS
    in_flight_ttl: float = DEFAULT_IN_FLIGHT_TTL_SECONDS
    prefix: str = DEFAULT_PREFIX
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS

    def __post_init__(self) -> None:
        validate_enabled(self.enabled)
        validate_ttl(self.ttl)
        validate_positive_number("in_flight_ttl", self.in_flight_ttl)
        validate_prefix(self.prefix)
        validate_positive_number("poll_interval", self.poll_interval)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None = None) -> "DeduplicationConfig":
        """Merge a partial mapping over the defaults.

        Unknown keys are ignored so a larger settings block can be passed
        through unchanged.

        Args:
            values: Mapping with any of the recognized option names

        Returns:
            Resolved configuration

        Raises:
            ValidationError: If a recognized value is invalid
        """
        known = {f.name for f in fields(cls)}
        overrides = {name: value for name, value in (values or {}).items() if name in known}
        return cls(**overrides)

    @classmethod
    def from_env(cls, **explicit: Any) -> "DeduplicationConfig":
        """Resolve configuration from explicit values, then environment variables.

        Args:
            **explicit: Option values that take precedence over the environment

        Returns:
            Resolved configuration
        """
        resolved: dict[str, Any] = {}

        enabled = os.getenv(ENV_ENABLED)
        if enabled is not None:
            resolved["enabled"] = _parse_bool(ENV_ENABLED, enabled)

        ttl = os.getenv(ENV_TTL)
        if ttl:
            resolved["ttl"] = _parse_number(ENV_TTL, ttl, int)

        in_flight_ttl = os.getenv(ENV_IN_FLIGHT_TTL)
        if in_flight_ttl:
            resolved["in_flight_ttl"] = _parse_number(ENV_IN_FLIGHT_TTL, in_flight_ttl, float)

        prefix = os.getenv(ENV_PREFIX_NAME)
        if prefix:
            resolved["prefix"] = prefix

        poll_interval = os.getenv(ENV_POLL_INTERVAL)
        if poll_interval:
            resolved["poll_interval"] = _parse_number(ENV_POLL_INTERVAL, poll_interval, float)

        resolved.update({name: value for name, value in explicit.items() if value is not None})
        return cls.from_mapping(resolved)

    def with_overrides(self, **values: Any) -> "DeduplicationConfig":
        """Return a copy with the given options replaced."""
        return replace(self, **values)


def validate_enabled(enabled: bool) -> None:
    if not isinstance(enabled, bool):
        raise ValidationError(f"enabled must be bool, got {type(enabled).__name__}")


def validate_ttl(ttl: int) -> None:
    """Validate the result TTL.

    Bool is rejected explicitly since it is a subclass of int.
    """
    if isinstance(ttl, bool) or not isinstance(ttl, int):
        raise ValidationError(f"ttl must be int, got {type(ttl).__name__}")
    if ttl < MIN_TTL_SECONDS:
        raise ValidationError(f"ttl must be >= {MIN_TTL_SECONDS}, got {ttl}")


def validate_positive_number(name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number, got {type(value).__name__}")
    if value <= 0:
        raise ValidationError(f"{name} must be > 0, got {value}")


def validate_prefix(prefix: str) -> None:
    if not isinstance(prefix, str):
        raise ValidationError(f"prefix must be str, got {type(prefix).__name__}")
    if not prefix.strip():
        raise ValidationError("prefix cannot be empty or whitespace-only")


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValidationError(f"{name} must be a boolean flag, got {raw!r}")


def _parse_number(name: str, raw: str, kind: type) -> Any:
    try:
        return kind(raw.strip())
    except ValueError as e:
        raise ValidationError(f"{name} must be {kind.__name__}, got {raw!r}") from e
