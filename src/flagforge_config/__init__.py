"""flagforge config library."""

from .exceptions import ConfigError, ConfigErrorCodes
from .loader import load, read_mapping, validate
from .merger import deep_merge
from .models import (
    AppConfig,
    AppSection,
    CacheSection,
    EventsSection,
    ObservabilitySection,
    RedisSection,
    ServerSection,
)
from .overrides import merge_overrides, overrides_from_env

__all__ = [
    "AppSection",
    "ServerSection",
    "RedisSection",
    "CacheSection",
    "EventsSection",
    "ObservabilitySection",
    "AppConfig",
    "load",
    "read_mapping",
    "validate",
    "deep_merge",
    "merge_overrides",
    "overrides_from_env",
    "ConfigError",
    "ConfigErrorCodes",
]
