"""flagforge cache library."""

from .client import CacheClient
from .exceptions import CacheError, CacheErrorCodes
from .memory import InMemoryCacheClient
from .redis_client import RedisCacheClient

__all__ = [
    "CacheClient",
    "CacheError",
    "CacheErrorCodes",
    "InMemoryCacheClient",
    "RedisCacheClient",
]
