"""flagforge flagstore library."""

from .exceptions import FlagStoreError, FlagStoreErrorCodes
from .memory import InMemoryFlagRepository, InMemoryProjectRepository
from .models import ENVIRONMENTS, Project
from .repository import FlagRepository, ProjectRepository
from .service import FLAG_KEY_PATTERN, FlagService, validate_flag
from .store import DEFAULT_KEY_PREFIX, DEFAULT_TTL_SECONDS, FlagStore

__all__ = [
    "DEFAULT_KEY_PREFIX",
    "DEFAULT_TTL_SECONDS",
    "ENVIRONMENTS",
    "FLAG_KEY_PATTERN",
    "FlagRepository",
    "FlagService",
    "FlagStore",
    "FlagStoreError",
    "FlagStoreErrorCodes",
    "InMemoryFlagRepository",
    "InMemoryProjectRepository",
    "Project",
    "ProjectRepository",
    "validate_flag",
]
