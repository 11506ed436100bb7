"""flagforge featureflag library."""

from .client import FeatureFlagClientProtocol
from .evaluator import evaluate, evaluate_all, not_found
from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .hashing import BUCKET_COUNT, hash_bucket, is_valid_percentage
from .memory import InMemoryFeatureFlagClient
from .models import (
    DEFAULT_ENVIRONMENT,
    EvaluationReason,
    EvaluationResult,
    FlagKind,
    FlagRecord,
    Targeting,
    Variant,
)

__all__ = [
    "BUCKET_COUNT",
    "DEFAULT_ENVIRONMENT",
    "EvaluationReason",
    "EvaluationResult",
    "FeatureFlagClientProtocol",
    "FeatureFlagError",
    "FeatureFlagErrorCodes",
    "FlagKind",
    "FlagRecord",
    "InMemoryFeatureFlagClient",
    "Targeting",
    "Variant",
    "evaluate",
    "evaluate_all",
    "hash_bucket",
    "is_valid_percentage",
    "not_found",
]
