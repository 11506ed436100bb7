"""flagforge sdk library."""

from .client import FlagSyncClient
from .exceptions import SdkError, SdkErrorCodes
from .http_transport import HttpFlagTransport
from .models import EvaluationEvent, SdkConfig
from .transport import FlagTransport

__all__ = [
    "EvaluationEvent",
    "FlagSyncClient",
    "FlagTransport",
    "HttpFlagTransport",
    "SdkConfig",
    "SdkError",
    "SdkErrorCodes",
]
