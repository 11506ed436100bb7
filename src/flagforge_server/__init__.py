"""flagforge server."""

from .analytics import AnalyticsEventSink, AnalyticsSummary, summarize_events
from .app import create_app
from .events import EvaluationEventRecord, EventRecorder, EventSink, InMemoryEventSink
from .main import build_app, build_cache, load_config

__all__ = [
    "AnalyticsEventSink",
    "AnalyticsSummary",
    "EvaluationEventRecord",
    "EventRecorder",
    "EventSink",
    "InMemoryEventSink",
    "build_app",
    "build_cache",
    "create_app",
    "load_config",
    "summarize_events",
]
