"""評価イベントの保持と集計"""

from __future__ import annotations

from collections import Counter, deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from flagforge_flagstore import ENVIRONMENTS

from .events import EvaluationEventRecord, EventSink

ANALYTICS_PERIODS: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_PERIOD = "7d"
TOP_FLAGS_LIMIT = 5


@dataclass
class FlagCount:
    name: str
    count: int
    percent: float


@dataclass
class AnalyticsSummary:
    """期間内の評価イベント集計。"""

    period: str
    total: int = 0
    active_flags: int = 0
    success_rate: float = 0.0
    avg_latency_ms: float = 0.0
    top_flags: list[FlagCount] = field(default_factory=list)
    env_dist: dict[str, int] = field(default_factory=dict)
    trend: list[tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        share = self.total or 1
        return {
            "period": self.period,
            "metrics": {
                "total": self.total,
                "activeFlags": self.active_flags,
                "successRate": self.success_rate,
                "avgLatency": self.avg_latency_ms,
            },
            "trendData": [{"label": label, "value": value} for label, value in self.trend],
            "topFlags": [
                {"name": f.name, "count": f.count, "percent": f.percent}
                for f in self.top_flags
            ],
            "envDist": [
                {"name": name, "count": count, "width": round(count / share * 100, 1)}
                for name, count in self.env_dist.items()
            ],
        }


def _trend_label(timestamp: datetime, period: str) -> str:
    ts = timestamp.astimezone(UTC)
    if period == "24h":
        return f"{ts.hour}:00"
    return f"{ts:%b} {ts.day}"


def summarize_events(
    events: Iterable[EvaluationEventRecord],
    period: str = DEFAULT_PERIOD,
    now: datetime | None = None,
) -> AnalyticsSummary:
    """期間 (24h / 7d / 30d) 内のイベントを集計する。

    Raises:
        ValueError: 未知の期間が指定された場合
    """
    if period not in ANALYTICS_PERIODS:
        raise ValueError(f"period must be one of {', '.join(ANALYTICS_PERIODS)}: {period!r}")
    now = now or datetime.now(UTC)
    since = now - ANALYTICS_PERIODS[period]
    window = sorted(
        (e for e in events if since <= e.timestamp <= now), key=lambda e: e.timestamp
    )

    summary = AnalyticsSummary(period=period, env_dist={env: 0 for env in ENVIRONMENTS})
    if not window:
        return summary

    total = len(window)
    flag_counts = Counter(e.flag_key for e in window)
    trend: dict[str, int] = {}
    for event in window:
        label = _trend_label(event.timestamp, period)
        trend[label] = trend.get(label, 0) + 1
        # 未知の環境名は分布に含めない
        if event.environment in summary.env_dist:
            summary.env_dist[event.environment] += 1

    summary.total = total
    summary.active_flags = len(flag_counts)
    summary.success_rate = round(sum(e.result for e in window) / total * 100, 1)
    summary.avg_latency_ms = round(sum(e.latency_ms for e in window) / total, 1)
    summary.top_flags = [
        FlagCount(name=name, count=count, percent=round(count / total * 100, 1))
        for name, count in flag_counts.most_common(TOP_FLAGS_LIMIT)
    ]
    summary.trend = list(trend.items())
    return summary


class AnalyticsEventSink(EventSink):
    """プロジェクトごとに直近のイベントを保持するシンク。

    1 プロジェクトあたり max_events 件まで保持し、最長集計期間より古い
    イベントは記録時に捨てる。
    """

    def __init__(
        self,
        max_events: int = 10_000,
        retention: timedelta = ANALYTICS_PERIODS["30d"],
    ) -> None:
        self._max_events = max_events
        self._retention = retention
        self._events: dict[str, deque[EvaluationEventRecord]] = {}

    async def record(self, event: EvaluationEventRecord) -> None:
        self.add(event)

    def add(self, event: EvaluationEventRecord) -> None:
        events = self._events.get(event.project_id)
        if events is None:
            events = deque(maxlen=self._max_events)
            self._events[event.project_id] = events
        events.append(event)
        cutoff = datetime.now(UTC) - self._retention
        while events and events[0].timestamp < cutoff:
            events.popleft()

    def retained(self, project_id: str) -> int:
        return len(self._events.get(project_id, ()))

    def summarize(
        self, project_id: str, period: str = DEFAULT_PERIOD, now: datetime | None = None
    ) -> AnalyticsSummary:
        return summarize_events(self._events.get(project_id, ()), period, now)
