"""評価イベントの記録。ハンドラーからは投げっぱなしで渡す。"""

from __future__ import annotations

import asyncio
import contextlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from flagforge_telemetry import analytics_events_dropped_total

logger = structlog.stdlib.get_logger(__name__)


@dataclass
class EvaluationEventRecord:
    """永続化される評価イベント。"""

    project_id: str
    flag_key: str
    result: bool
    user_id: str = "anonymous"
    environment: str = "Production"
    latency_ms: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class EventSink(ABC):
    """評価イベントの保存先。"""

    @abstractmethod
    async def record(self, event: EvaluationEventRecord) -> None: ...


class InMemoryEventSink(EventSink):
    """テスト用インメモリイベントシンク。"""

    def __init__(self) -> None:
        self.events: list[EvaluationEventRecord] = []

    async def record(self, event: EvaluationEventRecord) -> None:
        self.events.append(event)


class EventRecorder:
    """上限付きキューとワーカータスクでイベントを非同期に保存する。

    submit はブロックせず、キューが満杯ならイベントを破棄する。
    保存の失敗はログに残すだけで呼び出し側へは伝えない。
    """

    def __init__(self, sink: EventSink, queue_size: int = 1000, workers: int = 1) -> None:
        self._sink = sink
        self._queue: asyncio.Queue[EvaluationEventRecord] = asyncio.Queue(queue_size)
        self._workers = workers
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def sink(self) -> EventSink:
        return self._sink

    def submit(self, event: EvaluationEventRecord) -> bool:
        """イベントをキューに積む。破棄した場合は False。"""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            analytics_events_dropped_total.add(1, {"cause": "overflow"})
            logger.warning("evaluation_event_dropped", flag_key=event.flag_key)
            return False
        return True

    async def start(self) -> None:
        """ワーカータスクを開始する。"""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker()) for _ in range(self._workers)
        ]

    async def stop(self, drain: bool = True) -> None:
        """ワーカータスクを停止する。drain 指定時は残りを保存してから止める。"""
        if drain and self._tasks:
            await self._queue.join()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []

    async def flush(self) -> None:
        """キューが空になるまで待つ。ワーカー未起動なら何もしない。"""
        if not self._tasks:
            return
        await self._queue.join()

    async def _worker(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._sink.record(event)
            except Exception as e:
                analytics_events_dropped_total.add(1, {"cause": "error"})
                logger.error(
                    "evaluation_event_record_failed",
                    flag_key=event.flag_key,
                    error=str(e),
                )
            finally:
                self._queue.task_done()
