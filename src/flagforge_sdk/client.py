"""バックグラウンドでフラグ一式を同期する SDK クライアント"""

from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

import structlog
from flagforge_featureflag import (
    EvaluationReason,
    EvaluationResult,
    FlagRecord,
    evaluate,
    not_found,
)
from flagforge_telemetry import (
    analytics_events_dropped_total,
    flag_evaluations_total,
    sdk_refresh_failures_total,
)
from opentelemetry import trace

from .http_transport import HttpFlagTransport
from .models import EvaluationEvent, SdkConfig
from .transport import FlagTransport

logger = structlog.stdlib.get_logger(__name__)
tracer = trace.get_tracer(__name__)

Listener = Callable[[], None]

_EMPTY: Mapping[str, FlagRecord] = MappingProxyType({})


class FlagSyncClient:
    """フラグ一式を定期取得し、ローカルで評価するクライアント。

    フラグは読み取り専用マッピングのスナップショットとして保持し、取得成功の
    たびに丸ごと差し替える。評価はスナップショットのみを参照するため
    ネットワーク I/O でブロックしない。

    Example:
        async with FlagSyncClient(SdkConfig(api_key="ff_live_xxx")) as client:
            if client.is_enabled("new-ui", "user-123"):
                ...
    """

    def __init__(
        self, config: SdkConfig, transport: FlagTransport | None = None
    ) -> None:
        self._config = config
        self._owns_transport = transport is None
        self._transport = transport or HttpFlagTransport(config)
        self._flags: Mapping[str, FlagRecord] = _EMPTY
        self._ready = False
        self._closed = False
        self._listeners: list[Listener] = []
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[asyncio.Future[None] | concurrent.futures.Future[None]] = set()

    @property
    def ready(self) -> bool:
        """最初の取得に成功していれば True。"""
        return self._ready

    async def init(self) -> bool:
        """初回取得を行い、定期更新を開始する。

        初回取得に失敗してもエラーにはせず、次の周期で再試行する。
        呼び出したイベントループは、別スレッドからの評価イベント送信にも使う。

        Returns:
            初回取得に成功したか
        """
        self._closed = False
        self._loop = asyncio.get_running_loop()
        loaded = await self.refresh()
        if self._config.refresh_interval_seconds > 0 and self._task is None:
            self._running = True
            self._task = asyncio.create_task(self._poll_loop())
        return loaded

    async def refresh(self) -> bool:
        """フラグ一式を取得してスナップショットを差し替える。

        失敗時は直前のスナップショットを保持したまま False を返す。
        """
        with tracer.start_as_current_span(
            "flagforge.sdk.refresh",
            attributes={"flagforge.environment": self._config.environment},
        ) as span:
            try:
                flags = await self._transport.fetch_flags(self._config.environment)
            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.StatusCode.ERROR)
                sdk_refresh_failures_total.add(1)
                logger.error(
                    "flag_refresh_failed", error=str(e), retained=len(self._flags)
                )
                return False
            span.set_attribute("flagforge.flag_count", len(flags))
        if self._closed:
            return False
        self._flags = MappingProxyType({flag.key: flag for flag in flags})
        self._ready = True
        logger.debug("flags_loaded", count=len(self._flags))
        self._notify()
        return True

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """取得成功時に呼ばれるリスナーを登録する。解除用の関数を返す。"""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("flag_listener_failed")

    def get_flag(self, flag_key: str) -> FlagRecord | None:
        return self._flags.get(flag_key)

    def flag_keys(self) -> list[str]:
        return list(self._flags)

    def evaluate(
        self, flag_key: str, user_id: str, default: Any = None
    ) -> EvaluationResult:
        """フラグを評価する。未初期化・未定義の場合は default を返す。"""
        if not self._ready:
            return EvaluationResult(
                enabled=False,
                value=default,
                reason=EvaluationReason.SDK_NOT_INITIALIZED,
            )
        flag = self._flags.get(flag_key)
        if flag is None:
            logger.debug("flag_not_found", flag_key=flag_key)
            return not_found(default)
        result = evaluate(flag, user_id, default)
        flag_evaluations_total.add(1, {"reason": result.reason.value})
        self._track(flag_key, result, user_id)
        return result

    def is_enabled(self, flag_key: str, user_id: str) -> bool:
        return self.evaluate(flag_key, user_id).enabled

    def get_variant(self, flag_key: str, user_id: str, default: Any = None) -> Any:
        """評価値を返す。値が決まらなければ default。"""
        result = self.evaluate(flag_key, user_id, default)
        if result.value is None:
            return default
        return result.value

    def _track(self, flag_key: str, result: EvaluationResult, user_id: str) -> None:
        if not self._config.track_events:
            return
        try:
            running: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        # ループ外のスレッドからは init() を呼んだループへ送信を委ねる
        loop = self._loop if running is None else running
        if loop is None or loop.is_closed() or not loop.is_running():
            analytics_events_dropped_total.add(1, {"cause": "no_loop"})
            return
        if len(self._pending) >= self._config.max_pending_events:
            analytics_events_dropped_total.add(1, {"cause": "overflow"})
            return
        event = EvaluationEvent(
            flag_key=flag_key,
            result=result.enabled,
            user_id=user_id,
            environment=self._config.environment,
        )
        future: asyncio.Future[None] | concurrent.futures.Future[None]
        if running is None:
            future = asyncio.run_coroutine_threadsafe(self._send_event(event), loop)
        else:
            future = loop.create_task(self._send_event(event))
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    async def _send_event(self, event: EvaluationEvent) -> None:
        try:
            await self._transport.send_event(event)
        except Exception as e:
            analytics_events_dropped_total.add(1, {"cause": "error"})
            logger.debug("analytics_event_failed", flag_key=event.flag_key, error=str(e))

    async def _poll_loop(self) -> None:
        """定期更新ループ。"""
        while self._running:
            await asyncio.sleep(self._config.refresh_interval_seconds)
            if not self._running:
                break
            await self.refresh()

    async def destroy(self) -> None:
        """定期更新を止めて内部状態を破棄する。複数回呼んでもよい。"""
        self._running = False
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        pending = [
            asyncio.wrap_future(f) if isinstance(f, concurrent.futures.Future) else f
            for f in list(self._pending)
        ]
        for future in pending:
            future.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pending.clear()
        self._loop = None
        self._flags = _EMPTY
        self._ready = False
        self._listeners.clear()
        if self._owns_transport:
            await self._transport.aclose()

    async def __aenter__(self) -> FlagSyncClient:
        await self.init()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.destroy()
