"""httpx を使った FlagTransport 実装"""

from __future__ import annotations

from typing import Any

import httpx
from flagforge_featureflag import FlagRecord

from .exceptions import SdkError, SdkErrorCodes
from .models import EvaluationEvent, SdkConfig
from .transport import FlagTransport

FLAGS_PATH = "/api/v1/sdk/flags"
EVENTS_PATH = "/api/v1/sdk/events"


class HttpFlagTransport(FlagTransport):
    """FlagForge サーバーの SDK エンドポイントを呼び出す。"""

    def __init__(self, config: SdkConfig) -> None:
        self._config = config
        self._headers = {
            "Content-Type": "application/json",
            "x-api-key": config.api_key,
        }
        self._client: httpx.AsyncClient | None = None

    def _make_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.api_url,
                headers=self._headers,
                timeout=self._config.timeout_seconds,
            )
        return self._client

    def _handle_error(self, resp: httpx.Response, context: str) -> None:
        if resp.status_code in (401, 403):
            raise SdkError(
                code=SdkErrorCodes.AUTH_ERROR,
                message=f"{context}: API key rejected (HTTP {resp.status_code})",
            )
        if resp.status_code >= 400:
            raise SdkError(
                code=SdkErrorCodes.HTTP_ERROR,
                message=f"{context}: HTTP {resp.status_code}: {resp.text}",
            )

    @staticmethod
    def _parse_flags(payload: Any) -> list[FlagRecord]:
        # 旧サーバーは {"projectId", "projectName", "flags": [...]} で返す
        if isinstance(payload, dict):
            payload = payload.get("flags")
        if not isinstance(payload, list):
            raise SdkError(
                code=SdkErrorCodes.INVALID_RESPONSE,
                message="fetch_flags: expected a JSON array of flags",
            )
        return [FlagRecord.from_dict(item) for item in payload if isinstance(item, dict)]

    async def fetch_flags(self, environment: str) -> list[FlagRecord]:
        """フラグ一覧を取得する。"""
        try:
            resp = await self._make_client().get(
                FLAGS_PATH, params={"environment": environment}
            )
            self._handle_error(resp, "fetch_flags")
            return self._parse_flags(resp.json())
        except SdkError:
            raise
        except httpx.TransportError as e:
            raise SdkError(
                code=SdkErrorCodes.CONNECTION_ERROR,
                message=f"Failed to fetch flags: {e}",
                cause=e,
            ) from e
        except ValueError as e:
            raise SdkError(
                code=SdkErrorCodes.INVALID_RESPONSE,
                message=f"Failed to decode flags: {e}",
                cause=e,
            ) from e

    async def send_event(self, event: EvaluationEvent) -> None:
        """評価イベントを送信する。"""
        try:
            resp = await self._make_client().post(EVENTS_PATH, json=event.to_dict())
            self._handle_error(resp, "send_event")
        except SdkError:
            raise
        except httpx.HTTPError as e:
            raise SdkError(
                code=SdkErrorCodes.CONNECTION_ERROR,
                message=f"Failed to send event: {e}",
                cause=e,
            ) from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
