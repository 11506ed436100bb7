"""FlagForge サーバーの FastAPI アプリケーション"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

import structlog
from fastapi import FastAPI, Header, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from flagforge_cache import CacheClient
from flagforge_featureflag import (
    DEFAULT_ENVIRONMENT,
    EvaluationReason,
    EvaluationResult,
    evaluate,
    not_found,
)
from flagforge_flagstore import FlagStore, ProjectRepository
from flagforge_telemetry import evaluation_latency_seconds, flag_evaluations_total
from opentelemetry import trace

from .analytics import ANALYTICS_PERIODS, DEFAULT_PERIOD, AnalyticsEventSink
from .events import EvaluationEventRecord, EventRecorder
from .schemas import EvaluateRequest, EventRequest

logger = structlog.stdlib.get_logger(__name__)
tracer = trace.get_tracer(__name__)


def _result_response(status_code: int, result: EvaluationResult) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=result.to_dict())


def _failure(reason: EvaluationReason, default: Any = None, detail: str = "") -> EvaluationResult:
    return EvaluationResult(enabled=False, value=default, reason=reason, diagnostic=detail)


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED, content={"error": message}
    )


def create_app(
    projects: ProjectRepository,
    store: FlagStore,
    recorder: EventRecorder,
    cache: CacheClient | None = None,
    default_environment: str = DEFAULT_ENVIRONMENT,
    analytics: AnalyticsEventSink | None = None,
) -> FastAPI:
    """評価・一括取得・イベント受信・集計エンドポイントを持つアプリを生成する。

    analytics を渡さない場合、集計エンドポイントは 404 を返す。
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await recorder.start()
        logger.info("server_started", default_environment=default_environment)
        try:
            yield
        finally:
            await recorder.stop()
            if cache is not None:
                await cache.close()
            logger.info("server_stopped")

    app = FastAPI(title="FlagForge", version="0.1.0", lifespan=lifespan)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = ",".join(
            str(err["loc"][-1]) for err in exc.errors() if err.get("loc")
        )
        return _result_response(
            status.HTTP_400_BAD_REQUEST,
            _failure(EvaluationReason.MISSING_PARAMETERS, detail=f"invalid: {fields}"),
        )

    async def _evaluate(api_key: str | None, body: EvaluateRequest) -> JSONResponse:
        if not api_key or not body.flag_key or not body.user_id:
            return _result_response(
                status.HTTP_400_BAD_REQUEST,
                _failure(
                    EvaluationReason.MISSING_PARAMETERS,
                    body.default,
                    "apiKey, flagKey and userId are required",
                ),
            )
        project = await projects.find_by_api_key(api_key)
        if project is None:
            return _result_response(
                status.HTTP_401_UNAUTHORIZED,
                _failure(EvaluationReason.INVALID_API_KEY, body.default),
            )

        environment = body.environment or default_environment
        started = time.perf_counter()
        with tracer.start_as_current_span(
            "flagforge.evaluate",
            attributes={
                "flagforge.project_id": project.id,
                "flagforge.flag_key": body.flag_key,
                "flagforge.environment": environment,
            },
        ) as span:
            try:
                flag = await store.get_flag(project.id, body.flag_key, environment)
                if flag is None:
                    span.set_attribute("flagforge.reason", EvaluationReason.FLAG_NOT_FOUND.value)
                    return _result_response(
                        status.HTTP_404_NOT_FOUND, not_found(body.default)
                    )
                result = evaluate(flag, body.user_id, body.default)
            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.StatusCode.ERROR)
                logger.exception(
                    "evaluation_failed", project_id=project.id, flag_key=body.flag_key
                )
                return _result_response(
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                    _failure(EvaluationReason.EVALUATION_ERROR, body.default),
                )
            span.set_attribute("flagforge.reason", result.reason.value)
        elapsed = time.perf_counter() - started

        flag_evaluations_total.add(1, {"reason": result.reason.value})
        evaluation_latency_seconds.record(elapsed)
        recorder.submit(
            EvaluationEventRecord(
                project_id=project.id,
                flag_key=flag.key,
                result=result.enabled,
                user_id=body.user_id,
                environment=environment,
                latency_ms=elapsed * 1000,
            )
        )
        return _result_response(status.HTTP_200_OK, result)

    @app.post("/api/evaluate")
    async def evaluate_legacy(body: EvaluateRequest | None = None) -> JSONResponse:
        """API キーをボディで受け取る旧評価エンドポイント。"""
        body = body or EvaluateRequest()
        return await _evaluate(body.api_key, body)

    @app.post("/api/v1/sdk/evaluate")
    async def evaluate_sdk(
        x_api_key: Annotated[str | None, Header()] = None,
        body: EvaluateRequest | None = None,
    ) -> JSONResponse:
        """API キーを x-api-key ヘッダーで受け取る評価エンドポイント。"""
        return await _evaluate(x_api_key, body or EvaluateRequest())

    @app.get("/api/v1/sdk/flags", response_model=None)
    async def list_flags(
        x_api_key: Annotated[str | None, Header()] = None,
        environment: str | None = None,
    ) -> Response | list[dict[str, Any]]:
        """SDK 向けにプロジェクト・環境のフラグ一式を返す。"""
        if not x_api_key:
            return Response(status_code=status.HTTP_401_UNAUTHORIZED)
        project = await projects.find_by_api_key(x_api_key)
        if project is None:
            return Response(status_code=status.HTTP_401_UNAUTHORIZED)
        flags = await store.repository.list_flags(
            project.id, environment or default_environment
        )
        return [flag.to_dict() for flag in flags]

    @app.post("/api/v1/sdk/events", status_code=status.HTTP_201_CREATED, response_model=None)
    async def ingest_event(
        request: Request,
        x_api_key: Annotated[str | None, Header()] = None,
    ) -> JSONResponse | dict[str, bool]:
        """SDK からの評価イベントを受け付ける。保存は待たない。

        ボディの検証は API キーの確認後に行う。
        """
        if not x_api_key:
            return _unauthorized("Missing API key")
        project = await projects.find_by_api_key(x_api_key)
        if project is None:
            return _unauthorized("Invalid API key")
        try:
            body = EventRequest.model_validate(await request.json())
        except ValueError as e:
            logger.info("invalid_event_body", project_id=project.id, error=str(e))
            return _result_response(
                status.HTTP_400_BAD_REQUEST,
                _failure(EvaluationReason.MISSING_PARAMETERS, detail="invalid event body"),
            )
        recorder.submit(
            EvaluationEventRecord(
                project_id=project.id,
                flag_key=body.flag_key,
                result=body.result,
                user_id=body.user_id or "anonymous",
                environment=body.environment or default_environment,
                latency_ms=body.latency or 0.0,
            )
        )
        return {"success": True}

    @app.get("/api/analytics/{project_id}", response_model=None)
    async def project_analytics(
        project_id: str,
        period: str = DEFAULT_PERIOD,
        x_api_key: Annotated[str | None, Header()] = None,
    ) -> JSONResponse | dict[str, Any]:
        """プロジェクトの評価イベント集計を返す。period は 24h / 7d / 30d。"""
        if not x_api_key:
            return _unauthorized("Missing API key")
        project = await projects.find_by_api_key(x_api_key)
        if project is None or project.id != project_id:
            return _unauthorized("Invalid API key")
        if period not in ANALYTICS_PERIODS:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": f"period must be one of {', '.join(ANALYTICS_PERIODS)}"},
            )
        if analytics is None:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"error": "Analytics are not enabled"},
            )
        return analytics.summarize(project.id, period).to_dict()

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/readyz")
    async def readyz() -> dict[str, str]:
        cache_state = "disabled"
        if cache is not None:
            try:
                await cache.exists("flagforge:readyz")
                cache_state = "ok"
            except Exception as e:
                logger.warning("cache_unavailable", error=str(e))
                cache_state = "unavailable"
        return {"status": "ready", "cache": cache_state}

    return app
