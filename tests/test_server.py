"""FlagForge サーバーエンドポイントのテスト"""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from flagforge_cache import CacheClient, CacheError, CacheErrorCodes, InMemoryCacheClient
from flagforge_featureflag import FlagKind, FlagRecord, Variant, evaluate
from flagforge_flagstore import (
    FlagService,
    FlagStore,
    InMemoryFlagRepository,
    InMemoryProjectRepository,
    Project,
)
from flagforge_server import (
    AnalyticsEventSink,
    EvaluationEventRecord,
    EventRecorder,
    InMemoryEventSink,
    create_app,
)
from opentelemetry.trace import StatusCode

API_KEY = "ff_demo_key"
PROJECT = Project(id="p1", name="Demo", api_key=API_KEY)

NEW_UI = FlagRecord(key="new-ui", enabled=True, rollout_percentage=50)
THEME = FlagRecord(
    key="checkout-theme",
    kind=FlagKind.MULTIVARIATE,
    enabled=True,
    variants=(Variant("a", "light", 30), Variant("b", "dark", 70)),
)
STAGING_ONLY = FlagRecord(key="beta-search", enabled=True, rollout_percentage=100, environment="Staging")


@dataclass
class Server:
    app: FastAPI
    store: FlagStore
    cache: CacheClient | None
    sink: InMemoryEventSink


def seed(repository: InMemoryFlagRepository, *flags: FlagRecord) -> None:
    async def _save() -> None:
        for flag in flags:
            await repository.save_flag(PROJECT.id, flag)

    asyncio.run(_save())


def make_server(
    repository: InMemoryFlagRepository | None = None, cache: CacheClient | None = None
) -> Server:
    if repository is None:
        repository = InMemoryFlagRepository()
        seed(repository, NEW_UI, THEME, STAGING_ONLY)
    store = FlagStore(repository, cache)
    sink = InMemoryEventSink()
    app = create_app(
        InMemoryProjectRepository([PROJECT]),
        store,
        EventRecorder(sink, queue_size=100),
        cache=cache,
    )
    return Server(app=app, store=store, cache=cache, sink=sink)


@pytest.fixture
def server() -> Server:
    return make_server(cache=InMemoryCacheClient())


class BrokenRepository(InMemoryFlagRepository):
    async def find_flag(self, project_id: str, flag_key: str, environment: str):
        raise RuntimeError("database is down")


class DownCache(InMemoryCacheClient):
    async def exists(self, key: str) -> bool:
        raise CacheError(CacheErrorCodes.CONNECTION_ERROR, "connection refused")


def test_legacy_evaluate(server: Server) -> None:
    """ボディの apiKey で評価する。"""
    with TestClient(server.app) as client:
        resp = client.post(
            "/api/evaluate",
            json={"apiKey": API_KEY, "flagKey": "new-ui", "userId": "user-42"},
        )
    assert resp.status_code == 200
    assert resp.json() == {
        "enabled": False,
        "value": False,
        "reason": "PERCENTAGE_EXCLUDED (score: 64, threshold: 50)",
    }


def test_sdk_evaluate_with_header(server: Server) -> None:
    """x-api-key ヘッダーで評価する。"""
    with TestClient(server.app) as client:
        resp = client.post(
            "/api/v1/sdk/evaluate",
            headers={"x-api-key": API_KEY},
            json={"flagKey": "checkout-theme", "userId": "user-98"},
        )
    assert resp.status_code == 200
    assert resp.json() == evaluate(THEME, "user-98").to_dict()
    assert resp.json()["variantId"] == "b"


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"apiKey": API_KEY, "flagKey": "new-ui"},
        {"apiKey": API_KEY, "userId": "user-1"},
        {"flagKey": "new-ui", "userId": "user-1"},
        {"apiKey": API_KEY, "flagKey": "", "userId": "user-1"},
        {"apiKey": API_KEY, "flagKey": 123, "userId": "user-1"},
    ],
)
def test_missing_parameters(server: Server, body: dict) -> None:
    """必須項目の欠落は 400 MISSING_PARAMETERS。"""
    with TestClient(server.app) as client:
        resp = client.post("/api/evaluate", json=body)
    assert resp.status_code == 400
    data = resp.json()
    assert data["enabled"] is False
    assert data["value"] is None
    assert data["reason"].startswith("MISSING_PARAMETERS")


def test_missing_body(server: Server) -> None:
    with TestClient(server.app) as client:
        resp = client.post("/api/v1/sdk/evaluate", headers={"x-api-key": API_KEY})
    assert resp.status_code == 400
    assert resp.json()["reason"].startswith("MISSING_PARAMETERS")


def test_invalid_api_key(server: Server) -> None:
    with TestClient(server.app) as client:
        resp = client.post(
            "/api/v1/sdk/evaluate",
            headers={"x-api-key": "wrong"},
            json={"flagKey": "new-ui", "userId": "user-1"},
        )
    assert resp.status_code == 401
    assert resp.json() == {"enabled": False, "value": None, "reason": "INVALID_API_KEY"}


def test_flag_not_found(server: Server) -> None:
    """未定義フラグは 404 で評価結果と同じ形を返す。"""
    with TestClient(server.app) as client:
        resp = client.post(
            "/api/evaluate",
            json={"apiKey": API_KEY, "flagKey": "missing", "userId": "user-1", "default": "off"},
        )
    assert resp.status_code == 404
    assert resp.json() == {"enabled": False, "value": "off", "reason": "FLAG_NOT_FOUND"}


def test_environment_selection(server: Server) -> None:
    """environment 未指定は Production。"""
    with TestClient(server.app) as client:
        default_env = client.post(
            "/api/evaluate",
            json={"apiKey": API_KEY, "flagKey": "beta-search", "userId": "user-1"},
        )
        staging = client.post(
            "/api/evaluate",
            json={
                "apiKey": API_KEY,
                "flagKey": "beta-search",
                "userId": "user-1",
                "environment": "Staging",
            },
        )
    assert default_env.status_code == 404
    assert staging.status_code == 200
    assert staging.json()["enabled"] is True


def test_evaluation_error() -> None:
    """バックエンド障害は 500 EVALUATION_ERROR。"""
    server = make_server(repository=BrokenRepository())
    with TestClient(server.app) as client:
        resp = client.post(
            "/api/evaluate",
            json={"apiKey": API_KEY, "flagKey": "new-ui", "userId": "user-1", "default": True},
        )
    assert resp.status_code == 500
    assert resp.json() == {"enabled": False, "value": True, "reason": "EVALUATION_ERROR"}


def test_evaluation_populates_cache(server: Server) -> None:
    with TestClient(server.app) as client:
        client.post(
            "/api/evaluate",
            json={"apiKey": API_KEY, "flagKey": "new-ui", "userId": "user-1"},
        )
    assert server.cache.keys() == ["flag:p1:Production:new-ui"]


def test_update_is_visible_to_next_evaluation(server: Server) -> None:
    """フラグ更新直後の評価は新しい定義を使う。"""
    body = {"apiKey": API_KEY, "flagKey": "new-ui", "userId": "user-42"}
    service = FlagService(server.store)
    with TestClient(server.app) as client:
        assert client.post("/api/evaluate", json=body).json()["enabled"] is False
        asyncio.run(service.update_flag("p1", "new-ui", "Production", rollout_percentage=70))
        assert client.post("/api/evaluate", json=body).json()["enabled"] is True
        asyncio.run(service.set_status("p1", "new-ui", "Production", False))
        assert client.post("/api/evaluate", json=body).json()["reason"] == "KILL_SWITCH"


def test_evaluation_records_event(server: Server) -> None:
    """評価ごとにレイテンシ付きのイベントを記録する。"""
    with TestClient(server.app) as client:
        client.post(
            "/api/evaluate",
            json={
                "apiKey": API_KEY,
                "flagKey": "beta-search",
                "userId": "user-7",
                "environment": "Staging",
            },
        )
    assert len(server.sink.events) == 1
    event = server.sink.events[0]
    assert event.project_id == "p1"
    assert event.flag_key == "beta-search"
    assert event.result is True
    assert event.user_id == "user-7"
    assert event.environment == "Staging"
    assert event.latency_ms >= 0


def test_bulk_fetch(server: Server) -> None:
    """SDK 向け一括取得。"""
    with TestClient(server.app) as client:
        resp = client.get("/api/v1/sdk/flags", headers={"x-api-key": API_KEY})
        staging = client.get(
            "/api/v1/sdk/flags",
            headers={"x-api-key": API_KEY},
            params={"environment": "Staging"},
        )
    assert resp.status_code == 200
    assert [f["key"] for f in resp.json()] == ["new-ui", "checkout-theme"]
    assert resp.json()[0] == NEW_UI.to_dict()
    assert [f["key"] for f in staging.json()] == ["beta-search"]


@pytest.mark.parametrize("headers", [{}, {"x-api-key": "wrong"}])
def test_bulk_fetch_unauthorized(server: Server, headers: dict) -> None:
    """不正な API キーは本文なしの 401。"""
    with TestClient(server.app) as client:
        resp = client.get("/api/v1/sdk/flags", headers=headers)
    assert resp.status_code == 401
    assert resp.content == b""


def test_ingest_event(server: Server) -> None:
    """イベント受信は 201 を返し、保存はバックグラウンドで行う。"""
    with TestClient(server.app) as client:
        resp = client.post(
            "/api/v1/sdk/events",
            headers={"x-api-key": API_KEY},
            json={"flagKey": "new-ui", "result": False, "userId": "user-3", "latency": 1.5},
        )
    assert resp.status_code == 201
    assert resp.json() == {"success": True}
    assert len(server.sink.events) == 1
    event = server.sink.events[0]
    assert event.result is False
    assert event.user_id == "user-3"
    assert event.environment == "Production"
    assert event.latency_ms == 1.5


def test_ingest_event_defaults_anonymous(server: Server) -> None:
    with TestClient(server.app) as client:
        client.post(
            "/api/v1/sdk/events", headers={"x-api-key": API_KEY}, json={"flagKey": "new-ui"}
        )
    assert server.sink.events[0].user_id == "anonymous"


@pytest.mark.parametrize("headers", [{}, {"x-api-key": "wrong"}])
def test_ingest_event_unauthorized(server: Server, headers: dict) -> None:
    with TestClient(server.app) as client:
        resp = client.post("/api/v1/sdk/events", headers=headers, json={"flagKey": "new-ui"})
    assert resp.status_code == 401
    assert server.sink.events == []


def test_ingest_event_requires_flag_key(server: Server) -> None:
    with TestClient(server.app) as client:
        resp = client.post("/api/v1/sdk/events", headers={"x-api-key": API_KEY}, json={})
    assert resp.status_code == 400


def test_health_endpoints(server: Server) -> None:
    with TestClient(server.app) as client:
        assert client.get("/healthz").json() == {"status": "ok"}
        assert client.get("/readyz").json() == {"status": "ready", "cache": "ok"}


def test_readyz_reports_cache_state() -> None:
    """キャッシュ障害でも ready のまま。"""
    down = make_server(cache=DownCache())
    with TestClient(down.app) as client:
        resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ready", "cache": "unavailable"}

    no_cache = make_server(cache=None)
    with TestClient(no_cache.app) as client:
        assert client.get("/readyz").json()["cache"] == "disabled"


@pytest.mark.parametrize("headers", [{}, {"x-api-key": "wrong"}])
def test_ingest_event_checks_key_before_body(server: Server, headers: dict) -> None:
    """不正な API キーならボディが不正でも 401。"""
    with TestClient(server.app) as client:
        resp = client.post("/api/v1/sdk/events", headers=headers, json={"result": "maybe"})
        empty = client.post("/api/v1/sdk/events", headers=headers)
    assert resp.status_code == 401
    assert empty.status_code == 401
    assert server.sink.events == []


def test_ingest_event_rejects_malformed_json(server: Server) -> None:
    with TestClient(server.app) as client:
        resp = client.post(
            "/api/v1/sdk/events",
            headers={"x-api-key": API_KEY, "content-type": "application/json"},
            content=b"{not json",
        )
    assert resp.status_code == 400
    assert resp.json()["reason"].startswith("MISSING_PARAMETERS")


def make_analytics_server(sink: AnalyticsEventSink) -> FastAPI:
    other = Project(id="p2", name="Other", api_key="ff_other_key")
    return create_app(
        InMemoryProjectRepository([PROJECT, other]),
        FlagStore(InMemoryFlagRepository()),
        EventRecorder(sink, queue_size=100),
        analytics=sink,
    )


def test_project_analytics() -> None:
    """期間内のイベントを集計して返す。"""
    sink = AnalyticsEventSink()
    now = datetime.now(UTC)
    for flag_key, result, environment in [
        ("new-ui", True, "Production"),
        ("new-ui", False, "Production"),
        ("new-ui", True, "Staging"),
        ("checkout-theme", True, "Development"),
    ]:
        sink.add(
            EvaluationEventRecord(
                project_id="p1",
                flag_key=flag_key,
                result=result,
                environment=environment,
                timestamp=now - timedelta(hours=1),
            )
        )
    sink.add(
        EvaluationEventRecord(
            project_id="p1", flag_key="old", result=True, timestamp=now - timedelta(days=3)
        )
    )

    with TestClient(make_analytics_server(sink)) as client:
        day = client.get(
            "/api/analytics/p1", params={"period": "24h"}, headers={"x-api-key": API_KEY}
        )
        week = client.get("/api/analytics/p1", headers={"x-api-key": API_KEY})

    assert day.status_code == 200
    body = day.json()
    assert body["metrics"]["total"] == 4
    assert body["metrics"]["activeFlags"] == 2
    assert body["metrics"]["successRate"] == 75.0
    assert body["topFlags"][0] == {"name": "new-ui", "count": 3, "percent": 75.0}
    assert {e["name"]: e["count"] for e in body["envDist"]} == {
        "Development": 1,
        "Staging": 1,
        "Production": 2,
    }
    assert week.json()["period"] == "7d"
    assert week.json()["metrics"]["total"] == 5


def test_project_analytics_rejects_bad_period() -> None:
    with TestClient(make_analytics_server(AnalyticsEventSink())) as client:
        resp = client.get(
            "/api/analytics/p1", params={"period": "1y"}, headers={"x-api-key": API_KEY}
        )
    assert resp.status_code == 400


@pytest.mark.parametrize("headers", [{}, {"x-api-key": "wrong"}, {"x-api-key": "ff_other_key"}])
def test_project_analytics_unauthorized(headers: dict) -> None:
    """他プロジェクトの API キーでは参照できない。"""
    with TestClient(make_analytics_server(AnalyticsEventSink())) as client:
        resp = client.get("/api/analytics/p1", headers=headers)
    assert resp.status_code == 401


def test_project_analytics_disabled(server: Server) -> None:
    with TestClient(server.app) as client:
        resp = client.get("/api/analytics/p1", headers={"x-api-key": API_KEY})
    assert resp.status_code == 404


def test_evaluation_span(server: Server, spans) -> None:
    """評価スパンの下にフラグ参照スパンがぶら下がる。"""
    with TestClient(server.app) as client:
        client.post(
            "/api/evaluate",
            json={"apiKey": API_KEY, "flagKey": "new-ui", "userId": "user-42"},
        )
    finished = {s.name: s for s in spans.get_finished_spans()}
    evaluation = finished["flagforge.evaluate"]
    assert evaluation.attributes["flagforge.project_id"] == "p1"
    assert evaluation.attributes["flagforge.flag_key"] == "new-ui"
    assert evaluation.attributes["flagforge.reason"] == "PERCENTAGE_EXCLUDED"
    lookup = finished["flagforge.flagstore.get_flag"]
    assert lookup.parent.span_id == evaluation.context.span_id


def test_evaluation_error_span(spans) -> None:
    broken = make_server(repository=BrokenRepository())
    with TestClient(broken.app) as client:
        client.post(
            "/api/evaluate",
            json={"apiKey": API_KEY, "flagKey": "new-ui", "userId": "user-1"},
        )
    evaluation = next(s for s in spans.get_finished_spans() if s.name == "flagforge.evaluate")
    assert evaluation.status.status_code == StatusCode.ERROR
