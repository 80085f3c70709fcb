"""Tests for the proxy HTTP routes.

The app is built around a FakeUpstreamClient; entering the TestClient
context runs the lifespan, which starts the dispatcher.
"""

from typing import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from fakes import FakeUpstreamClient
from feed_proxy.adapters.upstream.base import UpstreamResponse
from feed_proxy.core.app_factory import create_app
from feed_proxy.services.proxy_service import ProxyService


def _handler(path, params):
    if path == "/api/user/ghost":
        return UpstreamResponse(status=404, data={"error": "User not found"})
    if path == "/api/tweet/broken":
        raise httpx.ConnectError("connection reset")
    if path == "/api/tweet/plain":
        return UpstreamResponse(status=502, data="Bad Gateway")
    if path.endswith("/tweets"):
        return UpstreamResponse(status=200, data={"tweets": [], "cursor": (params or {}).get("cursor")})
    return UpstreamResponse(status=200, data={"path": path})


@pytest.fixture
def upstream() -> FakeUpstreamClient:
    return FakeUpstreamClient(_handler)


@pytest.fixture
def client(upstream: FakeUpstreamClient) -> Iterator[TestClient]:
    app = create_app(upstream_client=upstream)
    with TestClient(app) as test_client:
        yield test_client


def test_get_user_passes_status_and_body_through(client: TestClient, upstream: FakeUpstreamClient) -> None:
    response = client.get("/api/user/alice")

    assert response.status_code == 200
    assert response.json() == {"path": "/api/user/alice"}
    assert upstream.paths() == ["/api/user/alice"]


def test_repeat_lookup_is_served_from_cache(client: TestClient, upstream: FakeUpstreamClient) -> None:
    client.get("/api/user/alice")
    response = client.get("/api/user/alice")

    assert response.status_code == 200
    assert len(upstream.calls) == 1


def test_upstream_404_is_replayed_from_cache(client: TestClient, upstream: FakeUpstreamClient) -> None:
    first = client.get("/api/user/ghost")
    second = client.get("/api/user/ghost")

    assert first.status_code == second.status_code == 404
    assert first.json() == second.json() == {"error": "User not found"}
    assert len(upstream.calls) == 1


def test_timeline_forwards_cursor(client: TestClient, upstream: FakeUpstreamClient) -> None:
    latest = client.get("/api/user/42/tweets")
    page = client.get("/api/user/42/tweets", params={"cursor": "abc"})

    assert latest.json()["cursor"] is None
    assert page.json()["cursor"] == "abc"
    assert upstream.calls == [
        ("/api/user/42/tweets", None),
        ("/api/user/42/tweets", {"cursor": "abc"}),
    ]


def test_empty_cursor_is_the_latest_page(client: TestClient, upstream: FakeUpstreamClient) -> None:
    client.get("/api/user/42/tweets")
    client.get("/api/user/42/tweets?cursor=")

    assert len(upstream.calls) == 1


def test_get_tweet(client: TestClient) -> None:
    response = client.get("/api/tweet/123")

    assert response.status_code == 200
    assert response.json() == {"path": "/api/tweet/123"}


def test_transport_failure_returns_empty_429_and_trips_quota(
    client: TestClient, upstream: FakeUpstreamClient
) -> None:
    failed = client.get("/api/tweet/broken")
    after = client.get("/api/tweet/123")

    assert failed.status_code == 429
    assert failed.content == b""
    assert after.status_code == 429
    assert upstream.paths() == ["/api/tweet/broken"]


def test_text_body_is_passed_through(client: TestClient) -> None:
    response = client.get("/api/tweet/plain")

    assert response.status_code == 502
    assert response.text == "Bad Gateway"


def test_unknown_route_returns_404(client: TestClient, upstream: FakeUpstreamClient) -> None:
    response = client.get("/api/unknown")

    assert response.status_code == 404
    assert response.json() == {"message": "Method not found"}
    assert upstream.calls == []


def test_request_id_is_forwarded_to_upstream_job(upstream: FakeUpstreamClient) -> None:
    seen: list[str | None] = []

    class RecordingUpstream(FakeUpstreamClient):
        async def fetch(self, path, *, params=None, request_id=None):
            seen.append(request_id)
            return await super().fetch(path, params=params, request_id=request_id)

    app = create_app(upstream_client=RecordingUpstream(_handler))
    with TestClient(app) as test_client:
        test_client.get("/api/tweet/9", headers={"X-Request-ID": "req-abc"})

    assert seen == ["req-abc"]


def test_health_reports_core_stats(client: TestClient) -> None:
    client.get("/api/tweet/1")
    client.get("/api/tweet/1")

    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["cache"]["hits"] == 1
    assert body["quota"]["count"] == 1
    assert body["dispatcher"]["running"] is True


def test_health_is_degraded_when_quota_tripped(client: TestClient) -> None:
    client.get("/api/tweet/broken")

    body = client.get("/health").json()

    assert body["status"] == "degraded"
    assert body["quota"]["tripped"] is True


def test_upstream_client_closed_on_shutdown(upstream: FakeUpstreamClient) -> None:
    app = create_app(upstream_client=upstream)
    with TestClient(app) as test_client:
        test_client.get("/api/tweet/1")

    assert upstream.closed is True


def test_routes_without_lifespan_return_503(upstream: FakeUpstreamClient) -> None:
    app = create_app(upstream_client=upstream)
    test_client = TestClient(app)

    response = test_client.get("/api/tweet/1")

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "proxy_not_started"


def test_unexpected_failure_returns_bare_500(
    upstream: FakeUpstreamClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def explode(self, post_id, *, request_id=None):
        raise RuntimeError("cache corrupted at 0xdeadbeef")

    monkeypatch.setattr(ProxyService, "lookup_post", explode)
    app = create_app(upstream_client=upstream)

    with TestClient(app, raise_server_exceptions=False) as test_client:
        response = test_client.get("/api/tweet/1")

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error"}
    assert "deadbeef" not in response.text
