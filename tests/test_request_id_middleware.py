from __future__ import annotations

from fastapi.testclient import TestClient

from fakes import FakeUpstreamClient
from feed_proxy.core.app_factory import create_app


def _client() -> TestClient:
    return TestClient(create_app(upstream_client=FakeUpstreamClient()))


def test_preserves_incoming_request_id_header():
    incoming_id = "test-request-id-123"
    with _client() as client:
        resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    with _client() as client:
        resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None
    assert float(duration) >= 0


def test_each_request_gets_its_own_id():
    with _client() as client:
        first = client.get("/api/tweet/1").headers["X-Request-ID"]
        second = client.get("/api/tweet/1").headers["X-Request-ID"]

    assert first != second


def test_request_id_header_set_on_unmatched_route():
    with _client() as client:
        resp = client.get("/nope", headers={"X-Request-ID": "abc-404"})

    assert resp.status_code == 404
    assert resp.headers["X-Request-ID"] == "abc-404"
    assert resp.json() == {"message": "Method not found"}
