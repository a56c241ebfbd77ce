"""
HTTP surface: status mapping, base64 media, direct-fetch fallback, health.
"""

import base64
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from conftest import CDN_URL, TIKTOK_URL
from fakes import fast_settings
from reelresolver import main
from reelresolver.errors import (
    DownloadFailedError,
    EngineUnavailableError,
    NavigationTimeoutError,
    NoVideoFoundError,
    ResolutionTimeoutError,
    UnsupportedPlatformError,
)
from reelresolver.models import DownloadResult, Platform, ResolvedVideo, StrategyKind


class StubEngine:
    """Replaces the global engine; returns a canned result or raises."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.settings = fast_settings()
        self.sessions = SimpleNamespace(is_connected=False)
        self.calls = []

    async def resolve(self, source_url, timeout=None):
        self.calls.append((source_url, timeout))
        if self.error is not None:
            raise self.error
        return self.result


def _resolved(buffer=None, download_error=None) -> ResolvedVideo:
    return ResolvedVideo(
        media_url=CDN_URL,
        platform=Platform.TIKTOK,
        title="dance #fyp",
        author="scout2015",
        strategy=StrategyKind.EMBEDDED_STATE,
        media_buffer=buffer,
        content_type="video/mp4" if buffer else None,
        download_error=download_error,
    )


@pytest.fixture
def client():
    return TestClient(main.app)


@pytest.fixture
def use_engine(monkeypatch):
    def install(stub):
        monkeypatch.setattr(main, "engine", stub)
        return stub
    return install


def test_resolve_url_only(client, use_engine):
    stub = use_engine(StubEngine(result=_resolved(buffer=b"video")))

    resp = client.post("/api/v1/resolve", json={"source_url": TIKTOK_URL, "timeout_seconds": 30})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["method"] == "url"
    assert body["media_url"] == CDN_URL
    assert body["strategy"] == "embedded_state"
    assert body["file_data"] is None
    assert body["file_size_bytes"] == 5
    assert stub.calls == [(TIKTOK_URL, 30.0)]


def test_resolve_include_media_base64(client, use_engine):
    use_engine(StubEngine(result=_resolved(buffer=b"video")))

    resp = client.post("/api/v1/resolve", json={"source_url": TIKTOK_URL, "include_media": True})

    body = resp.json()
    assert body["method"] == "base64"
    assert base64.b64decode(body["file_data"]) == b"video"
    assert body["content_type"] == "video/mp4"


def test_direct_fetch_fallback(client, use_engine, monkeypatch):
    failed = DownloadFailedError("HTTP 403", status=403).to_detail()
    use_engine(StubEngine(result=_resolved(download_error=failed)))
    seen = {}

    async def fake_fetch(url, referer=None, max_bytes=0, timeout=0):
        seen.update(url=url, referer=referer)
        return DownloadResult(media_url=url, buffer=b"direct", content_type="video/mp4")

    monkeypatch.setattr(main, "fetch_direct", fake_fetch)

    body = client.post("/api/v1/resolve", json={"source_url": TIKTOK_URL, "include_media": True}).json()

    assert body["method"] == "base64"
    assert base64.b64decode(body["file_data"]) == b"direct"
    assert body["download_error"] is None
    assert seen == {"url": CDN_URL, "referer": TIKTOK_URL}


def test_direct_fetch_failure_reports_download_error(client, use_engine, monkeypatch):
    use_engine(StubEngine(result=_resolved()))

    async def fake_fetch(url, **kwargs):
        raise DownloadFailedError("HTTP 403", status=403)

    monkeypatch.setattr(main, "fetch_direct", fake_fetch)

    resp = client.post("/api/v1/resolve", json={"source_url": TIKTOK_URL, "include_media": True})

    assert resp.status_code == 200
    body = resp.json()
    assert body["method"] == "url"
    assert body["media_url"] == CDN_URL
    assert body["download_error"]["code"] == "DOWNLOAD_FAILED"


def test_fallback_disabled_skips_direct_fetch(client, use_engine, monkeypatch):
    use_engine(StubEngine(result=_resolved()))

    async def fail_fetch(url, **kwargs):
        raise AssertionError("direct fetch must not run")

    monkeypatch.setattr(main, "fetch_direct", fail_fetch)

    body = client.post(
        "/api/v1/resolve",
        json={"source_url": TIKTOK_URL, "include_media": True, "direct_fetch_fallback": False},
    ).json()
    assert body["method"] == "url"


@pytest.mark.parametrize("error,status,code", [
    (UnsupportedPlatformError("https://example.com"), 400, "UNSUPPORTED_PLATFORM"),
    (NoVideoFoundError("nothing on the page"), 404, "NO_VIDEO_FOUND"),
    (EngineUnavailableError("BROWSERLESS_TOKEN environment variable is not set"), 503, "ENGINE_UNAVAILABLE"),
    (NavigationTimeoutError(TIKTOK_URL, ["networkidle", "domcontentloaded", "load"]), 504, "NAVIGATION_TIMEOUT"),
    (ResolutionTimeoutError("took too long"), 504, "REQUEST_TIMEOUT"),
])
def test_error_status_mapping(client, use_engine, error, status, code):
    use_engine(StubEngine(error=error))
    failed_before = main.stats["failed_resolutions"]

    resp = client.post("/api/v1/resolve", json={"source_url": TIKTOK_URL})

    assert resp.status_code == status
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == code
    assert body["error"]["is_transient"] is error.is_transient
    assert main.stats["failed_resolutions"] == failed_before + 1
    assert main.stats["active_resolutions"] == 0


def test_unexpected_error_is_500(client, use_engine):
    use_engine(StubEngine(error=RuntimeError("boom")))

    resp = client.post("/api/v1/resolve", json={"source_url": TIKTOK_URL})

    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "SERVER_ERROR"


def test_missing_source_url_is_422(client):
    assert client.post("/api/v1/resolve", json={}).status_code == 422


def test_platforms(client):
    body = client.get("/api/v1/platforms").json()
    assert body["total"] == 2
    assert {p["platform"] for p in body["platforms"]} == {"tiktok", "instagram"}


def test_health(client, use_engine):
    use_engine(StubEngine())
    body = client.get("/api/v1/health").json()
    assert body["status"] == "healthy"
    assert body["engine_connected"] is False
    assert body["browser_mode"] == "launch"
    assert set(body["stats"]) == {"total_resolutions", "active_resolutions", "failed_resolutions"}


def test_root_and_unknown_endpoint(client):
    assert client.get("/").json()["endpoints"]["resolve"] == "/api/v1/resolve"
    resp = client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert "not found" in resp.json()["detail"]
