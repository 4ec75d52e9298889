"""Tests for the keyrotation HTTP surface — dashboard, health and /v1/generate.

TESTING STRATEGY:
    TestClient is used WITHOUT the context manager so the lifespan (config
    loading, env var validation) does not run. app.state is populated by hand.
"""

from __future__ import annotations

from typing import Optional

import httpx
from fastapi.testclient import TestClient

from keyrotation.dashboard.api import build_status, format_status_lines
from keyrotation.generator.client import ContentGeneratorClient
from keyrotation.rotation.rotator import CredentialRotator

KEYS = "AIzaSyKeyAlpha0001;AIzaSyKeyBravo0002;AIzaSyKeyCharlie003"


def _configured_client(
    rotator: Optional[CredentialRotator],
    ready: bool = True,
    handler=None,
) -> TestClient:
    from keyrotation.main import create_app

    app = create_app()
    app.state.ready = ready
    app.state.rotator = rotator
    if rotator is not None and handler is not None:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        app.state.generator = ContentGeneratorClient(
            rotator, http_client, base_url="https://upstream.test", model="gemini-test"
        )
    return TestClient(app, raise_server_exceptions=False)


def _deactivate_first(rotator: CredentialRotator) -> None:
    for _ in range(rotator.config.max_errors_per_key):
        rotator.report_error("HTTP 429: quota")


# ─── Status helpers ──────────────────────────────────────────────────────────


class TestBuildStatus:
    def test_fresh(self) -> None:
        status = build_status(CredentialRotator(KEYS))
        assert status == {
            "current": "API 1/3 (AIzaSyKe******0001)",
            "active_count": 3,
            "total_count": 3,
            "strategy": "round-robin",
            "max_errors_per_key": 3,
            "cooldown_period_ms": 60_000,
        }

    def test_exhausted_current_is_none(self) -> None:
        rotator = CredentialRotator("AIzaSyKeyAlpha0001", {"max_errors_per_key": 1})
        rotator.report_error("dead")
        status = build_status(rotator)
        assert status["current"] is None
        assert status["active_count"] == 0

    def test_does_not_stamp_last_used(self) -> None:
        rotator = CredentialRotator(KEYS)
        build_status(rotator)
        format_status_lines(rotator)
        assert all(c.last_used is None for c in rotator.get_all_status())


class TestFormatStatusLines:
    def test_all_active(self) -> None:
        lines = format_status_lines(CredentialRotator(KEYS))
        assert lines == ["API Status: API 1/3 (AIzaSyKe******0001) (3/3 active)"]

    def test_inactive_keys_listed(self) -> None:
        rotator = CredentialRotator(KEYS)
        _deactivate_first(rotator)
        lines = format_status_lines(rotator)
        assert lines[0] == "API Status: API 2/3 (AIzaSyKe******0002) (2/3 active)"
        assert lines[1] == "Inactive keys:"
        assert lines[2] == "  API 1 (AIzaSyKe******0001) - 3 errors (last: HTTP 429: quota)"

    def test_no_full_key_in_output(self) -> None:
        rotator = CredentialRotator(KEYS)
        _deactivate_first(rotator)
        text = "\n".join(format_status_lines(rotator))
        for credential in rotator.get_all_status():
            assert credential.value not in text


# ─── GET /dashboard/api/status, /keys ────────────────────────────────────────


class TestDashboardEndpoints:
    def test_status(self) -> None:
        client = _configured_client(CredentialRotator(KEYS))
        resp = client.get("/dashboard/api/status")
        assert resp.status_code == 200
        body = resp.json()
        assert body["active_count"] == 3
        assert body["total_count"] == 3
        assert body["current"] == "API 1/3 (AIzaSyKe******0001)"

    def test_status_without_rotator_is_503(self) -> None:
        client = _configured_client(None)
        assert client.get("/dashboard/api/status").status_code == 503

    def test_keys_are_masked(self) -> None:
        rotator = CredentialRotator(KEYS)
        _deactivate_first(rotator)
        client = _configured_client(rotator)
        resp = client.get("/dashboard/api/keys")
        assert resp.status_code == 200
        assert "AIzaSyKeyAlpha0001" not in resp.text
        keys = resp.json()["keys"]
        assert [k["index"] for k in keys] == [0, 1, 2]
        assert keys[0] == {
            "index": 0,
            "label": "API 1",
            "masked_key": "AIzaSyKe******0001",
            "active": False,
            "error_count": 3,
            "last_used": None,
            "last_error": "HTTP 429: quota",
        }
        assert keys[1]["active"] is True

    def test_dashboard_reads_do_not_mutate(self) -> None:
        rotator = CredentialRotator(KEYS)
        client = _configured_client(rotator)
        before = rotator.get_all_status()
        client.get("/dashboard/api/status")
        client.get("/dashboard/api/keys")
        assert rotator.get_all_status() == before
        assert rotator.current_index == 0


# ─── GET /health ──────────────────────────────────────────────────────────────


class TestHealth:
    def test_starting(self) -> None:
        client = _configured_client(CredentialRotator(KEYS), ready=False)
        resp = client.get("/health")
        assert resp.status_code == 503
        assert resp.json()["status"] == "starting"

    def test_ok(self) -> None:
        client = _configured_client(CredentialRotator(KEYS))
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "active_keys": 3, "total_keys": 3}

    def test_degraded_when_all_inactive(self) -> None:
        rotator = CredentialRotator("AIzaSyKeyAlpha0001", {"max_errors_per_key": 1})
        rotator.report_error("dead")
        resp = _configured_client(rotator).get("/health")
        assert resp.status_code == 503
        assert resp.json()["status"] == "degraded"

    def test_unconfigured(self) -> None:
        resp = _configured_client(None).get("/health")
        assert resp.status_code == 503
        assert resp.json()["status"] == "unconfigured"


# ─── POST /v1/generate ────────────────────────────────────────────────────────


class TestGenerate:
    BODY = {"contents": [{"role": "user", "parts": [{"text": "hello"}]}]}

    def test_success_labels_key(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"candidates": []})

        client = _configured_client(CredentialRotator(KEYS), handler=handler)
        resp = client.post("/v1/generate", json=self.BODY)
        assert resp.status_code == 200
        assert resp.json() == {"candidates": []}
        assert resp.headers["X-Keyrotation-Key"] == "API 1/3"

    def test_quota_error_rotates(self) -> None:
        statuses = [429, 200]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(statuses.pop(0), json={"error": {"message": "quota"}})

        rotator = CredentialRotator(KEYS)
        client = _configured_client(rotator, handler=handler)

        resp = client.post("/v1/generate", json=self.BODY)
        assert resp.status_code == 502
        assert resp.json()["error"] == {
            "message": "HTTP 429: quota",
            "status_code": 429,
            "rotated": True,
        }

        resp = client.post("/v1/generate", json=self.BODY)
        assert resp.status_code == 200
        assert resp.headers["X-Keyrotation-Key"] == "API 2/3"

    def test_no_active_keys_is_503(self) -> None:
        rotator = CredentialRotator("AIzaSyKeyAlpha0001", {"max_errors_per_key": 1})
        rotator.report_error("dead")
        client = _configured_client(rotator, handler=lambda r: httpx.Response(200, json={}))
        resp = client.post("/v1/generate", json=self.BODY)
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "no_active_credentials"

    def test_not_ready_is_503(self) -> None:
        client = _configured_client(CredentialRotator(KEYS), ready=False)
        assert client.post("/v1/generate", json=self.BODY).status_code == 503

    def test_invalid_body_is_422(self) -> None:
        client = _configured_client(CredentialRotator(KEYS), handler=lambda r: httpx.Response(200, json={}))
        assert client.post("/v1/generate", json={"model": "x"}).status_code == 422
