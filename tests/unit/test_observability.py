"""Tests for request-ID correlation, request metrics and logging setup."""

import logging
import uuid

import pytest
import structlog
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY
from structlog.testing import capture_logs

from dirshare.api.modules.shares import service as share_service
from dirshare.observability import logging as obs_logging
from dirshare.observability.middleware import _normalize_path


@pytest.fixture
def client(app):
    return TestClient(app)


def _sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_request_id_generated(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "dirshare"}
    assert uuid.UUID(response.headers["X-Request-ID"])


def test_request_id_from_header(client):
    rid = str(uuid.uuid4())
    response = client.get("/health", headers={"X-Request-ID": rid})
    assert response.headers["X-Request-ID"] == rid


def test_malformed_request_id_replaced(client):
    response = client.get("/health", headers={"X-Request-ID": "bad id!"})
    assert response.headers["X-Request-ID"] != "bad id!"
    assert uuid.UUID(response.headers["X-Request-ID"])


def test_request_id_on_error_responses(client):
    response = client.get("/api/browse", params={"path": "missing"})
    assert response.status_code == 404
    assert "X-Request-ID" in response.headers


def test_request_completed_logged(client):
    with capture_logs() as logs:
        client.get("/api/browse", params={"path": "docs"})
    entries = [e for e in logs if e["event"] == "request_completed"]
    assert entries
    assert entries[-1]["path"] == "/api/browse"
    assert entries[-1]["status"] == 200


def test_request_id_bound_for_handlers(app, client):
    @app.get("/ctx")
    async def ctx():
        return structlog.contextvars.get_contextvars()

    rid = str(uuid.uuid4())
    response = client.get("/ctx", headers={"X-Request-ID": rid})
    assert response.json()["request_id"] == rid
    assert response.headers["X-Request-ID"] == rid


def test_share_token_bound_during_download(client, monkeypatch):
    real_open = share_service.open_transfer
    seen = []

    async def recording_open(*args, **kwargs):
        seen.append(structlog.contextvars.get_contextvars())
        return await real_open(*args, **kwargs)

    monkeypatch.setattr(share_service, "open_transfer", recording_open)
    token = client.post("/api/share", params={"path": "data.bin"}).json()["token"]
    response = client.get(f"/direct-download/{token}")

    assert response.status_code == 200
    assert len(seen) == 1
    assert seen[0]["share_token"] == token
    assert seen[0]["request_id"] == response.headers["X-Request-ID"]


@pytest.mark.parametrize("raw, expected", [
    ("/share/0b6f6f2c-1d52-4cc4-9a9e-6a1b0b5a4a11", "/share/{token}"),
    ("/direct-download/anything", "/direct-download/{token}"),
    ("/api/browse", "/api/browse"),
    ("/share/a/b", "/share/a/b"),
])
def test_normalize_path(raw, expected):
    assert _normalize_path(raw) == expected


def test_share_tokens_not_used_as_metric_labels(client):
    before = _sample(
        "http_server_requests_total",
        method="GET", path="/direct-download/{token}", status="404",
    )
    client.get(f"/direct-download/{uuid.uuid4()}")
    after = _sample(
        "http_server_requests_total",
        method="GET", path="/direct-download/{token}", status="404",
    )
    assert after == before + 1


def test_share_metrics(client, root_dir):
    created = _sample("dirshare_shares_created_total")
    ok = _sample("dirshare_share_redemptions_total", outcome="ok")
    sent = _sample("dirshare_bytes_sent_total")

    token = client.post("/api/share", params={"path": "data.bin"}).json()["token"]
    client.get(f"/direct-download/{token}")

    assert _sample("dirshare_shares_created_total") == created + 1
    assert _sample("dirshare_share_redemptions_total", outcome="ok") == ok + 1
    assert _sample("dirshare_bytes_sent_total") == sent + 1024


def test_path_rejection_metric(client, root_dir, outside_dir):
    (root_dir / "escape").symlink_to(outside_dir)
    before = _sample("dirshare_path_rejections_total", reason="outside_root")
    client.get("/api/browse", params={"path": "escape"})
    assert _sample("dirshare_path_rejections_total", reason="outside_root") == before + 1


def test_metrics_endpoint(client):
    client.get("/health")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "http_server_requests_total" in response.text
    assert "dirshare_shares_created_total" in response.text


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def isolate(self, monkeypatch):
        calls = []
        monkeypatch.setattr(obs_logging, "_configured", False)
        monkeypatch.setattr(structlog, "configure", lambda **kw: calls.append(kw))
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        yield calls
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    def test_configures_once(self, isolate):
        obs_logging.configure_logging(level="DEBUG")
        obs_logging.configure_logging(level="ERROR")
        assert len(isolate) == 1
        assert logging.getLogger().level == logging.DEBUG

    def test_json_renderer_by_default(self, isolate, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        obs_logging.configure_logging()
        handler = logging.getLogger().handlers[-1]
        assert isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter)
        assert any(
            isinstance(p, structlog.processors.JSONRenderer)
            for p in handler.formatter.processors
        )

    def test_context_merged_first(self, isolate):
        obs_logging.configure_logging()
        processors = isolate[0]["processors"]
        assert processors[0] is structlog.contextvars.merge_contextvars
