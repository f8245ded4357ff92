"""Tests for the AccessLogMiddleware."""

import logging

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from fastapi.testclient import TestClient

from liveforge.middleware import RequestIDMiddleware
from liveforge.middleware.access_log import AccessLogMiddleware


@pytest.fixture()
def test_app() -> FastAPI:
    """Standalone FastAPI app with both middleware layers."""
    app = FastAPI()

    # AccessLogMiddleware innermost (added first), RequestIDMiddleware outermost.
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/api/ok")
    async def _ok():
        return {"status": "ok"}

    @app.get("/api/fail")
    async def _fail():
        raise HTTPException(400, detail="bad input")

    @app.get("/api/server_error")
    async def _server_error():
        raise RuntimeError("boom")

    @app.get("/api/stream")
    async def _stream():
        async def frames():
            yield "data: {}\n\n"
            yield "data: {}\n\n"
        return StreamingResponse(frames(), media_type="text/event-stream")

    @app.get("/health")
    async def _health():
        return {"status": "healthy"}

    return app


@pytest.fixture()
def client(test_app: FastAPI) -> TestClient:
    return TestClient(test_app, raise_server_exceptions=False)


def _metric_records(caplog):
    return [r for r in caplog.records if "METRIC" in r.message]


class TestAccessLogMiddleware:
    """Access log middleware emits structured METRIC lines."""

    def test_successful_request_logged(self, client: TestClient, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="liveforge.access"):
            client.get("/api/ok")
        [record] = _metric_records(caplog)
        line = record.message
        assert "type=http_request" in line
        assert "method=GET" in line
        assert "path=/api/ok" in line
        assert "status=200" in line
        assert "wall_ms=" in line
        assert record.levelno == logging.INFO

    def test_error_request_logged_with_detail(self, client: TestClient, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="liveforge.access"):
            client.get("/api/fail")
        [record] = _metric_records(caplog)
        assert "status=400" in record.message
        assert "error=bad input" in record.message
        assert record.levelno == logging.WARNING

    def test_server_error_logged(self, client: TestClient, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="liveforge.access"):
            client.get("/api/server_error")
        [record] = _metric_records(caplog)
        assert "status=500" in record.message
        assert record.levelno == logging.ERROR

    def test_stream_logged_once(self, client: TestClient, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="liveforge.access"):
            response = client.get("/api/stream")
        assert response.text == "data: {}\n\ndata: {}\n\n"
        [record] = _metric_records(caplog)
        assert "path=/api/stream" in record.message
        assert "frames=2" in record.message
        assert "bytes=20" in record.message

    def test_health_check_not_logged(self, client: TestClient, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="liveforge.access"):
            client.get("/health")
        assert _metric_records(caplog) == []

    def test_request_id_present(self, client: TestClient, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="liveforge.access"):
            client.get("/api/ok", headers={"X-Request-ID": "abc-123"})
        [record] = _metric_records(caplog)
        assert "req_id=abc-123" in record.message

    def test_plain_response_has_no_frame_count(self, client: TestClient, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="liveforge.access"):
            client.get("/api/ok")
        [record] = _metric_records(caplog)
        assert "frames=" not in record.message
