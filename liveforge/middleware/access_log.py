"""HTTP access log -- one structured ``METRIC`` line per request.

Line shape::

    METRIC | type=http_request | method=POST | path=/build/live | status=200
           | wall_ms=4120 | bytes=18234 | frames=31 | req_id=...

``frames`` appears only for ``text/event-stream`` responses and counts the
SSE frames sent.  For a live build ``wall_ms`` therefore spans the whole
build.  4xx/5xx lines add ``error=`` with the start of the JSON detail.

Writes to the ``liveforge.access`` logger.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("liveforge.access")

_SKIP_PREFIXES = ("/health", "/static", "/favicon.ico")
_MAX_ERROR_CHARS = 200


@dataclass
class _Exchange:
    method: str
    path: str
    request_id: str
    started: float = field(default_factory=time.perf_counter)
    status: int = 0
    sent_bytes: int = 0
    frames: int | None = None
    error: str = ""

    def observe(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status = message.get("status", 0)
            content_type = dict(message.get("headers", [])).get(b"content-type", b"")
            if content_type.startswith(b"text/event-stream"):
                self.frames = 0
        elif message["type"] == "http.response.body":
            body: bytes = message.get("body", b"")
            self.sent_bytes += len(body)
            if self.frames is not None:
                self.frames += body.count(b"\n\n")
            elif self.status >= 400 and body and not self.error:
                self.error = _error_summary(body)

    def line(self) -> str:
        parts = [
            "METRIC | type=http_request",
            f"method={self.method}",
            f"path={self.path}",
            f"status={self.status}",
            f"wall_ms={(time.perf_counter() - self.started) * 1000:.0f}",
            f"bytes={self.sent_bytes}",
        ]
        if self.frames is not None:
            parts.append(f"frames={self.frames}")
        parts.append(f"req_id={self.request_id}")
        if self.error:
            # "|" separates fields
            parts.append(f"error={self.error.replace('|', '/')}")
        return " | ".join(parts)


def _error_summary(body: bytes) -> str:
    try:
        payload = json.loads(body)
        return str(payload.get("detail", payload.get("error", "")))[:_MAX_ERROR_CHARS]
    except (ValueError, AttributeError):
        return body[:_MAX_ERROR_CHARS].decode("utf-8", errors="replace")


class AccessLogMiddleware:
    """Logs each non-skipped request at INFO, 4xx at WARNING, 5xx at ERROR."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        path: str = scope.get("path", "")
        if scope["type"] != "http" or path.startswith(_SKIP_PREFIXES):
            await self.app(scope, receive, send)
            return

        exchange = _Exchange(
            method=scope.get("method", "?"),
            path=path,
            request_id=scope.get("state", {}).get("request_id", "-"),
        )

        async def send_observed(message: Message) -> None:
            exchange.observe(message)
            await send(message)

        try:
            await self.app(scope, receive, send_observed)
        except Exception:
            # Raised before a response started
            if exchange.status == 0:
                exchange.status = 500
            raise
        finally:
            _log(exchange)


def _log(exchange: _Exchange) -> None:
    if exchange.status >= 500:
        level = logging.ERROR
    elif exchange.status >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO
    logger.log(level, exchange.line())
