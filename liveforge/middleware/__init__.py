"""Request-ID middleware -- tags every HTTP exchange with a trace id.

Pure ASGI rather than ``BaseHTTPMiddleware`` so the live build event
stream is forwarded frame by frame instead of being buffered.
"""

import re
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

REQUEST_ID_HEADER = b"x-request-id"

# Client-supplied ids are echoed into logs and headers, so keep them tame.
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(raw: bytes | None) -> str:
    """Reuse the caller's id when it is well formed, else mint a UUID-4."""
    if raw:
        candidate = raw.decode("latin-1").strip()
        if _VALID_REQUEST_ID.match(candidate):
            return candidate
    return str(uuid.uuid4())


class RequestIDMiddleware:
    """Stores the id in ``scope["state"]["request_id"]`` and echoes it as ``X-Request-ID``."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = next(
            (value for name, value in scope.get("headers", []) if name == REQUEST_ID_HEADER),
            None,
        )
        request_id = resolve_request_id(incoming)
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_tagged(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = [
                    (name, value) for name, value in message.get("headers", [])
                    if name != REQUEST_ID_HEADER
                ]
                headers.append((REQUEST_ID_HEADER, request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_tagged)
