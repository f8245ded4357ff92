"""Global exception handlers.

Every error leaves the API as ``{error, detail, request_id, ...}`` JSON.
Tracebacks go to the server log only.  Domain errors
(:class:`~liveforge.errors.LiveForgeError`) carry their own status code
and may add top-level keys such as ``buildId``.
"""

import logging
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from liveforge.errors import LiveForgeError, format_error_response

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    # Bare apps in unit tests have no RequestIDMiddleware.
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _where(request: Request) -> str:
    return f"{request.method} {request.url.path} [request_id={_request_id(request)}]"


def _respond(
    request: Request,
    status_code: int,
    error: str,
    detail: object = None,
    extra: dict | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=format_error_response(
            error=error, detail=detail, request_id=_request_id(request), extra=extra,
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything nobody else handled: 500 with a generic message."""
    logger.error("Unhandled exception on %s", _where(request), exc_info=exc)
    return _respond(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "Internal server error",
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """``HTTPException`` keeps its status; the detail doubles as the error title."""
    logger.warning("HTTP %s on %s: %s", exc.status_code, _where(request), exc.detail)
    message = str(exc.detail) if exc.detail else "Error"
    return _respond(request, exc.status_code, message, message)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies: 422 with pydantic's error list minus ``ctx``."""
    errors = [{k: v for k, v in e.items() if k != "ctx"} for e in exc.errors()]
    logger.warning("Validation error on %s: %s", _where(request), errors)
    return _respond(
        request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", errors,
    )


async def liveforge_error_handler(request: Request, exc: LiveForgeError) -> JSONResponse:
    """Domain errors map straight to their ``status_code``."""
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, "%s on %s: %s", type(exc).__name__, _where(request), exc)
    return _respond(request, exc.status_code, str(exc), str(exc), extra=exc.extra())


def setup_exception_handlers(app: FastAPI) -> None:
    """Register every handler on *app* (before the routers are included)."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(LiveForgeError, liveforge_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
