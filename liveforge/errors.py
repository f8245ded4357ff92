"""Domain exception hierarchy for LiveForge.

Services raise these instead of bare ``ValueError`` so that the global
exception handler can map them to the correct HTTP status code.  Inside a
running build, anything that is not a :class:`GenerationError` or
:class:`LedgerError` caught at its call site is a fatal orchestration error.
"""


class LiveForgeError(Exception):
    """Base for all domain exceptions."""

    def __init__(self, message: str = "An unexpected error occurred", *, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code

    def extra(self) -> dict:
        """Additional keys merged into the JSON error response."""
        return {}


class NotFoundError(LiveForgeError):
    """Resource not found (404)."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)


class BuildNotFoundError(NotFoundError):
    """No build record with the given id (404)."""

    def __init__(self, build_id: str):
        super().__init__("Build not found")
        self.build_id = build_id

    def extra(self) -> dict:
        return {"buildId": self.build_id}


class BadRequestError(LiveForgeError):
    """Client sent an invalid request (400)."""

    def __init__(self, message: str = "Bad request"):
        super().__init__(message, status_code=400)


class InvariantViolation(LiveForgeError):
    """A build record mutation would break an append-only or terminal-state rule."""

    def __init__(self, message: str = "Build record invariant violated"):
        super().__init__(message, status_code=409)


class GenerationError(LiveForgeError):
    """The content generator is unavailable or returned nothing usable (502)."""

    def __init__(self, message: str = "Content generation failed"):
        super().__init__(message, status_code=502)


class LedgerError(LiveForgeError):
    """The verification ledger rejected or could not accept a request (502)."""

    def __init__(self, message: str = "Ledger request failed"):
        super().__init__(message, status_code=502)


def format_error_response(
    *,
    error: str,
    detail: object = None,
    request_id: str = "",
    extra: dict | None = None,
) -> dict:
    """Build a structured error response dict.

    Parameters
    ----------
    error : str
        Short error title (e.g. ``"Internal Server Error"``).
    detail : object
        Human-readable detail string or validation error list.
    request_id : str
        The request ID for tracing.
    extra : dict | None
        Domain-specific keys (e.g. ``buildId``) added at the top level.

    Returns
    -------
    dict
        ``{"error": ..., "detail": ..., "request_id": ..., **extra}``
    """
    body = {
        "error": error,
        "detail": detail if detail is not None else error,
        "request_id": request_id,
    }
    if extra:
        body.update(extra)
    return body
