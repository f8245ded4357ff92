"""Request dependencies -- the shared collaborators live on ``app.state``."""

from fastapi import Request

from liveforge.api.rate_limit import RateLimiter
from liveforge.clients.content_generator import ContentGenerator
from liveforge.clients.ledger_client import LedgerClient
from liveforge.repos.build_store import BuildStore


def get_build_store(request: Request) -> BuildStore:
    return request.app.state.build_store


def get_content_generator(request: Request) -> ContentGenerator:
    return request.app.state.content_generator


def get_ledger_client(request: Request) -> LedgerClient:
    return request.app.state.ledger_client


def get_build_limiter(request: Request) -> RateLimiter | None:
    """``None`` when build starts are not rate-limited."""
    return request.app.state.build_limiter
