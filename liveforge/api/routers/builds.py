"""Builds router -- live build stream, build records and statistics."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from liveforge.api.deps import (
    get_build_limiter,
    get_build_store,
    get_content_generator,
    get_ledger_client,
)
from liveforge.api.rate_limit import RateLimiter
from liveforge.clients.content_generator import ContentGenerator
from liveforge.clients.ledger_client import LedgerClient
from liveforge.repos.build_store import BuildStore
from liveforge.services import build_service

router = APIRouter(tags=["builds"])

# Proxies must not buffer the event stream.
_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class LiveBuildRequest(BaseModel):
    """Request body for starting a live build.

    ``prompt`` is checked by :func:`build_service.require_prompt` so that
    every prompt error answers 400.
    """
    prompt: Any = None


# ── POST /build/live ─────────────────────────────────────────────────────


@router.post("/build/live")
async def start_live_build(
    request: Request,
    body: LiveBuildRequest | None = None,
    store: BuildStore = Depends(get_build_store),
    generator: ContentGenerator = Depends(get_content_generator),
    ledger: LedgerClient = Depends(get_ledger_client),
    limiter: RateLimiter | None = Depends(get_build_limiter),
):
    """Start a build and stream its events as ``text/event-stream``."""
    prompt = build_service.require_prompt(body.prompt if body else None)

    client_key = request.client.host if request.client else "unknown"
    if limiter is not None and not limiter.is_allowed(client_key):
        raise HTTPException(status_code=429, detail="Build rate limit exceeded")

    frames = build_service.start_live_build(
        prompt,
        store=store,
        generator=generator,
        ledger=ledger,
    )
    return StreamingResponse(frames, media_type="text/event-stream", headers=_STREAM_HEADERS)


# ── GET /builds ──────────────────────────────────────────────────────────


@router.get("/builds")
async def list_builds(store: BuildStore = Depends(get_build_store)) -> dict:
    """List every build, newest first, with status counts."""
    return await build_service.list_builds(store)


@router.get("/builds/{build_id}")
async def get_build(build_id: str, store: BuildStore = Depends(get_build_store)):
    record = await build_service.get_build(store, build_id)
    return record.to_json_dict()


@router.get("/builds/{build_id}/verification")
async def verify_build(
    build_id: str,
    store: BuildStore = Depends(get_build_store),
    ledger: LedgerClient = Depends(get_ledger_client),
) -> dict:
    """Check the build's chain proofs against the ledger account."""
    return await build_service.verify_build(store, ledger, build_id)


# ── GET /stats ───────────────────────────────────────────────────────────


@router.get("/stats")
async def get_stats(store: BuildStore = Depends(get_build_store)) -> dict:
    return await build_service.get_stats(store)
