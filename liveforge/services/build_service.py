"""Build service -- entry points behind the build routes.

Starts live builds, reads build records and statistics, and checks stored
chain proofs against the ledger.  No HTTP framework types in here.
"""

import logging
from typing import Any, AsyncIterator

from liveforge.clients.content_generator import ContentGenerator
from liveforge.clients.ledger_client import LedgerClient
from liveforge.errors import BadRequestError, BuildNotFoundError, LedgerError
from liveforge.repos.build_store import BuildStore
from liveforge.schemas import BuildRecord
from liveforge.services.build.events import EmitFn
from liveforge.services.build.orchestrator import BuildOrchestrator
from liveforge.services.build.stream import open_stream
from liveforge.services.stats_service import compute_stats, summarize_builds

logger = logging.getLogger(__name__)

MAX_PROMPT_CHARS = 4000


def require_prompt(prompt: Any) -> str:
    """Return *prompt* if it can start a build, else raise :class:`BadRequestError`."""
    if prompt is not None and not isinstance(prompt, str):
        raise BadRequestError("Prompt must be a string")
    if not prompt or not prompt.strip():
        raise BadRequestError("Prompt is required")
    if len(prompt) > MAX_PROMPT_CHARS:
        raise BadRequestError(f"Prompt must be at most {MAX_PROMPT_CHARS} characters")
    return prompt


def start_live_build(
    prompt: str | None,
    *,
    store: BuildStore,
    generator: ContentGenerator,
    ledger: LedgerClient,
) -> AsyncIterator[str]:
    """Validate *prompt*, start the build in the background and return its frames.

    An invalid prompt raises :class:`BadRequestError` before any record is
    created.
    """
    prompt = require_prompt(prompt)

    async def _run(emit: EmitFn) -> None:
        orchestrator = BuildOrchestrator(store, generator, ledger, emit)
        await orchestrator.run(prompt)

    return open_stream(_run)


async def list_builds(store: BuildStore) -> dict:
    return summarize_builds(await store.list_all())


async def get_build(store: BuildStore, build_id: str) -> BuildRecord:
    record = await store.get(build_id)
    if record is None:
        raise BuildNotFoundError(build_id)
    return record


async def get_stats(store: BuildStore) -> dict:
    return compute_stats(await store.list_all())


def _entries_by_signature(data: dict[str, Any] | None) -> dict[str, dict]:
    if not data:
        return {}
    entries = data.get("entries") or []
    return {e["signature"]: e for e in entries if isinstance(e, dict) and e.get("signature")}


async def verify_build(store: BuildStore, ledger: LedgerClient, build_id: str) -> dict:
    """Compare a build's stored chain proofs with what the ledger holds.

    A proof is on-ledger when an entry with its reference id exists and the
    entry's content hash starts with the proof's short fingerprint.  Ledger
    failures are reported as ``available: False`` rather than raised.
    """
    record = await get_build(store, build_id)
    account = ledger.derive_account(build_id)

    available = True
    try:
        data = await ledger.read_record(account)
    except LedgerError as exc:
        logger.warning("Verification of %s: ledger unavailable: %s", build_id, exc)
        available = False
        data = None

    entries = _entries_by_signature(data)
    proofs = []
    for proof in record.chain_proofs:
        entry = entries.get(proof.tx_hash)
        on_ledger = False
        if entry is not None:
            content_hash = (entry.get("payload") or {}).get("contentHash", "")
            on_ledger = content_hash.startswith(proof.fingerprint.removesuffix("..."))
        proofs.append({"step": proof.step, "txHash": proof.tx_hash, "onLedger": on_ledger})

    return {
        "buildId": build_id,
        "account": account,
        "available": available,
        "verified": available and bool(proofs) and all(p["onLedger"] for p in proofs),
        "proofs": proofs,
    }
