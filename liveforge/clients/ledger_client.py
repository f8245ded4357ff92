"""Verification ledger clients -- append-only external log of build proofs.

A build registers one ledger account (derived from its build id) and
appends one record per verified step.  Three implementations share the
:class:`LedgerClient` protocol:

  * :class:`SimulatedLedgerClient` -- in-process log with realistic-looking
    account addresses and signatures (the default demo mode)
  * :class:`HttpLedgerClient` -- JSON relay service that signs and submits
    records to a real chain on our behalf
  * :class:`DisabledLedgerClient` -- every call fails; builds carry no proofs

Callers treat every ledger call as best-effort.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx
from cachetools import TTLCache

from liveforge.config import settings
from liveforge.errors import LedgerError

logger = logging.getLogger(__name__)

# Program the build accounts are derived under (the deployed logger program).
LOGGER_PROGRAM_ID = "GUyhK2AvkPcVwt4Q1ABmMsQTGvZphiAMaAnDWLSyZoSK"

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def b58encode(data: bytes) -> str:
    """Bitcoin-alphabet base58 encoding (leading zero bytes become ``1``)."""
    num = int.from_bytes(data, "big")
    out = []
    while num:
        num, rem = divmod(num, 58)
        out.append(BASE58_ALPHABET[rem])
    pad = len(data) - len(data.lstrip(b"\0"))
    return "1" * pad + "".join(reversed(out))


def derive_build_account(build_id: str, program_id: str = LOGGER_PROGRAM_ID) -> str:
    """Deterministic account address for a build (seeds: ``"build"`` + build id)."""
    digest = hashlib.sha256(b"build" + build_id.encode("utf-8") + program_id.encode("ascii")).digest()
    return b58encode(digest)


class LedgerClient(Protocol):
    def derive_account(self, build_id: str) -> str:
        ...

    async def submit_record(self, account_ref: str, payload: dict[str, Any]) -> str:
        """Append *payload* under *account_ref*; return the reference id (signature)."""
        ...

    async def read_record(self, account_ref: str) -> dict[str, Any] | None:
        """Return ``{"account": ..., "entries": [...]}`` or ``None`` if unknown."""
        ...


# ---------------------------------------------------------------------------
# Simulated
# ---------------------------------------------------------------------------


class SimulatedLedgerClient:
    """In-process append-only ledger."""

    def __init__(self) -> None:
        self._accounts: dict[str, list[dict[str, Any]]] = {}
        self._slot = 0

    def derive_account(self, build_id: str) -> str:
        return derive_build_account(build_id)

    async def submit_record(self, account_ref: str, payload: dict[str, Any]) -> str:
        signature = b58encode(secrets.token_bytes(64))
        self._slot += 1
        self._accounts.setdefault(account_ref, []).append({
            "signature": signature,
            "slot": self._slot,
            "payload": dict(payload),
            "recordedAt": datetime.now(timezone.utc).isoformat(),
        })
        return signature

    async def read_record(self, account_ref: str) -> dict[str, Any] | None:
        entries = self._accounts.get(account_ref)
        if entries is None:
            return None
        return {"account": account_ref, "entries": [dict(e) for e in entries]}


# ---------------------------------------------------------------------------
# HTTP relay
# ---------------------------------------------------------------------------

_client: httpx.AsyncClient | None = None


def _get_client() -> httpx.AsyncClient:
    """Return (or create) the shared httpx client for ledger relay calls."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=settings.LEDGER_TIMEOUT_SECONDS)
    return _client


async def close_client() -> None:
    """Close the shared ledger HTTP client.  Called during app shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


class HttpLedgerClient:
    """Talks to a relay exposing ``/accounts/{account}`` and ``/accounts/{account}/records``."""

    def __init__(self, base_url: str, api_key: str = "", *, cache_ttl: int = 30) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        # Reads are cached briefly; a submit invalidates its account.
        self._read_cache: TTLCache[str, dict] = TTLCache(maxsize=500, ttl=max(cache_ttl, 1))

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def derive_account(self, build_id: str) -> str:
        return derive_build_account(build_id)

    async def submit_record(self, account_ref: str, payload: dict[str, Any]) -> str:
        client = _get_client()
        try:
            response = await client.post(
                f"{self.base_url}/accounts/{account_ref}/records",
                json=payload,
                headers=self._headers(),
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LedgerError(f"Ledger submit failed: {exc}") from exc

        signature = data.get("signature")
        if not signature:
            raise LedgerError("Ledger relay returned no signature")
        self._read_cache.pop(account_ref, None)
        return signature

    async def read_record(self, account_ref: str) -> dict[str, Any] | None:
        cached = self._read_cache.get(account_ref)
        if cached is not None:
            return cached

        client = _get_client()
        try:
            response = await client.get(
                f"{self.base_url}/accounts/{account_ref}",
                headers=self._headers(),
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LedgerError(f"Ledger read failed: {exc}") from exc

        self._read_cache[account_ref] = data
        return data


# ---------------------------------------------------------------------------
# Disabled
# ---------------------------------------------------------------------------


class DisabledLedgerClient:
    def derive_account(self, build_id: str) -> str:
        return derive_build_account(build_id)

    async def submit_record(self, account_ref: str, payload: dict[str, Any]) -> str:
        raise LedgerError("On-chain logging is disabled")

    async def read_record(self, account_ref: str) -> dict[str, Any] | None:
        raise LedgerError("On-chain logging is disabled")


def get_ledger_client() -> LedgerClient:
    """Build the ledger client described by ``settings.LEDGER_MODE``."""
    if settings.LEDGER_MODE == "http":
        return HttpLedgerClient(
            settings.LEDGER_URL,
            settings.LEDGER_API_KEY,
            cache_ttl=settings.LEDGER_READ_CACHE_TTL,
        )
    if settings.LEDGER_MODE == "disabled":
        return DisabledLedgerClient()
    return SimulatedLedgerClient()
