"""Tests for the verification ledger clients."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from liveforge.clients.ledger_client import (
    BASE58_ALPHABET,
    DisabledLedgerClient,
    HttpLedgerClient,
    SimulatedLedgerClient,
    b58encode,
    derive_build_account,
    get_ledger_client,
)
from liveforge.errors import LedgerError


def _response(status_code=200, data=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = data or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"{status_code}", request=MagicMock(), response=response
        )
    else:
        response.raise_for_status = MagicMock()
    return response


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_b58encode_known_values():
    assert b58encode(b"") == ""
    assert b58encode(b"\x00\x00\x01") == "112"
    assert b58encode(b"hello world") == "StV1DL6CwTryKyV"


def test_account_derivation_is_deterministic():
    account = derive_build_account("build_1")
    assert account == derive_build_account("build_1")
    assert account != derive_build_account("build_2")
    assert set(account) <= set(BASE58_ALPHABET)


# ---------------------------------------------------------------------------
# Simulated
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_simulated_ledger_appends_records():
    ledger = SimulatedLedgerClient()
    account = ledger.derive_account("build_1")
    assert await ledger.read_record(account) is None

    first = await ledger.submit_record(account, {"action": "initialize_build"})
    second = await ledger.submit_record(account, {"action": "generate_code"})
    assert first != second

    data = await ledger.read_record(account)
    assert data["account"] == account
    assert [e["signature"] for e in data["entries"]] == [first, second]
    assert [e["slot"] for e in data["entries"]] == [1, 2]
    assert data["entries"][1]["payload"] == {"action": "generate_code"}


# ---------------------------------------------------------------------------
# HTTP relay
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_http_submit_posts_payload():
    mock_client = AsyncMock()
    mock_client.post.return_value = _response(data={"signature": "sig-1"})
    ledger = HttpLedgerClient("https://relay.example/", "secret")

    with patch("liveforge.clients.ledger_client._get_client", return_value=mock_client):
        signature = await ledger.submit_record("acct", {"action": "generate_code"})

    assert signature == "sig-1"
    call = mock_client.post.call_args
    assert call.args[0] == "https://relay.example/accounts/acct/records"
    assert call.kwargs["json"] == {"action": "generate_code"}
    assert call.kwargs["headers"]["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_http_submit_errors_become_ledger_errors():
    mock_client = AsyncMock()
    mock_client.post.side_effect = httpx.ConnectError("connection refused")
    ledger = HttpLedgerClient("https://relay.example")

    with patch("liveforge.clients.ledger_client._get_client", return_value=mock_client):
        with pytest.raises(LedgerError, match="connection refused"):
            await ledger.submit_record("acct", {})

    mock_client.post.side_effect = None
    mock_client.post.return_value = _response(data={})
    with patch("liveforge.clients.ledger_client._get_client", return_value=mock_client):
        with pytest.raises(LedgerError, match="no signature"):
            await ledger.submit_record("acct", {})


@pytest.mark.asyncio
async def test_http_read_is_cached_until_submit():
    mock_client = AsyncMock()
    mock_client.get.return_value = _response(data={"account": "acct", "entries": []})
    mock_client.post.return_value = _response(data={"signature": "sig-1"})
    ledger = HttpLedgerClient("https://relay.example", cache_ttl=60)

    with patch("liveforge.clients.ledger_client._get_client", return_value=mock_client):
        await ledger.read_record("acct")
        await ledger.read_record("acct")
        assert mock_client.get.call_count == 1

        await ledger.submit_record("acct", {"action": "x"})
        await ledger.read_record("acct")
        assert mock_client.get.call_count == 2


@pytest.mark.asyncio
async def test_http_read_missing_account_returns_none():
    mock_client = AsyncMock()
    mock_client.get.return_value = _response(status_code=404)
    ledger = HttpLedgerClient("https://relay.example")

    with patch("liveforge.clients.ledger_client._get_client", return_value=mock_client):
        assert await ledger.read_record("acct") is None


@pytest.mark.asyncio
async def test_http_read_server_error_raises():
    mock_client = AsyncMock()
    mock_client.get.return_value = _response(status_code=503)
    ledger = HttpLedgerClient("https://relay.example")

    with patch("liveforge.clients.ledger_client._get_client", return_value=mock_client):
        with pytest.raises(LedgerError):
            await ledger.read_record("acct")


# ---------------------------------------------------------------------------
# Disabled + factory
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_disabled_ledger_always_fails():
    ledger = DisabledLedgerClient()
    with pytest.raises(LedgerError):
        await ledger.submit_record(ledger.derive_account("b"), {})
    with pytest.raises(LedgerError):
        await ledger.read_record("acct")


def test_factory_follows_ledger_mode(monkeypatch):
    assert isinstance(get_ledger_client(), SimulatedLedgerClient)

    monkeypatch.setattr("liveforge.config.settings.LEDGER_MODE", "disabled")
    assert isinstance(get_ledger_client(), DisabledLedgerClient)

    monkeypatch.setattr("liveforge.config.settings.LEDGER_MODE", "http")
    monkeypatch.setattr("liveforge.config.settings.LEDGER_URL", "https://relay.example")
    client = get_ledger_client()
    assert isinstance(client, HttpLedgerClient)
    assert client.base_url == "https://relay.example"
