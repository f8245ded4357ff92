"""Shared test fixtures -- reduces boilerplate across test modules.

Provides:
- ``set_test_config`` -- autouse fixture that patches common settings
- ``ScriptedGenerator`` / ``FailingLedger`` -- collaborator stand-ins
- ``GOOD_REPLY`` -- a generation reply with all three code blocks
- ``store`` / ``simulated_ledger`` / ``collected`` -- orchestrator inputs
- ``test_client`` -- TestClient against a freshly created app
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from liveforge.clients.ledger_client import SimulatedLedgerClient, derive_build_account
from liveforge.errors import GenerationError, LedgerError
from liveforge.repos.build_store import BuildStore
from liveforge.schemas import BuildRecord, BuildStatus, ChainProof


# ---------------------------------------------------------------------------
# Environment patching
# ---------------------------------------------------------------------------

_SETTINGS_PATCHES: dict[str, Any] = {
    "liveforge.config.settings.FRONTEND_URL": "http://localhost:5173",
    "liveforge.config.settings.ANTHROPIC_API_KEY": "",
    "liveforge.config.settings.OPENAI_API_KEY": "",
    "liveforge.config.settings.LLM_PROVIDER": "",
    "liveforge.config.settings.LEDGER_MODE": "simulated",
    "liveforge.config.settings.LEDGER_SUBMIT_RETRIES": 0,
    "liveforge.config.settings.BUILD_PACING": 0.0,
    "liveforge.config.settings.BUILD_RATE_LIMIT_PER_HOUR": 0,
    "liveforge.config.settings.SEED_DEMO_BUILDS": False,
    "liveforge.config.settings.LOG_FILE": "",
}


@pytest.fixture(autouse=True)
def set_test_config(monkeypatch):
    """Patch common application settings for a safe test environment.

    This is ``autouse=True`` so every test gets a deterministic
    configuration: no LLM keys, simulated ledger, no pacing.
    """
    for target, value in _SETTINGS_PATCHES.items():
        monkeypatch.setattr(target, value)


# ---------------------------------------------------------------------------
# Collaborator stand-ins
# ---------------------------------------------------------------------------

GOOD_REPLY = """I will model the counter as a single PDA with an authority check.

```rust
use anchor_lang::prelude::*;

#[program]
pub mod counter {
    use super::*;
}
```

```typescript
export class CounterClient {}
```

```ts
describe("counter", () => {});
```
"""

SPEC_REPLY = (
    '{"name": "counter", "description": "A counter", '
    '"instructions": ["initialize", "increment"], "stateAccounts": ["Counter"]}'
)


class ScriptedGenerator:
    """Replays canned replies in order; an exception instance is raised instead."""

    def __init__(self, *replies: str | Exception) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[str, str]] = []

    async def generate(self, prompt_context: str, *, system_prompt: str = "") -> str:
        self.calls.append((prompt_context, system_prompt))
        if not self.replies:
            raise GenerationError("no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FailingLedger:
    """Every submit fails; counts the attempts."""

    def __init__(self) -> None:
        self.submits = 0

    def derive_account(self, build_id: str) -> str:
        return derive_build_account(build_id)

    async def submit_record(self, account_ref: str, payload: dict) -> str:
        self.submits += 1
        raise LedgerError("ledger offline")

    async def read_record(self, account_ref: str) -> dict | None:
        raise LedgerError("ledger offline")


def make_record(
    build_id: str = "build_1",
    *,
    status: BuildStatus = BuildStatus.IN_PROGRESS,
    minutes_ago: int = 0,
    duration: str | None = None,
    proofs: int = 0,
) -> BuildRecord:
    started = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago)
    return BuildRecord(
        id=build_id,
        prompt=f"prompt for {build_id}",
        status=status,
        started_at=started,
        completed_at=started + timedelta(minutes=3) if status.is_terminal else None,
        duration=duration,
        chain_proofs=[
            ChainProof(step=i, tx_hash=f"tx{i}", fingerprint=f"{i:010d}...") for i in range(proofs)
        ],
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> BuildStore:
    return BuildStore()


@pytest.fixture
def simulated_ledger() -> SimulatedLedgerClient:
    return SimulatedLedgerClient()


@pytest.fixture
def collected() -> list:
    """An event sink: pass ``collected.append`` as the orchestrator's emit."""
    return []


@pytest.fixture
def test_client():
    """A ``TestClient`` wrapping a freshly created app (empty store)."""
    from liveforge.main import create_app

    with TestClient(create_app()) as client:
        yield client
