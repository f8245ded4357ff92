"""Build record store -- process-lifetime, in-memory keyed storage of builds.

One :class:`BuildStore` is created per application and shared by every
request handler and build task.  All access goes through a single
``asyncio.Lock`` and callers always receive copies, so a record can only
change through the store's own methods.
"""

import asyncio
import logging
from typing import Any

from liveforge.errors import BuildNotFoundError, InvariantViolation
from liveforge.schemas import BuildRecord, BuildStatus, ChainProof, GeneratedFile

logger = logging.getLogger(__name__)

# Never writable through patch(): identity fields plus the append-only lists.
_IMMUTABLE_FIELDS = frozenset({"id", "prompt", "started_at", "chain_proofs", "files"})

# Frozen once the record reaches a terminal status.
_TERMINAL_FIELDS = frozenset({"status", "completed_at", "duration"})


class BuildStore:
    """Keyed store of :class:`BuildRecord` objects."""

    def __init__(self) -> None:
        self._records: dict[str, BuildRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    # ── reads ─────────────────────────────────────────────────

    async def get(self, build_id: str) -> BuildRecord | None:
        """Return a copy of the record, or ``None`` if unknown."""
        async with self._lock:
            record = self._records.get(build_id)
            return record.model_copy(deep=True) if record is not None else None

    async def list_all(self) -> list[BuildRecord]:
        """Return copies of every record, newest ``started_at`` first."""
        async with self._lock:
            records = [r.model_copy(deep=True) for r in self._records.values()]
        return sorted(records, key=lambda r: r.started_at, reverse=True)

    # ── writes ────────────────────────────────────────────────

    async def insert(self, record: BuildRecord) -> None:
        """Store a new record.  A duplicate id is a programming error."""
        async with self._lock:
            if record.id in self._records:
                raise InvariantViolation(f"Build {record.id} already exists")
            self._records[record.id] = record.model_copy(deep=True)

    async def patch(self, build_id: str, **fields: Any) -> BuildRecord | None:
        """Merge *fields* into an existing record and return the updated copy.

        Unknown ids are a no-op (returns ``None``).  Identity fields and the
        append-only lists cannot be patched, and once a record is terminal
        its status, completion time and duration are frozen.
        """
        unknown = set(fields) - set(BuildRecord.model_fields)
        if unknown:
            raise InvariantViolation(f"Unknown build field(s): {', '.join(sorted(unknown))}")
        immutable = set(fields) & _IMMUTABLE_FIELDS
        if immutable:
            raise InvariantViolation(
                f"Build field(s) cannot be patched: {', '.join(sorted(immutable))}"
            )
        if "status" in fields:
            fields["status"] = BuildStatus(fields["status"])

        async with self._lock:
            record = self._records.get(build_id)
            if record is None:
                logger.debug("patch ignored for unknown build %s", build_id)
                return None
            if not fields:
                return record.model_copy(deep=True)
            if record.status.is_terminal and set(fields) & _TERMINAL_FIELDS:
                raise InvariantViolation(
                    f"Build {build_id} is already {record.status.value}"
                )
            updated = record.model_copy(update=fields, deep=True)
            self._records[build_id] = updated
            return updated.model_copy(deep=True)

    async def append_chain_proof(self, build_id: str, proof: ChainProof) -> None:
        """Append a ledger proof; steps must be strictly increasing."""
        async with self._lock:
            record = self._require(build_id)
            if record.chain_proofs and proof.step <= record.chain_proofs[-1].step:
                raise InvariantViolation(
                    f"Chain proof step {proof.step} does not follow step "
                    f"{record.chain_proofs[-1].step} for build {build_id}"
                )
            record.chain_proofs.append(proof)

    async def append_file(self, build_id: str, generated: GeneratedFile) -> None:
        """Append a generated artifact to the record's file list."""
        async with self._lock:
            self._require(build_id).files.append(generated)

    async def seed(self, records: list[BuildRecord]) -> int:
        """Insert *records* whose ids are not present yet; return how many were added."""
        added = 0
        async with self._lock:
            for record in records:
                if record.id not in self._records:
                    self._records[record.id] = record.model_copy(deep=True)
                    added += 1
        return added

    def _require(self, build_id: str) -> BuildRecord:
        record = self._records.get(build_id)
        if record is None:
            raise BuildNotFoundError(build_id)
        return record
