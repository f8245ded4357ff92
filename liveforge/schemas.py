"""Build record and build spec schemas.

All models serialize with camelCase keys (``startedAt``, ``chainProofs``)
because the dashboard consumes them verbatim; Python code uses the
snake_case attribute names.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model: snake_case attributes, camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class BuildStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not BuildStatus.IN_PROGRESS


class ChainProof(CamelModel):
    """One successful ledger append for a build step."""

    model_config = ConfigDict(frozen=True)

    step: int = Field(..., ge=0)
    tx_hash: str = Field(..., min_length=1)
    fingerprint: str = Field(..., alias="hash")


class GeneratedFile(CamelModel):
    """An artifact produced during the build."""

    model_config = ConfigDict(frozen=True)

    name: str
    content: str


class BuildRecord(CamelModel):
    """One build request and everything it produced so far."""

    id: str
    prompt: str
    status: BuildStatus = BuildStatus.IN_PROGRESS
    started_at: datetime
    completed_at: datetime | None = None
    duration: str | None = None
    program_id: str | None = None
    chain_proofs: list[ChainProof] = Field(default_factory=list)
    files: list[GeneratedFile] = Field(default_factory=list)


class BuildSpec(CamelModel):
    """Structured intent extracted from a prompt during the Analyze phase."""

    name: str
    description: str
    instructions: list[str] = Field(default_factory=list)
    state_accounts: list[str] = Field(default_factory=list)


class BuildResult(CamelModel):
    """Payload of the ``complete`` event and return value of a successful run."""

    agent_name: str
    program_id: str
    build_id: str
    chain_proof: list[str] = Field(default_factory=list)
