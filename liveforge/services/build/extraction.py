"""Artifact extraction from free-form generator replies.

The generator is asked for prose followed by fenced code blocks, but
nothing guarantees it complies.  Every extractor here reports a miss as
``None`` instead of raising; the orchestrator decides on the fallback.

All functions are pure string processors -- no I/O, no side effects.
"""

from __future__ import annotations

import json
import re

from pydantic import BaseModel, ConfigDict, ValidationError

from liveforge.schemas import BuildSpec

# ```lang\n ... ``` -- tag may be empty; body is non-greedy up to the next fence
_FENCED_BLOCK_RE = re.compile(r"```([A-Za-z0-9_+#.-]*)[ \t]*\r?\n(.*?)```", re.DOTALL)

PROGRAM_LANG_TAGS = frozenset({"rust", "rs"})
CLIENT_LANG_TAGS = frozenset({"typescript", "ts"})


class CodeBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    lang: str
    body: str


class ExtractedArtifacts(BaseModel):
    """What could be recovered from one generation reply.  ``None`` = not found."""

    model_config = ConfigDict(frozen=True)

    reasoning: str = ""
    program: str | None = None
    sdk: str | None = None
    tests: str | None = None

    @property
    def missing(self) -> list[str]:
        names = {"program": self.program, "SDK": self.sdk, "tests": self.tests}
        return [name for name, value in names.items() if value is None]


def find_fenced_blocks(text: str) -> list[CodeBlock]:
    """Return every fenced code block in *text*, in order of appearance."""
    return [
        CodeBlock(lang=m.group(1).lower(), body=m.group(2))
        for m in _FENCED_BLOCK_RE.finditer(text or "")
    ]


def extract_reasoning(text: str) -> str:
    """Prose before the first fence (the model's explanation of its approach)."""
    head, _, _ = (text or "").partition("```")
    return head.strip()


def extract_artifacts(text: str) -> ExtractedArtifacts:
    """Pick program, SDK and test sources out of a generation reply.

    The first program-language block is the program.  Of the client-language
    blocks the first is the SDK and the second, when present, the tests.
    Blocks with an empty body count as missing.
    """
    blocks = [b for b in find_fenced_blocks(text) if b.body.strip()]
    program = next((b.body for b in blocks if b.lang in PROGRAM_LANG_TAGS), None)
    client_blocks = [b.body for b in blocks if b.lang in CLIENT_LANG_TAGS]
    return ExtractedArtifacts(
        reasoning=extract_reasoning(text),
        program=program,
        sdk=client_blocks[0] if client_blocks else None,
        tests=client_blocks[1] if len(client_blocks) > 1 else None,
    )


def _json_candidates(text: str) -> list[str]:
    candidates = [b.body for b in find_fenced_blocks(text) if b.lang in {"json", ""}]
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])
    return candidates


def parse_build_spec(text: str) -> BuildSpec | None:
    """Parse a :class:`BuildSpec` from a JSON reply, or ``None`` if there is none."""
    for candidate in _json_candidates(text or ""):
        try:
            data = json.loads(candidate)
            spec = BuildSpec.model_validate(data)
        except (ValueError, ValidationError):
            continue
        if spec.name.strip():
            return spec
    return None
