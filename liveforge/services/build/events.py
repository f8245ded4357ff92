"""Build events -- the closed set of messages a running build emits.

Each variant carries only its own fields and a literal ``type`` tag.  The
wire shape is the camelCase JSON dump of the model, e.g.
``{"type": "chain_log", "txHash": "...", "stepNumber": 2}``.
"""

from __future__ import annotations

from typing import Annotated, Callable, Literal, Union

from pydantic import Field, TypeAdapter

from liveforge.schemas import BuildResult, CamelModel


class ProgressEvent(CamelModel):
    type: Literal["progress"] = "progress"
    step: int
    total: int
    description: str


class ThinkingEvent(CamelModel):
    type: Literal["thinking"] = "thinking"
    message: str


class CodeEvent(CamelModel):
    type: Literal["code"] = "code"
    file: str
    content: str


class TerminalEvent(CamelModel):
    type: Literal["terminal"] = "terminal"
    output: str


class ChainLogEvent(CamelModel):
    type: Literal["chain_log"] = "chain_log"
    tx_hash: str
    step_number: int


class CompleteEvent(CamelModel):
    type: Literal["complete"] = "complete"
    result: BuildResult


class ErrorEvent(CamelModel):
    type: Literal["error"] = "error"
    error: str


BuildEvent = Annotated[
    Union[
        ProgressEvent,
        ThinkingEvent,
        CodeEvent,
        TerminalEvent,
        ChainLogEvent,
        CompleteEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

EmitFn = Callable[[BuildEvent], None]

TERMINAL_EVENT_TYPES = frozenset({"complete", "error"})

_event_adapter: TypeAdapter[BuildEvent] = TypeAdapter(BuildEvent)


def is_terminal(event: BuildEvent) -> bool:
    return event.type in TERMINAL_EVENT_TYPES


def parse_event(data: str | bytes) -> BuildEvent:
    """Parse one serialized event back into its variant."""
    return _event_adapter.validate_json(data)
