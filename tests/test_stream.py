"""Tests for the event channel and SSE framing."""

import asyncio
import json

import pytest

from liveforge.schemas import BuildResult
from liveforge.services.build import stream
from liveforge.services.build.events import (
    ChainLogEvent,
    CompleteEvent,
    ErrorEvent,
    ProgressEvent,
    ThinkingEvent,
    parse_event,
)
from liveforge.services.build.stream import EventChannel, format_frame, open_stream


def _payload(frame: str) -> dict:
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    return json.loads(frame[len("data: "):-2])


def test_frame_uses_camel_case_keys():
    frame = format_frame(ChainLogEvent(tx_hash="abc", step_number=2))
    assert _payload(frame) == {"type": "chain_log", "txHash": "abc", "stepNumber": 2}


def test_complete_frame_nests_result():
    result = BuildResult(agent_name="A", program_id="P", build_id="build_1", chain_proof=["t0"])
    payload = _payload(format_frame(CompleteEvent(result=result)))
    assert payload == {
        "type": "complete",
        "result": {"agentName": "A", "programId": "P", "buildId": "build_1", "chainProof": ["t0"]},
    }


def test_frame_parses_back_to_same_variant():
    event = ProgressEvent(step=3, total=6, description="Generating")
    assert parse_event(format_frame(event)[len("data: "):-2]) == event


@pytest.mark.asyncio
async def test_channel_closes_after_terminal_event():
    channel = EventChannel()
    channel.emit(ThinkingEvent(message="one"))
    channel.emit(ErrorEvent(error="boom"))
    channel.emit(ThinkingEvent(message="late"))
    assert channel.closed

    received = [event async for event in channel.events()]
    assert [e.type for e in received] == ["thinking", "error"]


@pytest.mark.asyncio
async def test_open_stream_yields_frames_until_complete():
    async def run(emit):
        emit(ProgressEvent(step=1, total=6, description="start"))
        await asyncio.sleep(0)
        emit(CompleteEvent(result=BuildResult(agent_name="A", program_id="P", build_id="b")))

    frames = [frame async for frame in open_stream(run)]
    assert [_payload(f)["type"] for f in frames] == ["progress", "complete"]


@pytest.mark.asyncio
async def test_open_stream_synthesizes_error_when_run_crashes():
    async def run(emit):
        emit(ThinkingEvent(message="working"))
        raise RuntimeError("worker died")

    frames = [frame async for frame in open_stream(run)]
    assert [_payload(f)["type"] for f in frames] == ["thinking", "error"]
    assert _payload(frames[-1])["error"] == "worker died"


@pytest.mark.asyncio
async def test_open_stream_synthesizes_error_when_run_returns_silently():
    async def run(emit):
        return None

    frames = [frame async for frame in open_stream(run)]
    assert _payload(frames[-1]) == {"type": "error", "error": "Build ended without a result"}


@pytest.mark.asyncio
async def test_shutdown_cancels_running_builds():
    started = asyncio.Event()

    async def run(emit):
        started.set()
        await asyncio.sleep(60)

    frames = open_stream(run)
    await started.wait()
    assert stream.active_build_count() >= 1

    await stream.shutdown_active_builds()
    received = [frame async for frame in frames]
    assert _payload(received[-1]) == {"type": "error", "error": "Build cancelled"}
    assert stream.active_build_count() == 0
