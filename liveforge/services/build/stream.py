"""Event stream transport -- build events to ``text/event-stream`` frames.

A build runs as its own background task and writes into an
:class:`EventChannel`; the HTTP response iterates the channel's frames.  The
channel closes once, after the first ``complete`` or ``error`` event.  If the
subscriber goes away the build keeps running and only the frames are lost.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

from liveforge.services.build.events import BuildEvent, EmitFn, ErrorEvent, is_terminal

logger = logging.getLogger(__name__)

BuildRunner = Callable[[EmitFn], Awaitable[Any]]

_background_tasks: set[asyncio.Task] = set()  # tracked for graceful shutdown


def format_frame(event: BuildEvent) -> str:
    """Serialize one event as an SSE ``data:`` frame."""
    return f"data: {event.model_dump_json(by_alias=True)}\n\n"


class EventChannel:
    """Single-subscriber queue of build events."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[BuildEvent] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: BuildEvent) -> None:
        if self._closed:
            logger.warning("Dropping %s event emitted after the stream closed", event.type)
            return
        self._queue.put_nowait(event)
        if is_terminal(event):
            self._closed = True

    async def events(self) -> AsyncIterator[BuildEvent]:
        while True:
            event = await self._queue.get()
            yield event
            if is_terminal(event):
                return

    async def frames(self) -> AsyncIterator[str]:
        async for event in self.events():
            yield format_frame(event)


def _track_task(task: asyncio.Task) -> asyncio.Task:
    """Register an asyncio.Task so it can be cancelled on shutdown."""
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


def open_stream(run: BuildRunner) -> AsyncIterator[str]:
    """Start *run* in the background and return the iterator of its frames.

    *run* receives the channel's ``emit`` function.  Must be called from a
    running event loop.
    """
    channel = EventChannel()
    task = _track_task(asyncio.create_task(run(channel.emit)))

    def _on_done(t: asyncio.Task) -> None:
        if t.cancelled():
            reason = "Build cancelled"
        elif t.exception() is not None:
            exc = t.exception()
            logger.error("Build task crashed: %s", exc, exc_info=exc)
            reason = str(exc) or type(exc).__name__
        else:
            reason = "Build ended without a result"
        if not channel.closed:
            channel.emit(ErrorEvent(error=reason))

    task.add_done_callback(_on_done)
    return channel.frames()


def active_build_count() -> int:
    return len(_background_tasks)


async def shutdown_active_builds() -> None:
    """Cancel every running build task and wait for them to finish.

    Called from the application lifespan shutdown hook.
    """
    for task in list(_background_tasks):
        task.cancel()

    if _background_tasks:
        await asyncio.gather(*_background_tasks, return_exceptions=True)

    logger.info("All build tasks shut down cleanly")
