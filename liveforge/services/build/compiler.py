"""Compile step of a build.

Only the transcript matters to the pipeline: each yielded line becomes one
``terminal`` event.  :class:`SimulatedCompiler` prints a fixed
``anchor build`` transcript; a real toolchain runner can replace it as long
as it yields lines the same way.
"""

import asyncio
from typing import AsyncIterator, Protocol


class Compiler(Protocol):
    def compile(self, program_source: str, *, crate_name: str) -> AsyncIterator[str]:
        ...


class SimulatedCompiler:
    """Deterministic compiler transcript with cosmetic delays."""

    def __init__(self, pacing: float = 0.0) -> None:
        self.pacing = pacing

    async def compile(self, program_source: str, *, crate_name: str) -> AsyncIterator[str]:
        transcript = [
            ("$ anchor build\n", 0.4),
            ("Compiling solana-program v1.18.0\n", 0.6),
            (f"Compiling {crate_name} v0.1.0\n", 0.8),
            ("   Finished release [optimized] target(s)\n", 0.3),
            ("✓ Build successful\n", 0.5),
        ]
        for line, delay in transcript:
            yield line
            if self.pacing:
                await asyncio.sleep(delay * self.pacing)
