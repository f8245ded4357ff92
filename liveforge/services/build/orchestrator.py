"""Build orchestrator -- drives one live build from prompt to deployed program.

Phase sequence (progress steps 1-6, ledger step index in brackets):

    1. ledger init        [0]  register the build account on the ledger
    2. analyze                 extract a BuildSpec from the prompt
    3. generate sources        program / SDK / tests in one generation call
    4. program record     [2]  store + fingerprint + log the program source
    5. compile            [3]  compiler transcript, log the build marker
    6. SDK record         [4]  store SDK and tests, log the SDK
       finalize                program id, duration, success, ``complete``

Every generator and ledger call is best-effort: a failure degrades the build
(template sources, missing proofs) but never fails it.  Anything else that
raises aborts the remaining phases, marks the record failed and emits a
single ``error`` event.  :meth:`BuildOrchestrator.run` never raises.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from liveforge.clients.content_generator import ContentGenerator
from liveforge.clients.ledger_client import LedgerClient
from liveforge.config import settings
from liveforge.errors import BadRequestError, InvariantViolation
from liveforge.hashing import fingerprint, short_fingerprint
from liveforge.repos.build_store import BuildStore
from liveforge.schemas import (
    BuildRecord,
    BuildResult,
    BuildSpec,
    BuildStatus,
    ChainProof,
    GeneratedFile,
)
from liveforge.services.build.compiler import Compiler, SimulatedCompiler
from liveforge.services.build.events import (
    BuildEvent,
    ChainLogEvent,
    CodeEvent,
    CompleteEvent,
    EmitFn,
    ErrorEvent,
    ProgressEvent,
    TerminalEvent,
    ThinkingEvent,
)
from liveforge.services.build.extraction import extract_artifacts, parse_build_spec
from liveforge.services.build.templates import (
    fallback_build_spec,
    fallback_program,
    fallback_sdk,
    fallback_tests,
    generate_program_id,
)
from liveforge.services.stats_service import format_duration

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TOTAL_STEPS = 6

STEP_LEDGER_INIT = 0
STEP_PROGRAM = 2
STEP_COMPILE = 3
STEP_SDK = 4

# Fingerprinted in place of compiler output (nothing is really compiled)
BUILD_MARKER = "build_success"

PROGRAM_FILE = "lib.rs"
SDK_FILE = "client.ts"
TESTS_FILE = "tests.ts"

ANALYZE_SYSTEM_PROMPT = """You are an expert Solana/Anchor architect.
Analyze the user's request and reply with ONLY a JSON object:
{"name": "<snake_case program name>", "description": "<one sentence>",
 "instructions": ["<instruction name>", ...], "stateAccounts": ["<account struct>", ...]}"""

GENERATE_SYSTEM_PROMPT = """You are an expert Solana/Anchor developer. Generate a complete, production-ready Anchor program based on the user's request.

Requirements:
- Use anchor-lang 0.30.1
- Include proper account structures with constraints
- Implement all necessary instructions
- Add comprehensive error handling
- Generate a TypeScript SDK for the program
- Include example test code

Output format:
1. First, explain your approach (2-3 sentences)
2. Then provide the Rust program code (lib.rs) in a ```rust block
3. Then provide the TypeScript SDK code (client.ts) in a ```typescript block
4. Finally, provide test code (tests.ts) in a ```typescript block

Be specific and production-ready. The code should compile without modification."""


def new_build_id() -> str:
    return f"build_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Outcome:
    """Result of a best-effort call: a value, or the reason there is none."""

    value: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.value is not None


@dataclass(frozen=True)
class GeneratedSources:
    program: str
    sdk: str
    tests: str


@dataclass
class _BuildContext:
    build_id: str
    prompt: str
    started: float
    # None once ledger init failed: no further ledger calls for this build
    account: str | None = None
    spec: BuildSpec | None = None


class BuildOrchestrator:
    """Runs builds against one store, generator and ledger, emitting to *emit*.

    One orchestrator may run several builds one after another; each
    :meth:`run` call keeps its own state.
    """

    def __init__(
        self,
        store: BuildStore,
        generator: ContentGenerator,
        ledger: LedgerClient,
        emit: EmitFn,
        *,
        compiler: Compiler | None = None,
        pacing: float | None = None,
        generator_timeout: float | None = None,
        ledger_timeout: float | None = None,
        ledger_retries: int | None = None,
        ledger_backoff: float = 0.5,
    ) -> None:
        self.store = store
        self.generator = generator
        self.ledger = ledger
        self._emit_fn = emit
        self.pacing = settings.BUILD_PACING if pacing is None else pacing
        self.compiler = compiler or SimulatedCompiler(pacing=self.pacing)
        self.generator_timeout = generator_timeout or settings.GENERATOR_TIMEOUT_SECONDS
        self.ledger_timeout = ledger_timeout or settings.LEDGER_TIMEOUT_SECONDS
        self.ledger_retries = settings.LEDGER_SUBMIT_RETRIES if ledger_retries is None else ledger_retries
        self.ledger_backoff = ledger_backoff

    # ── entry point ───────────────────────────────────────────

    async def run(self, prompt: str) -> BuildResult | None:
        """Execute every phase for *prompt*.

        Returns the build result, or ``None`` when the build failed (the
        failure is reported through the ``error`` event and stored status).
        """
        ctx = _BuildContext(build_id=new_build_id(), prompt=prompt, started=time.monotonic())
        try:
            await self.store.insert(
                BuildRecord(id=ctx.build_id, prompt=prompt, started_at=_utcnow())
            )
            logger.info("Build %s started: %.60s", ctx.build_id, prompt)
            if not prompt or not prompt.strip():
                raise BadRequestError("Prompt is required")

            await self._init_ledger(ctx)
            ctx.spec = await self._analyze(ctx)
            sources = await self._generate_sources(ctx)
            await self._record_program(ctx, sources.program)
            await self._compile(ctx, sources.program)
            await self._record_sdk(ctx, sources)
            return await self._finalize(ctx)
        except asyncio.CancelledError:
            logger.warning("Build %s cancelled", ctx.build_id)
            await self._fail(ctx, "Build cancelled")
            raise
        except Exception as exc:
            logger.exception("Build %s failed", ctx.build_id)
            await self._fail(ctx, str(exc) or type(exc).__name__)
            return None

    # ── phases ────────────────────────────────────────────────

    async def _init_ledger(self, ctx: _BuildContext) -> None:
        self._emit(ProgressEvent(step=1, total=TOTAL_STEPS, description="Initializing build on-chain..."))

        try:
            account = self.ledger.derive_account(ctx.build_id)
        except Exception as exc:
            outcome = Outcome(error=str(exc) or type(exc).__name__)
        else:
            outcome = await self._submit(account, {
                "action": "initialize_build",
                "buildId": ctx.build_id,
                "projectName": ctx.prompt[:50],
                "contentHash": fingerprint(ctx.build_id + ctx.prompt),
            })

        if not outcome.ok:
            logger.warning(
                "Build %s: ledger init failed, continuing without on-chain logging: %s",
                ctx.build_id, outcome.error,
            )
            self._emit(TerminalEvent(output=f"⚠ On-chain logging unavailable: {outcome.error}\n"))
            return

        ctx.account = account
        await self._append_proof(
            ctx, STEP_LEDGER_INIT, outcome.value, short_fingerprint(ctx.build_id + ctx.prompt)
        )
        self._emit(TerminalEvent(output=f"✓ Build initialized on-chain: {outcome.value}\n"))
        await self._pause(0.5)

    async def _analyze(self, ctx: _BuildContext) -> BuildSpec:
        self._emit(ProgressEvent(step=2, total=TOTAL_STEPS, description="Analyzing prompt..."))
        self._emit(ThinkingEvent(
            message="Analyzing prompt structure and identifying Solana program requirements..."
        ))

        outcome = await self._generate(
            f'Analyze this Solana agent request and create a specification: "{ctx.prompt}"',
            system_prompt=ANALYZE_SYSTEM_PROMPT,
        )
        spec = parse_build_spec(outcome.value) if outcome.ok else None
        if spec is None:
            logger.info(
                "Build %s: using prompt-derived spec (%s)",
                ctx.build_id, outcome.error or "unparsable analysis reply",
            )
            spec = fallback_build_spec(ctx.prompt)

        instructions = ", ".join(spec.instructions) or "none"
        self._emit(ThinkingEvent(
            message=f"Identified program '{spec.name}' with "
                    f"{len(spec.instructions)} instruction(s): {instructions}"
        ))
        if spec.state_accounts:
            self._emit(ThinkingEvent(
                message=f"On-chain state: {', '.join(spec.state_accounts)}"
            ))
        await self._pause(0.8)
        return spec

    async def _generate_sources(self, ctx: _BuildContext) -> GeneratedSources:
        self._emit(ProgressEvent(step=3, total=TOTAL_STEPS, description="Generating Anchor program code..."))
        self._emit(ThinkingEvent(
            message="Designing program structure with account models, instructions, and error handling..."
        ))

        spec = ctx.spec
        outcome = await self._generate(
            f"User request: {ctx.prompt}\n\n"
            f"Program name: {spec.name}\n"
            f"Instructions: {', '.join(spec.instructions)}\n"
            f"State accounts: {', '.join(spec.state_accounts)}",
            system_prompt=GENERATE_SYSTEM_PROMPT,
        )

        if not outcome.ok:
            self._emit(ThinkingEvent(
                message=f"AI generation unavailable ({outcome.error}), using template..."
            ))
            sources = GeneratedSources(
                program=fallback_program(ctx.prompt),
                sdk=fallback_sdk(ctx.prompt),
                tests=fallback_tests(ctx.prompt),
            )
        else:
            extracted = extract_artifacts(outcome.value)
            if extracted.reasoning:
                self._emit(ThinkingEvent(message=extracted.reasoning))
            if extracted.missing:
                logger.info("Build %s: no %s block(s) in reply", ctx.build_id, extracted.missing)
                self._emit(ThinkingEvent(
                    message=f"No {', '.join(extracted.missing)} code found in the response, using template..."
                ))
            sources = GeneratedSources(
                program=extracted.program or fallback_program(ctx.prompt),
                sdk=extracted.sdk or fallback_sdk(ctx.prompt),
                tests=extracted.tests or fallback_tests(ctx.prompt),
            )

        await self._pause(1.0)
        return sources

    async def _record_program(self, ctx: _BuildContext, program: str) -> None:
        await self.store.append_file(ctx.build_id, GeneratedFile(name=PROGRAM_FILE, content=program))
        self._emit(CodeEvent(file=f"programs/{PROGRAM_FILE}", content=program))
        await self._pause(0.5)
        await self._log_step(ctx, STEP_PROGRAM, "generate_code", "Anchor program generated", program)

    async def _compile(self, ctx: _BuildContext, program: str) -> None:
        self._emit(ProgressEvent(step=4, total=TOTAL_STEPS, description="Building program..."))
        async for line in self.compiler.compile(program, crate_name=ctx.spec.name):
            self._emit(TerminalEvent(output=line))
        await self._log_step(
            ctx, STEP_COMPILE, "compile_program", "Program compiled successfully", BUILD_MARKER
        )

    async def _record_sdk(self, ctx: _BuildContext, sources: GeneratedSources) -> None:
        self._emit(ProgressEvent(step=5, total=TOTAL_STEPS, description="Generating TypeScript SDK..."))
        await self._pause(0.8)
        await self.store.append_file(ctx.build_id, GeneratedFile(name=SDK_FILE, content=sources.sdk))
        await self.store.append_file(ctx.build_id, GeneratedFile(name=TESTS_FILE, content=sources.tests))
        self._emit(CodeEvent(file="client/sdk.ts", content=sources.sdk))
        await self._pause(0.5)
        await self._log_step(ctx, STEP_SDK, "generate_sdk", "TypeScript SDK generated", sources.sdk)

    async def _finalize(self, ctx: _BuildContext) -> BuildResult:
        self._emit(ProgressEvent(step=6, total=TOTAL_STEPS, description="Finalizing build..."))
        await self._pause(0.5)
        self._emit(TerminalEvent(output="✓ Build complete!\n"))

        program_id = generate_program_id()
        duration = format_duration(time.monotonic() - ctx.started)
        record = await self.store.patch(
            ctx.build_id,
            status=BuildStatus.SUCCESS,
            completed_at=_utcnow(),
            duration=duration,
            program_id=program_id,
        )
        if record is None:
            raise InvariantViolation(f"Build {ctx.build_id} disappeared from the store")

        result = BuildResult(
            agent_name=ctx.prompt[:50],
            program_id=program_id,
            build_id=ctx.build_id,
            chain_proof=[p.tx_hash for p in record.chain_proofs],
        )
        logger.info(
            "Build %s succeeded in %s (%d proof(s), program %s)",
            ctx.build_id, duration, len(result.chain_proof), program_id,
        )
        self._emit(CompleteEvent(result=result))
        return result

    async def _fail(self, ctx: _BuildContext, reason: str) -> None:
        try:
            await self.store.patch(ctx.build_id, status=BuildStatus.FAILED, completed_at=_utcnow())
        except InvariantViolation:
            logger.error("Build %s: could not mark failed, record already terminal", ctx.build_id)
        self._emit(ErrorEvent(error=reason))

    # ── best-effort collaborator calls ────────────────────────

    async def _generate(self, prompt_context: str, *, system_prompt: str) -> Outcome:
        """One generator call under the timeout; failures become ``Outcome.error``."""
        try:
            text = await asyncio.wait_for(
                self.generator.generate(prompt_context, system_prompt=system_prompt),
                timeout=self.generator_timeout,
            )
        except asyncio.TimeoutError:
            return Outcome(error=f"timed out after {self.generator_timeout:g}s")
        except Exception as exc:
            logger.warning("Content generation failed: %s", exc)
            return Outcome(error=str(exc) or type(exc).__name__)
        if not text or not text.strip():
            return Outcome(error="empty response")
        return Outcome(value=text)

    async def _submit(self, account: str, payload: dict[str, Any]) -> Outcome:
        """Submit a ledger record with bounded retries; failures become ``Outcome.error``."""
        error = ""
        for attempt in range(self.ledger_retries + 1):
            try:
                tx_hash = await asyncio.wait_for(
                    self.ledger.submit_record(account, payload),
                    timeout=self.ledger_timeout,
                )
            except asyncio.TimeoutError:
                error = f"timed out after {self.ledger_timeout:g}s"
            except Exception as exc:
                error = str(exc) or type(exc).__name__
            else:
                if tx_hash:
                    return Outcome(value=tx_hash)
                error = "empty reference id"

            if attempt < self.ledger_retries:
                wait = self.ledger_backoff * (2 ** attempt)
                logger.warning(
                    "Ledger submit failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1, self.ledger_retries + 1, wait, error,
                )
                await asyncio.sleep(wait)
        return Outcome(error=error)

    async def _log_step(
        self, ctx: _BuildContext, step: int, action: str, description: str, content: str
    ) -> None:
        """Fingerprint *content* and log it on the ledger; skipped if the ledger is off."""
        if ctx.account is None:
            return
        outcome = await self._submit(ctx.account, {
            "action": action,
            "buildId": ctx.build_id,
            "step": step,
            "description": description,
            "contentHash": fingerprint(content),
        })
        if not outcome.ok:
            logger.warning("Build %s: ledger log for step %d skipped: %s", ctx.build_id, step, outcome.error)
            return
        await self._append_proof(ctx, step, outcome.value, short_fingerprint(content))

    async def _append_proof(self, ctx: _BuildContext, step: int, tx_hash: str, short_hash: str) -> None:
        await self.store.append_chain_proof(
            ctx.build_id, ChainProof(step=step, tx_hash=tx_hash, fingerprint=short_hash)
        )
        self._emit(ChainLogEvent(tx_hash=tx_hash, step_number=step))

    # ── helpers ───────────────────────────────────────────────

    def _emit(self, event: BuildEvent) -> None:
        logger.debug("emit %s", event.type)
        self._emit_fn(event)

    async def _pause(self, seconds: float) -> None:
        if self.pacing:
            await asyncio.sleep(seconds * self.pacing)
