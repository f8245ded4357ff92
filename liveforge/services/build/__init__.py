"""Live build pipeline.

Sub-modules:
    events        -- the closed set of build events and their wire shape
    extraction    -- fenced-block and BuildSpec parsing of generator replies
    templates     -- deterministic fallback sources and program ids
    compiler      -- compile step (simulated transcript)
    orchestrator  -- BuildOrchestrator, the phase sequence of one build
    stream        -- background build tasks and SSE frame transport

HTTP-facing entry points live in ``liveforge/services/build_service.py``.
"""
