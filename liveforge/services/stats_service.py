"""Aggregates over stored builds for the dashboard (listing counters and /stats)."""

import re

from liveforge.schemas import BuildRecord, BuildStatus

_DURATION_RE = re.compile(r"(\d+)m\s*(\d+)s")


def format_duration(seconds: float) -> str:
    """``135.7`` -> ``"2m 15s"`` (whole seconds, truncated)."""
    total = max(int(seconds), 0)
    return f"{total // 60}m {total % 60}s"


def parse_duration(text: str | None) -> int | None:
    """``"2m 15s"`` -> ``135``; ``None`` when *text* is not in that form."""
    if not text:
        return None
    m = _DURATION_RE.search(text)
    if m is None:
        return None
    return int(m.group(1)) * 60 + int(m.group(2))


def summarize_builds(records: list[BuildRecord]) -> dict:
    """Listing payload: the records plus per-status counters."""
    counts = {status: 0 for status in BuildStatus}
    for record in records:
        counts[record.status] += 1
    return {
        "builds": [r.to_json_dict() for r in records],
        "total": len(records),
        "successCount": counts[BuildStatus.SUCCESS],
        "failedCount": counts[BuildStatus.FAILED],
        "inProgressCount": counts[BuildStatus.IN_PROGRESS],
    }


def compute_stats(records: list[BuildRecord]) -> dict:
    """Dashboard counters.

    ``successRate`` is a percentage with one decimal over all builds.
    ``avgBuildTime`` averages only the records whose duration parses.
    """
    total = len(records)
    successes = sum(1 for r in records if r.status is BuildStatus.SUCCESS)
    success_rate = f"{successes / total * 100:.1f}" if total else "0.0"

    durations = [d for d in (parse_duration(r.duration) for r in records) if d is not None]
    avg_seconds = sum(durations) / len(durations) if durations else 0

    return {
        "totalBuilds": total,
        "successRate": success_rate,
        "avgBuildTime": format_duration(avg_seconds),
        "totalProofs": sum(len(r.chain_proofs) for r in records),
    }
