"""Content fingerprints for ledger proofs."""

import hashlib


def fingerprint(content: str | bytes) -> str:
    """Return the SHA-256 hex digest of *content* (str is UTF-8 encoded)."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def short_fingerprint(content: str | bytes, length: int = 10) -> str:
    """Display form of :func:`fingerprint`: the first *length* hex chars plus ``...``."""
    return fingerprint(content)[:length] + "..."
