"""
instruction-audit — hashing utilities

Purpose
- Fingerprint log files so a report can be tied to the exact bytes it audited.
"""

from __future__ import annotations

import hashlib

__all__ = ["sha256_bytes"]


def sha256_bytes(data: bytes) -> str:
    """Return the SHA-256 hex digest of the raw log bytes."""

    return hashlib.sha256(data).hexdigest()
