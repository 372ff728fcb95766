"""Utility exports for filesystem and hashing helpers."""

from instruction_audit.utils.fs import atomic_write, ensure_directory
from instruction_audit.utils.hashing import sha256_bytes

__all__ = ["atomic_write", "ensure_directory", "sha256_bytes"]
