"""Module entrypoint for ``python -m instruction_audit``."""

from __future__ import annotations

from instruction_audit.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
