"""Output rendering for the instruction-audit CLI.

Plain text always works. Severity markers are styled through ``rich`` only when
stdout is a terminal and neither ``NO_COLOR`` nor ``--no-color`` is set.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Final

from rich.console import Console
from rich.style import Style
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Sequence

_TONE_STYLES: Final[dict[str, Style]] = {
    "error": Style(color="#e05555", bold=True),
    "warning": Style(color="#e0b455", bold=True),
    "ok": Style(color="#4ec990", bold=True),
}


def _color_allowed(no_color_flag: bool) -> bool:
    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


class CLIRenderer:
    """Thin CLI output renderer writing deterministic plain text to stdout."""

    def __init__(self, *, no_color: bool = False, verbose: bool = False) -> None:
        self.verbose = verbose
        self._color = _color_allowed(no_color)
        self._console: Console | None = None
        if self._color:
            self._console = Console(file=sys.stdout, force_terminal=True, highlight=False)

    @property
    def color_enabled(self) -> bool:
        return self._color

    def styled(self, prefix: str, label: str, tone: str, suffix: str = "") -> None:
        """Print one line with ``label`` styled for ``tone`` when color is enabled."""

        style = _TONE_STYLES.get(tone)
        if self._console is None or style is None:
            print(f"{prefix}{label}{suffix}")
            return
        self._console.print(Text.assemble(prefix, (label, style), suffix), soft_wrap=True)

    def heading(self, text: str) -> None:
        print(text)

    def kv(self, key: str, value: object) -> None:
        print(f"{key}: {value}")

    def text(self, line: str) -> None:
        print(line)

    def block(self, text: str) -> None:
        """Print pre-formatted multi-line text without adding a newline."""

        sys.stdout.write(text if text.endswith("\n") else text + "\n")

    def section(self, title: str) -> None:
        print(f"\n{title}")

    def warning(self, text: str) -> None:
        self.styled("  ", "Warning", "warning", f": {text}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            print(f"  {prefix}{entry}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a left-aligned ASCII table; nothing is printed for zero rows."""

        if not rows:
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts = [
                (str(cells[i]) if i < len(cells) else "").ljust(widths[i])
                for i in range(col_count)
            ]
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        print(f"  {_pad(list(headers))}")
        print(f"  {'  '.join('-' * w for w in widths)}")
        for row in rows:
            print(f"  {_pad(list(row))}")


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
