"""
instruction-audit — unit tests for the CLI renderer
"""

from __future__ import annotations

import pytest

from instruction_audit.ui import render
from instruction_audit.ui.render import create_renderer

pytestmark = pytest.mark.unit


def test_plain_output_when_color_is_disabled(capsys: pytest.CaptureFixture[str]) -> None:
    renderer = create_renderer(no_color=True)

    renderer.styled("Result: ", "FAIL", "error")
    renderer.warning("2 line(s) failed to parse")

    assert not renderer.color_enabled
    assert capsys.readouterr().out == "Result: FAIL\n  Warning: 2 line(s) failed to parse\n"


def test_color_output_is_styled_through_rich(
    capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.setenv("TERM", "xterm-256color")
    monkeypatch.setattr(render, "_color_allowed", lambda no_color_flag: True)
    renderer = create_renderer()

    renderer.styled("Result: ", "PASS", "ok")

    out = capsys.readouterr().out
    assert renderer.color_enabled
    assert "\x1b[" in out
    assert out.startswith("Result: ")
    assert "PASS" in out


def test_unknown_tone_prints_plain_text(
    capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(render, "_color_allowed", lambda no_color_flag: True)
    renderer = create_renderer()

    renderer.styled("Result: ", "DONE", "info")

    assert capsys.readouterr().out == "Result: DONE\n"


def test_table_skips_empty_rows_and_aligns_columns(capsys: pytest.CaptureFixture[str]) -> None:
    renderer = create_renderer(no_color=True)

    renderer.table(("Code", "Count"), [])
    renderer.table(("Code", "Count"), [("QA_INSPECTION", "3"), ("X", "10")], title="Top:")

    assert capsys.readouterr().out.splitlines() == [
        "",
        "Top:",
        "  Code           Count",
        "  -------------  -----",
        "  QA_INSPECTION  3",
        "  X              10",
    ]
