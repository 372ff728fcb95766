"""
instruction-audit — unit tests for observability logging

Purpose
- Validate JSON and text formatting, correlation context propagation, sink
  levels, and handle shutdown.
"""

from __future__ import annotations

import io
import json
import logging
import sys
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from instruction_audit.observability.logging import (
    LoggingConfig,
    correlation_scope,
    get_active_logging_handle,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _logger_name() -> str:
    return f"instruction_audit.tests.logging.{uuid4().hex}"


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_json_file_sink_carries_correlation_and_extra_fields(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            run_id="run-json",
            base_log_dir=tmp_path,
            log_to_file=True,
            logger_name=logger_name,
        )
    )
    logger = logging.getLogger(logger_name)

    with correlation_scope(source="instructions.jsonl"):
        logger.info("parsed", extra={"entry_count": 3, "categories": ["quality"]})
    logger.debug("dropped below INFO")

    shutdown_logging(handle)

    assert handle.log_path == tmp_path / "run-json" / "instruction_audit.jsonl"
    (event,) = _read_json_lines(handle.log_path)
    assert event["message"] == "parsed"
    assert event["level"] == "INFO"
    assert event["run_id"] == "run-json"
    assert event["source"] == "instructions.jsonl"
    assert event["fields"] == {"entry_count": 3, "categories": ["quality"]}
    assert str(event["timestamp"]).endswith("Z")


def test_console_sink_defaults_to_warning_text_on_stderr(
    capsys: pytest.CaptureFixture[str],
) -> None:
    logger_name = _logger_name()
    setup_structured_logging(LoggingConfig(run_id="run-text", logger_name=logger_name))
    logger = logging.getLogger(logger_name)

    logger.info("quiet")
    with correlation_scope(source="a.jsonl"):
        logger.warning("loud", extra={"parse_error_count": 2})
    shutdown_logging()

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "quiet" not in captured.err
    assert f"WARNING {logger_name}: loud [source=a.jsonl parse_error_count=2]" in captured.err


def test_setup_logging_reads_observability_section(tmp_path: Path) -> None:
    handle = setup_logging(
        {
            "log_level": "DEBUG",
            "log_format": "json",
            "log_dir": str(tmp_path),
            "log_to_file": True,
        },
        run_id="run-wrapper",
    )

    logging.getLogger("instruction_audit.pipeline").debug("detail")
    shutdown_logging()

    assert handle.log_path is not None
    (event,) = _read_json_lines(handle.log_path)
    assert event["logger"] == "instruction_audit.pipeline"
    assert event["level"] == "DEBUG"


def test_verbose_lowers_console_to_debug(capsys: pytest.CaptureFixture[str]) -> None:
    setup_logging({"log_level": "INFO"}, run_id="run-verbose", verbose=True)

    logging.getLogger("instruction_audit.validation").debug("visible")
    shutdown_logging()

    assert "visible" in capsys.readouterr().err


def test_shutdown_skips_flushing_a_closed_console_stream(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    stream = io.StringIO()
    monkeypatch.setattr(sys, "stderr", stream)
    handle = setup_logging({}, run_id="run-closed")
    logging.getLogger("instruction_audit").warning("before close")
    stream.close()

    shutdown_logging()

    assert handle.is_shutdown
    assert get_active_logging_handle() is None


def test_correlation_scope_nests_and_resets() -> None:
    assert get_correlation_context() == {}

    with correlation_scope(run_id="r1", source="a"):
        with correlation_scope(source="b", correlation_id="c"):
            assert get_correlation_context() == {
                "run_id": "r1",
                "source": "b",
                "correlation_id": "c",
            }
        with correlation_scope(source=None):
            assert get_correlation_context() == {"run_id": "r1"}
        assert get_correlation_context() == {"run_id": "r1", "source": "a"}

    assert get_correlation_context() == {}


def test_shutdown_restores_propagation_and_clears_active_handle() -> None:
    logger = logging.getLogger("instruction_audit")
    before = (logger.level, logger.propagate)
    handle = setup_logging({}, run_id="run-restore")

    assert get_active_logging_handle() is handle
    assert logger.propagate is False

    shutdown_logging()
    shutdown_logging()

    assert handle.is_shutdown
    assert get_active_logging_handle() is None
    assert (logger.level, logger.propagate) == before


@pytest.mark.parametrize(
    ("config", "fragment"),
    [
        (LoggingConfig(run_id=" "), "run_id must not be empty"),
        (LoggingConfig(run_id="r", log_format="xml"), "unsupported log format"),
        (LoggingConfig(run_id="r", level="LOUD"), "LOUD"),
        (LoggingConfig(run_id="r", log_filename="../escape.jsonl"), "log_filename"),
    ],
)
def test_invalid_logging_config_is_rejected(config: LoggingConfig, fragment: str) -> None:
    with pytest.raises(ValueError, match=fragment):
        setup_structured_logging(config)
