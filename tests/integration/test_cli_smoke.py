"""
instruction-audit — CLI smoke contracts

Purpose
- Drive every subcommand through ``cli_entrypoint`` and check exit codes,
  stdout payloads, and report side effects.
- Run ``python -m instruction_audit`` once as a subprocess to cover the module
  entrypoint.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest
import yaml

from instruction_audit.main import ExitCode, cli_entrypoint
from instruction_audit.validation.rules import rule_catalog_to_dict

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"

pytestmark = pytest.mark.integration


def _record(instruction_id: str, status: str, created_at: str, **extra: object) -> str:
    record: dict[str, object] = {
        "id": instruction_id,
        "category": "quality",
        "status": status,
        "createdAt": created_at,
        "owner": "Alex",
        "payload": {"revision": 1, "summary": "s", "steps": ["one", "two"]},
        "action": "QUALITY_AUDIT",
    }
    record.update(extra)
    return json.dumps(record)


CLEAN_LOG = "\n".join(
    [
        _record("LOG-1", "pending", "2024-05-01T09:00:00Z"),
        _record("LOG-1", "approved", "2024-05-01T10:00:00Z"),
    ]
)
WARNING_LOG = _record("OPEN-1", "pending", "2024-05-01T09:00:00Z")
ERROR_LOG = "\n".join(
    [
        _record(
            "DRILL-1",
            "pending",
            "2024-05-01T09:00:00Z",
            category="safety",
            action="SAFETY_DRILL",
            payload={"revision": 1, "summary": "s", "steps": ["a", "b"], "ownerNotes": "n"},
        ),
        "this line is not json",
    ]
)


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("INSTRUCTION_AUDIT_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("NO_COLOR", "1")


def _write_log(tmp_path: Path, text: str, name: str = "instructions.jsonl") -> str:
    path = tmp_path / name
    path.write_text(text + "\n", encoding="utf-8")
    return str(path)


def _json_out(capsys: pytest.CaptureFixture[str]) -> dict[str, object]:
    captured = capsys.readouterr()
    payload = json.loads(captured.out)
    assert isinstance(payload, dict)
    return payload


def test_validate_clean_log_passes(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli_entrypoint(["validate", _write_log(tmp_path, CLEAN_LOG)])

    out = capsys.readouterr().out
    assert exit_code == ExitCode.SUCCESS
    assert "Result: PASS" in out
    assert "RESULTS\n(none)" in out


def test_validate_errors_exit_one_and_report_json(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = cli_entrypoint(["validate", _write_log(tmp_path, ERROR_LOG), "--json"])

    payload = _json_out(capsys)
    assert exit_code == ExitCode.ISSUES_FOUND
    report = payload["report"]
    assert isinstance(report, dict)
    assert report["totals"]["errorCount"] >= 1
    codes = {issue["code"] for issue in report["results"][0]["issues"]}
    assert "missing_pair_end" in codes
    assert [error["line"] for error in payload["parse_errors"]] == [2]
    assert payload["report_path"] is None


def test_fail_on_warning_flag_and_strict_profile(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    log_path = _write_log(tmp_path, WARNING_LOG)

    assert cli_entrypoint(["validate", log_path]) == ExitCode.SUCCESS
    assert cli_entrypoint(["validate", log_path, "--fail-on-warning"]) == ExitCode.ISSUES_FOUND
    assert cli_entrypoint(["validate", log_path, "--profile", "strict"]) == ExitCode.ISSUES_FOUND
    capsys.readouterr()


def test_validate_writes_report_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    out_dir = tmp_path / "reports-out"

    exit_code = cli_entrypoint(
        ["validate", _write_log(tmp_path, CLEAN_LOG), "--output", str(out_dir)]
    )

    assert exit_code == ExitCode.SUCCESS
    (written,) = out_dir.glob("instruction-validation-*.json")
    assert json.loads(written.read_text(encoding="utf-8"))["totals"]["instructionCount"] == 1
    assert "Report written" in capsys.readouterr().out


def test_write_report_uses_configured_output_dir(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    (tmp_path / "instruction_audit.toml").write_text(
        '[report]\noutput_dir = "audit-reports"\n', encoding="utf-8"
    )

    exit_code = cli_entrypoint(["validate", _write_log(tmp_path, CLEAN_LOG), "--write-report"])

    assert exit_code == ExitCode.SUCCESS
    assert len(list((tmp_path / "audit-reports").glob("*.json"))) == 1
    capsys.readouterr()


def test_rule_overrides_change_the_outcome(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    rules = tmp_path / "rules.yaml"
    rules.write_text("categories:\n  quality:\n    min_steps: 5\n", encoding="utf-8")
    log_path = _write_log(tmp_path, CLEAN_LOG)

    exit_code = cli_entrypoint(["validate", log_path, "--rules", str(rules), "--json"])

    payload = _json_out(capsys)
    assert exit_code == ExitCode.SUCCESS
    assert payload["report"]["totals"]["warningCount"] == 2


def test_input_errors_exit_three(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["validate", str(tmp_path / "missing.jsonl")]) == ExitCode.INPUT_ERROR
    assert "log file not found" in capsys.readouterr().err

    junk = _write_log(tmp_path, "not json\n{}", name="junk.jsonl")
    assert cli_entrypoint(["validate", junk]) == ExitCode.INPUT_ERROR
    assert "no valid instruction records" in capsys.readouterr().err

    assert cli_entrypoint(["parse", junk]) == ExitCode.INPUT_ERROR
    assert cli_entrypoint(["stats", junk]) == ExitCode.INPUT_ERROR
    capsys.readouterr()


def test_config_errors_exit_two(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    log_path = _write_log(tmp_path, CLEAN_LOG)
    bad_rules = tmp_path / "bad.yaml"
    bad_rules.write_text("categories:\n  finance: {}\n", encoding="utf-8")

    assert cli_entrypoint(["validate", log_path, "--rules", str(bad_rules)]) == 2
    assert "categories.finance: unknown category" in capsys.readouterr().err

    assert cli_entrypoint(["config", "--config", str(tmp_path / "nope.toml")]) == 2
    assert "config file not found" in capsys.readouterr().err

    assert cli_entrypoint(["validate", log_path, "--profile", "missing"]) == 2
    assert cli_entrypoint(["not-a-command"]) == 2
    capsys.readouterr()


def test_parse_reports_rejected_lines(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli_entrypoint(["parse", _write_log(tmp_path, ERROR_LOG), "--json"])

    payload = _json_out(capsys)
    assert exit_code == ExitCode.SUCCESS
    assert payload["entry_count"] == 1
    assert payload["errors"][0]["line"] == 2
    assert payload["metadata"]["name"] == "instructions.jsonl"


def test_resolve_prints_action_metadata(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli_entrypoint(
        ["resolve", "safety drill", "lean-kaizen", "--category", "compliance", "--json"]
    )

    payload = _json_out(capsys)
    assert exit_code == ExitCode.SUCCESS
    actions = payload["actions"]
    assert [action["code"] for action in actions] == ["SAFETY_DRILL", "LEAN_KAIZEN"]
    assert {action["category"] for action in actions} == {"compliance"}

    assert cli_entrypoint(["resolve", "QA_INSPECTION"]) == ExitCode.SUCCESS
    assert "Quality Inspection" in capsys.readouterr().out


def test_stats_summarizes_the_log(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    log_path = _write_log(tmp_path, CLEAN_LOG)

    assert cli_entrypoint(["stats", log_path, "--json"]) == ExitCode.SUCCESS
    statistics = _json_out(capsys)["statistics"]
    assert statistics["totalInstructions"] == 2
    assert statistics["timeline"][0]["fullLabel"] == "May 1, 2024"

    assert cli_entrypoint(["stats", log_path, "--verbose"]) == ExitCode.SUCCESS
    out = capsys.readouterr().out
    assert "Total instructions: 2" in out
    assert "Timeline:" in out


def test_rules_command_dumps_yaml(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["rules"]) == ExitCode.SUCCESS

    assert yaml.safe_load(capsys.readouterr().out) == rule_catalog_to_dict()


def test_config_command_shows_effective_config(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["config", "--profile", "quiet", "--json"]) == ExitCode.SUCCESS

    payload = _json_out(capsys)
    assert payload["active_profile"] == "quiet"
    assert payload["config"]["observability"]["log_level"] == "WARNING"


def test_module_entrypoint_subprocess(tmp_path: Path) -> None:
    env = os.environ.copy()
    existing = env.get("PYTHONPATH")
    env["PYTHONPATH"] = str(SRC_PATH) if not existing else f"{SRC_PATH}{os.pathsep}{existing}"
    log_path = _write_log(tmp_path, ERROR_LOG)

    completed = subprocess.run(
        [sys.executable, "-m", "instruction_audit", "validate", log_path, "--json"],
        cwd=tmp_path,
        text=True,
        capture_output=True,
        check=False,
        env=env,
    )

    assert completed.returncode == ExitCode.ISSUES_FOUND, completed.stderr
    assert json.loads(completed.stdout)["command"] == "validate"
