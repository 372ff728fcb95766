"""
instruction-audit — unit tests for config loader

Purpose
- Validate deterministic config loading from defaults, TOML, env overrides, and CLI overrides.

What this test file should cover
- Precedence: CLI > env > profile > file > defaults.
- Env var path mapping and type coercion.
- Path normalization relative to the config file.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from instruction_audit.config.loader import (
    ConfigLoadError,
    dump_effective_config,
    load_config,
)
from instruction_audit.config.schema import ConfigValidationError

pytestmark = pytest.mark.unit


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text.strip() + "\n", encoding="utf-8")
    return path


def test_defaults_apply_without_a_config_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)

    config = load_config(environ={})

    assert config["ingestion"]["encoding"] == "utf-8"
    assert config["validation"]["fail_on_warning"] is False
    assert config["validation"]["rules_path"] is None
    assert config["report"]["output_dir"] == (tmp_path / "reports").resolve().as_posix()
    assert config["observability"]["log_level"] == "INFO"


def test_loader_precedence_file_env_cli(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "instruction_audit.toml",
        """
[report]
indent = 4
max_results = 10

[observability]
log_level = "DEBUG"
""",
    )

    file_only = load_config(config_path, environ={})
    assert file_only["report"]["indent"] == 4
    assert file_only["observability"]["log_level"] == "DEBUG"

    env = {
        "INSTRUCTION_AUDIT_REPORT_MAX_RESULTS": "25",
        "INSTRUCTION_AUDIT_VALIDATION_FAIL_ON_WARNING": "yes",
    }
    with_env = load_config(config_path, environ=env)
    assert with_env["report"]["max_results"] == 25
    assert with_env["validation"]["fail_on_warning"] is True

    with_cli = load_config(
        config_path,
        environ=env,
        cli_overrides={"report.max_results": 3, "report.indent": None},
    )
    assert with_cli["report"]["max_results"] == 3
    assert with_cli["report"]["indent"] == 4


def test_profile_overlay_sits_below_env(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "cfg.toml", "")

    strict = load_config(config_path, profile="strict", environ={})
    assert strict["validation"]["fail_on_warning"] is True

    from_env = load_config(
        config_path,
        environ={
            "INSTRUCTION_AUDIT_PROFILE": "strict",
            "INSTRUCTION_AUDIT_VALIDATION_FAIL_ON_WARNING": "off",
        },
    )
    assert from_env["validation"]["fail_on_warning"] is False


def test_custom_profile_from_file(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "cfg.toml",
        """
[profiles.ci.report]
max_results = 5
""",
    )

    config = load_config(config_path, profile="ci", environ={})

    assert config["report"]["max_results"] == 5


def test_path_fields_resolve_relative_to_config_file(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "conf" / "instruction_audit.toml",
        """
[validation]
rules_path = "rules/overrides.yaml"

[observability]
log_dir = "/var/tmp/audit-logs"
""",
    )

    config = load_config(config_path, environ={})

    conf_dir = (tmp_path / "conf").resolve()
    assert config["validation"]["rules_path"] == (conf_dir / "rules/overrides.yaml").as_posix()
    assert config["observability"]["log_dir"] == "/var/tmp/audit-logs"


@pytest.mark.parametrize(
    ("env", "fragment"),
    [
        ({"INSTRUCTION_AUDIT_REPORT_INDENT": "wide"}, "must be an integer"),
        ({"INSTRUCTION_AUDIT_OBSERVABILITY_LOG_TO_FILE": "maybe"}, "must be a boolean"),
    ],
)
def test_env_coercion_errors(tmp_path: Path, env: dict[str, str], fragment: str) -> None:
    config_path = _write_config(tmp_path / "cfg.toml", "")

    with pytest.raises(ConfigLoadError, match=fragment):
        load_config(config_path, environ=env)


def test_missing_explicit_file_and_invalid_toml(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "absent.toml", environ={})

    broken = _write_config(tmp_path / "broken.toml", "[report\nindent = 1")
    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(broken, environ={})


def test_invalid_values_raise_structured_validation_error(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "cfg.toml",
        """
[report]
indent = -1
unknown = true
""",
    )

    with pytest.raises(ConfigValidationError) as exc_info:
        load_config(config_path, environ={})

    paths = {issue.path for issue in exc_info.value.issues}
    assert {"report.indent", "report.unknown"} <= paths


def test_unknown_profile_is_rejected(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "cfg.toml", "")

    with pytest.raises(ConfigValidationError, match="profile 'nope' is not defined"):
        load_config(config_path, profile="nope", environ={})


def test_bad_cli_override_key(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "cfg.toml", "")

    with pytest.raises(ConfigLoadError, match="expected section.field"):
        load_config(config_path, cli_overrides={"indent": 2}, environ={})


def test_dump_effective_config_is_deterministic(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "cfg.toml", "")
    config = load_config(config_path, environ={})

    compact = dump_effective_config(config)
    assert compact == dump_effective_config(load_config(config_path, environ={}))
    assert json.loads(compact) == config
    assert dump_effective_config(config, indent=2).startswith("{\n  ")
