"""
instruction-audit — configuration schema and validation.

Purpose
- Define authoritative configuration defaults and strict validation rules.

Sections
- ``meta``: schema version.
- ``ingestion``: log file decoding.
- ``validation``: optional YAML rule overrides and the warning exit policy.
- ``report``: where and how reports are written and printed.
- ``observability``: logging level, format, and file sink.
- ``profiles``: named partial overlays (``strict``, ``quiet``, user-defined).

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Unknown fields are rejected so typos surface instead of being ignored.
"""

from __future__ import annotations

import codecs
import copy
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, NotRequired, TypedDict

from instruction_audit.constants import CONFIG_SCHEMA_VERSION

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("strict", "quiet")

_PROFILE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")

# Config paths that are resolved relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("validation", "rules_path"),
    ("report", "output_dir"),
    ("observability", "log_dir"),
)


class MetaConfig(TypedDict):
    schema_version: int


class IngestionConfig(TypedDict):
    encoding: str


class ValidationConfig(TypedDict):
    rules_path: str | None
    fail_on_warning: bool


class ReportConfig(TypedDict):
    output_dir: str
    indent: int
    max_results: int


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]
    log_dir: str
    log_to_file: bool


class ProfileOverlay(TypedDict, total=False):
    ingestion: NotRequired[dict[str, Any]]
    validation: NotRequired[dict[str, Any]]
    report: NotRequired[dict[str, Any]]
    observability: NotRequired[dict[str, Any]]


class AuditConfig(TypedDict):
    meta: MetaConfig
    ingestion: IngestionConfig
    validation: ValidationConfig
    report: ReportConfig
    observability: ObservabilityConfig
    profiles: dict[str, ProfileOverlay]


DEFAULT_CONFIG: Final[AuditConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "ingestion": {
        "encoding": "utf-8",
    },
    "validation": {
        "rules_path": None,
        "fail_on_warning": False,
    },
    "report": {
        "output_dir": "reports/",
        "indent": 2,
        "max_results": 50,
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "text",
        "log_dir": "logs/",
        "log_to_file": False,
    },
    "profiles": {
        "strict": {
            "validation": {"fail_on_warning": True},
        },
        "quiet": {
            "observability": {"log_level": "WARNING"},
        },
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> AuditConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade instruction_audit.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the instruction-audit package"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Apply a named profile overlay and re-validate the resulting config."""

    materialized = _deep_copy_mapping(config)
    selected = profile.strip() if profile is not None else ""
    if not selected:
        return materialized

    profiles = materialized.get("profiles")
    overlay = profiles.get(selected) if isinstance(profiles, Mapping) else None
    if overlay is None:
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined"),)
        )
    if not isinstance(overlay, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue(f"profiles.{selected}", "profile overlay must be an object"),)
        )

    return assert_valid_config(merge_config(materialized, overlay))


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    if not isinstance(config, Mapping):
        issues.add("<root>", f"expected object, got {type(config).__name__}")
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(config, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    sections = ("meta", "ingestion", "validation", "report", "observability", "profiles")
    _reject_unknown_keys(payload, set(sections), "", issues)
    _require_keys(payload, set(sections), "", issues)

    out: dict[str, Any] = {}
    meta = _section(payload, "meta", issues)
    if meta is not None:
        out["meta"] = _validate_meta(meta, "meta", issues)
    for name, validator in (
        ("ingestion", _validate_ingestion),
        ("validation", _validate_validation),
        ("report", _validate_report),
        ("observability", _validate_observability),
    ):
        section = _section(payload, name, issues)
        if section is not None:
            out[name] = validator(section, name, issues, partial=False)

    profiles = _section(payload, "profiles", issues)
    if profiles is not None:
        out["profiles"] = _validate_profiles(profiles, "profiles", issues)
    return out


def _section(
    payload: Mapping[str, object], key: str, issues: _IssueCollector
) -> Mapping[str, object] | None:
    if key not in payload:
        return None
    value = payload[key]
    if not isinstance(value, Mapping):
        issues.add(key, f"expected object, got {type(value).__name__}")
        return None
    return value


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)
    out: dict[str, Any] = {}
    if "schema_version" in payload:
        version = _as_int(payload["schema_version"], _join(path, "schema_version"), issues)
        if version is not None and version != ConfigSchemaVersion:
            issues.add(_join(path, "schema_version"), migration_guidance(version))
        elif version is not None:
            out["schema_version"] = version
    return out


def _validate_ingestion(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, *, partial: bool
) -> dict[str, Any]:
    allowed = {"encoding"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "encoding" in payload:
        encoding = _as_str(payload["encoding"], _join(path, "encoding"), issues)
        if encoding is not None:
            try:
                codecs.lookup(encoding)
            except LookupError:
                issues.add(_join(path, "encoding"), f"unknown text encoding {encoding!r}")
            else:
                out["encoding"] = encoding
    return out


def _validate_validation(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, *, partial: bool
) -> dict[str, Any]:
    allowed = {"rules_path", "fail_on_warning"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "rules_path" in payload:
        raw = payload["rules_path"]
        if raw is None:
            out["rules_path"] = None
        else:
            parsed = _as_path_text(raw, _join(path, "rules_path"), issues)
            if parsed is not None:
                out["rules_path"] = parsed
    if "fail_on_warning" in payload:
        flag = _as_bool(payload["fail_on_warning"], _join(path, "fail_on_warning"), issues)
        if flag is not None:
            out["fail_on_warning"] = flag
    return out


def _validate_report(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, *, partial: bool
) -> dict[str, Any]:
    allowed = {"output_dir", "indent", "max_results"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "output_dir" in payload:
        parsed_dir = _as_path_text(payload["output_dir"], _join(path, "output_dir"), issues)
        if parsed_dir is not None:
            out["output_dir"] = parsed_dir
    if "indent" in payload:
        indent = _as_int(payload["indent"], _join(path, "indent"), issues, minimum=0)
        if indent is not None:
            out["indent"] = indent
    if "max_results" in payload:
        limit = _as_int(payload["max_results"], _join(path, "max_results"), issues, minimum=1)
        if limit is not None:
            out["max_results"] = limit
    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, *, partial: bool
) -> dict[str, Any]:
    allowed = {"log_level", "log_format", "log_dir", "log_to_file"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=("DEBUG", "INFO", "WARNING", "ERROR"),
        )
        if level is not None:
            out["log_level"] = level
    if "log_format" in payload:
        log_format = _as_enum(
            payload["log_format"],
            _join(path, "log_format"),
            issues,
            allowed_values=("json", "text"),
        )
        if log_format is not None:
            out["log_format"] = log_format
    if "log_dir" in payload:
        log_dir = _as_path_text(payload["log_dir"], _join(path, "log_dir"), issues)
        if log_dir is not None:
            out["log_dir"] = log_dir
    if "log_to_file" in payload:
        flag = _as_bool(payload["log_to_file"], _join(path, "log_to_file"), issues)
        if flag is not None:
            out["log_to_file"] = flag
    return out


_OVERLAY_VALIDATORS = {
    "ingestion": _validate_ingestion,
    "validation": _validate_validation,
    "report": _validate_report,
    "observability": _validate_observability,
}


def _validate_profiles(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name in sorted(payload, key=str):
        profile_path = _join(path, str(name))
        if not isinstance(name, str) or not _PROFILE_NAME_PATTERN.fullmatch(name):
            issues.add(profile_path, "profile names must match [a-z][a-z0-9_-]*")
            continue
        overlay = payload[name]
        if not isinstance(overlay, Mapping):
            issues.add(profile_path, "profile overlay must be an object")
            continue
        _reject_unknown_keys(overlay, set(_OVERLAY_VALIDATORS), profile_path, issues)
        validated: dict[str, Any] = {}
        for section_name, validator in _OVERLAY_VALIDATORS.items():
            if section_name not in overlay:
                continue
            section = overlay[section_name]
            section_path = _join(profile_path, section_name)
            if not isinstance(section, Mapping):
                issues.add(section_path, f"expected object, got {type(section).__name__}")
                continue
            validated[section_name] = validator(section, section_path, issues, partial=True)
        out[name] = validated
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload, key=str):
        if key not in allowed:
            issues.add(_join(path, str(key)), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            nested = _deep_copy_mapping(existing) if isinstance(existing, Mapping) else {}
            _merge_into(nested, value)
            target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: copy.deepcopy(value[key]) for key in sorted(value)}


__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "DEFAULT_CONFIG",
    "PATH_FIELDS",
    "AuditConfig",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "ProfileOverlay",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
