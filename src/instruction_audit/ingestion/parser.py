"""
instruction-audit — JSON Lines instruction log parser

Purpose
- Turn raw log text into typed ``InstructionLogEntry`` values or per-line
  ``LogParseError`` values.

Functional requirements
- Blank and whitespace-only lines yield neither an entry nor an error.
- Every other line yields exactly one entry or exactly one error.
- Schema violations for a line are reported together as ``path: message``
  joined with ``"; "``.
- Entries are returned newest first (stable for equal timestamps); errors keep
  line order.
- Parsing never raises for any text input.
"""

from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, NoReturn, TypeVar

from instruction_audit.constants import ACTION_CODE_ALIASES
from instruction_audit.domain.models import (
    InstructionCategory,
    InstructionLogEntry,
    InstructionPayload,
    InstructionStatus,
    LogFileMetadata,
    LogParseError,
    parse_timestamp,
)
from instruction_audit.ingestion.actions import resolve_action
from instruction_audit.utils.hashing import sha256_bytes

logger = logging.getLogger(__name__)

_LINE_BREAK: Final[re.Pattern[str]] = re.compile(r"\r?\n")
_RECORD_PATH: Final[str] = "record"
_ACTION_PATH: Final[str] = "action"

T = TypeVar("T")
TEnum = TypeVar("TEnum", InstructionCategory, InstructionStatus)


@dataclass(frozen=True, slots=True)
class RecordIssue:
    """Single schema violation for one record."""

    path: str
    message: str

    def render(self) -> str:
        return f"{self.path}: {self.message}"


class RecordValidationError(ValueError):
    """Raised when a decoded value does not match the instruction record schema."""

    def __init__(self, issues: Sequence[RecordIssue]) -> None:
        self.issues = tuple(issues)
        rendered = "; ".join(item.render() for item in self.issues) or "invalid record"
        super().__init__(rendered)


@dataclass(frozen=True, slots=True)
class ParseResult:
    entries: tuple[InstructionLogEntry, ...]
    errors: tuple[LogParseError, ...]
    metadata: LogFileMetadata | None = None

    @property
    def has_entries(self) -> bool:
        return bool(self.entries)


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[RecordIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(RecordIssue(path=path, message=message))

    def items(self) -> tuple[RecordIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def parse_instruction_log(raw: str) -> ParseResult:
    """Parse JSON Lines text into entries and per-line parse errors."""

    entries: list[InstructionLogEntry] = []
    errors: list[LogParseError] = []

    for index, line in enumerate(_LINE_BREAK.split(raw)):
        line_number = index + 1
        trimmed = line.strip()
        if not trimmed:
            continue

        try:
            decoded = _decode_json(trimmed)
            entry = parse_instruction_record(decoded)
        except (ValueError, RecursionError) as exc:
            message = str(exc) or exc.__class__.__name__
            logger.debug("line %d rejected: %s", line_number, message)
            errors.append(LogParseError(line=line_number, message=message, raw=trimmed))
            continue

        entries.append(entry)

    ordered = tuple(sorted(entries, key=lambda item: item.timestamp, reverse=True))
    logger.info(
        "parsed instruction log",
        extra={"entry_count": len(ordered), "parse_error_count": len(errors)},
    )
    return ParseResult(entries=ordered, errors=tuple(errors))


def parse_instruction_file(path: str | Path, *, encoding: str = "utf-8") -> ParseResult:
    """Read and parse a log file, attaching file metadata to the result.

    ``OSError`` from reading the file propagates to the caller.
    """

    source = Path(path)
    data = source.read_bytes()
    stat = source.stat()
    parsed = parse_instruction_log(data.decode(encoding, errors="replace"))
    metadata = LogFileMetadata(
        name=source.name,
        size=len(data),
        instruction_count=len(parsed.entries),
        sha256=sha256_bytes(data),
        last_modified=stat.st_mtime,
    )
    return ParseResult(entries=parsed.entries, errors=parsed.errors, metadata=metadata)


def is_instruction_record(value: object) -> bool:
    """Return ``True`` when ``value`` matches the instruction record schema."""

    try:
        parse_instruction_record(value)
    except RecordValidationError:
        return False
    return True


def parse_instruction_record(value: object) -> InstructionLogEntry:
    """Validate one decoded record and build a resolved entry."""

    issues = _IssueCollector()
    if not isinstance(value, Mapping):
        issues.add(_RECORD_PATH, f"expected object, got {_json_type(value)}")
        raise RecordValidationError(issues.items())

    record_id = _required(value, "id", issues, _as_str)
    owner = _required(value, "owner", issues, _as_str)
    title = _as_optional_text(value.get("title"), "title", issues) if "title" in value else None
    category = (
        _as_enum(value["category"], "category", issues, InstructionCategory)
        if "category" in value
        else None
    )
    status = _required(value, "status", issues, _as_status)
    created_at = _required(value, "createdAt", issues, _as_timestamp_text)
    payload = _required(value, "payload", issues, _as_payload)
    action_code = _action_code(value, issues)

    if issues.has_issues:
        raise RecordValidationError(issues.items())

    # Every required value is present once no issues were collected.
    assert record_id is not None and owner is not None and status is not None
    assert created_at is not None and payload is not None and action_code is not None

    action = resolve_action(action_code, category=category)
    return InstructionLogEntry(
        id=record_id,
        title=title if title else action.name,
        category=action.category,
        status=status,
        created_at=created_at,
        owner=owner,
        payload=payload,
        action=action,
    )


def _decode_json(text: str) -> object:
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON: {exc.msg} (column {exc.colno})") from exc


def _reject_constant(name: str) -> NoReturn:
    raise ValueError(f"invalid JSON: unsupported constant {name}")


def _required(
    record: Mapping[str, object],
    key: str,
    issues: _IssueCollector,
    parse: Callable[[object, str, _IssueCollector], T | None],
) -> T | None:
    if key not in record:
        issues.add(key, "missing required field")
        return None
    return parse(record[key], key, issues)


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {_json_type(value)}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_optional_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {_json_type(value)}")
        return None
    return value.strip() or None


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    enum_type: type[TEnum],
) -> TEnum | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {_json_type(value)}")
        return None
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(item.value for item in enum_type)
        issues.add(path, f"invalid value {value!r}; expected one of: {allowed}")
        return None


def _as_status(value: object, path: str, issues: _IssueCollector) -> InstructionStatus | None:
    return _as_enum(value, path, issues, InstructionStatus)


def _as_timestamp_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {_json_type(value)}")
        return None
    if not value.strip():
        issues.add(path, "must not be empty")
        return None
    try:
        parse_timestamp(value)
    except ValueError:
        issues.add(path, "must be a valid ISO-8601 date string")
        return None
    return value.strip()


def _as_number(value: object, path: str, issues: _IssueCollector) -> int | float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {_json_type(value)}")
        return None
    if isinstance(value, float) and not math.isfinite(value):
        issues.add(path, "must be finite")
        return None
    return value


def _as_payload(
    value: object, path: str, issues: _IssueCollector
) -> InstructionPayload | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {_json_type(value)}")
        return None

    ok = True
    revision = _required_nested(value, path, "revision", issues, _as_number)
    summary: str | None = None
    if "summary" not in value:
        issues.add(f"{path}.summary", "missing required field")
    elif not isinstance(value["summary"], str):
        issues.add(f"{path}.summary", f"expected string, got {_json_type(value['summary'])}")
    else:
        summary = value["summary"]

    steps = _as_steps(value.get("steps"), f"{path}.steps", issues) if "steps" in value else None
    if "steps" not in value:
        issues.add(f"{path}.steps", "missing required field")

    owner_notes: str | None = None
    if "ownerNotes" in value:
        raw_notes = value["ownerNotes"]
        if isinstance(raw_notes, str):
            owner_notes = raw_notes
        else:
            issues.add(f"{path}.ownerNotes", f"expected string, got {_json_type(raw_notes)}")
            ok = False

    if not ok or revision is None or summary is None or steps is None:
        return None
    return InstructionPayload(
        revision=revision,
        summary=summary,
        steps=steps,
        owner_notes=owner_notes,
    )


def _required_nested(
    record: Mapping[str, object],
    parent: str,
    key: str,
    issues: _IssueCollector,
    parse: Callable[[object, str, _IssueCollector], T | None],
) -> T | None:
    path = f"{parent}.{key}"
    if key not in record:
        issues.add(path, "missing required field")
        return None
    return parse(record[key], path, issues)


def _as_steps(value: object, path: str, issues: _IssueCollector) -> tuple[str, ...] | None:
    if not isinstance(value, (list, tuple)):
        issues.add(path, f"expected array, got {_json_type(value)}")
        return None
    if not value:
        issues.add(path, "must include at least one step")
        return None

    steps: list[str] = []
    valid = True
    for index, item in enumerate(value):
        if not isinstance(item, str):
            issues.add(f"{path}[{index}]", f"expected string, got {_json_type(item)}")
            valid = False
            continue
        steps.append(item)
    return tuple(steps) if valid else None


def _action_code(record: Mapping[str, object], issues: _IssueCollector) -> str | None:
    for key in ACTION_CODE_ALIASES:
        candidate = record.get(key)
        if isinstance(candidate, Mapping):
            candidate = candidate.get("code")
        if isinstance(candidate, str) and candidate.strip():
            return candidate
    aliases = ", ".join(ACTION_CODE_ALIASES)
    issues.add(_ACTION_PATH, f"an action code is required in one of: {aliases}")
    return None


def _json_type(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


__all__ = [
    "ParseResult",
    "RecordIssue",
    "RecordValidationError",
    "is_instruction_record",
    "parse_instruction_file",
    "parse_instruction_log",
    "parse_instruction_record",
]
