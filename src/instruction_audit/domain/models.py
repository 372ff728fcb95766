"""Dataclass domain models with canonical camelCase serialization."""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import UTC, datetime
from enum import Enum, StrEnum
from typing import NoReturn, cast

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


class InstructionCategory(StrEnum):
    QUALITY = "quality"
    COMPLIANCE = "compliance"
    SAFETY = "safety"
    EFFICIENCY = "efficiency"


class InstructionStatus(StrEnum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class IssueSeverity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class IssueCode(StrEnum):
    MISSING_SEQUENCE_START = "missing_sequence_start"
    MISSING_SEQUENCE_END = "missing_sequence_end"
    TIME_ORDER_VIOLATION = "time_order_violation"
    STATUS_REGRESSION = "status_regression"
    INSUFFICIENT_STEPS = "insufficient_steps"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    MISSING_PAIR_END = "missing_pair_end"
    MISSING_PAIR_START = "missing_pair_start"


class CanonicalModel:
    """Mixin for canonical dict/json serialization using camelCase wire names.

    Fields whose value is ``None`` are omitted, and fields declared with
    ``metadata={"serialize": False}`` are never emitted.
    """

    __slots__ = ()

    def to_dict(self) -> dict[str, JSONValue]:
        serialized = _serialize_value(self, self.__class__.__name__)
        if not isinstance(serialized, dict):
            _fail(self.__class__.__name__, "serialized model must be an object")
        return serialized

    def to_json(self, *, indent: int | None = None) -> str:
        if indent is None:
            return _canonical_json(self.to_dict())
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _canonical_json(value: JSONValue) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def wire_name(field_name: str) -> str:
    """Map a snake_case attribute name to its camelCase wire name."""

    head, *tail = field_name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in tail)


def parse_timestamp(value: object) -> datetime:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Naive values are interpreted as UTC. Raises ``ValueError`` for anything
    that is not a valid ISO-8601 date or date-time.
    """

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("timestamp must not be empty")
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"expected ISO-8601 string, got {type(value).__name__}")

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        parsed = parsed.replace(tzinfo=UTC)
    try:
        return parsed.astimezone(UTC)
    except OverflowError as exc:
        raise ValueError(f"timestamp out of range: {value!r}") from exc


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with millisecond precision and ``Z``."""

    normalized = parse_timestamp(value)
    return normalized.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _serialize_value(value: object, path: str) -> JSONValue:
    if value is None or isinstance(value, bool):
        return cast("JSONValue", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, str):
        return value
    if isinstance(value, Enum):
        raw = value.value
        if not isinstance(raw, str):
            _fail(path, "enum value must be string")
        return raw
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, (tuple, list)):
        return [_serialize_value(item, f"{path}[]") for item in value]
    if isinstance(value, Mapping):
        out: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                _fail(path, "dict keys must be strings")
            out[key] = _serialize_value(item, f"{path}.{key}")
        return out
    if is_dataclass(value):
        out_obj: dict[str, JSONValue] = {}
        for dataclass_field in fields(value):
            if not dataclass_field.metadata.get("serialize", True):
                continue
            item = getattr(value, dataclass_field.name)
            if item is None:
                continue
            out_obj[wire_name(dataclass_field.name)] = _serialize_value(
                item, f"{path}.{dataclass_field.name}"
            )
        return out_obj

    _fail(path, f"cannot serialize value of type {type(value).__name__}")


@dataclass(frozen=True, slots=True)
class InstructionPayload(CanonicalModel):
    revision: int | float
    summary: str
    steps: tuple[str, ...]
    owner_notes: str | None = None

    @property
    def step_count(self) -> int:
        """Number of steps carrying non-blank text."""

        return sum(1 for step in self.steps if step.strip())

    @property
    def has_owner_notes(self) -> bool:
        return bool(self.owner_notes and self.owner_notes.strip())


@dataclass(frozen=True, slots=True)
class ActionMetadata(CanonicalModel):
    code: str
    name: str
    category: InstructionCategory
    color: str


@dataclass(frozen=True, slots=True)
class InstructionLogEntry(CanonicalModel):
    """One parsed log line; ``id`` names the lifecycle it belongs to."""

    id: str
    title: str
    category: InstructionCategory
    status: InstructionStatus
    created_at: str
    owner: str
    payload: InstructionPayload
    action: ActionMetadata
    timestamp: datetime = field(
        init=False, repr=False, compare=False, metadata={"serialize": False}
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", parse_timestamp(self.created_at))


@dataclass(frozen=True, slots=True)
class LogParseError(CanonicalModel):
    line: int
    message: str
    raw: str


@dataclass(frozen=True, slots=True)
class LogFileMetadata(CanonicalModel):
    name: str
    size: int
    instruction_count: int
    sha256: str
    last_modified: float | None = None


@dataclass(frozen=True, slots=True)
class ValidationIssue(CanonicalModel):
    instruction_id: str
    action_code: str
    category: InstructionCategory
    severity: IssueSeverity
    code: IssueCode
    message: str
    detail: str | None = None
    related_instruction_ids: tuple[str, ...] | None = None


@dataclass(frozen=True, slots=True)
class ValidationResult(CanonicalModel):
    """All issues raised against one instruction id.

    ``error_count`` and ``warning_count`` are derived from ``issues``.
    """

    instruction_id: str
    action_code: str
    title: str
    category: InstructionCategory
    issues: tuple[ValidationIssue, ...] = ()
    error_count: int = field(init=False)
    warning_count: int = field(init=False)

    def __post_init__(self) -> None:
        errors = sum(1 for issue in self.issues if issue.severity is IssueSeverity.ERROR)
        object.__setattr__(self, "error_count", errors)
        object.__setattr__(self, "warning_count", len(self.issues) - errors)

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    def with_issue(self, issue: ValidationIssue) -> ValidationResult:
        return ValidationResult(
            instruction_id=self.instruction_id,
            action_code=self.action_code,
            title=self.title,
            category=self.category,
            issues=(*self.issues, issue),
        )


@dataclass(frozen=True, slots=True)
class CategorySummary(CanonicalModel):
    category: InstructionCategory
    instruction_count: int = 0
    affected_count: int = 0
    error_count: int = 0
    warning_count: int = 0


@dataclass(frozen=True, slots=True)
class ReportTotals(CanonicalModel):
    instruction_count: int = 0
    affected_count: int = 0
    error_count: int = 0
    warning_count: int = 0


@dataclass(frozen=True, slots=True)
class ValidationReport(CanonicalModel):
    results: tuple[ValidationResult, ...]
    totals: ReportTotals
    category_summaries: tuple[CategorySummary, ...]
    generated_at: str

    @property
    def has_errors(self) -> bool:
        return self.totals.error_count > 0

    @property
    def has_warnings(self) -> bool:
        return self.totals.warning_count > 0


__all__ = [
    "ActionMetadata",
    "CanonicalModel",
    "CategorySummary",
    "InstructionCategory",
    "InstructionLogEntry",
    "InstructionPayload",
    "InstructionStatus",
    "IssueCode",
    "IssueSeverity",
    "JSONScalar",
    "JSONValue",
    "LogFileMetadata",
    "LogParseError",
    "ReportTotals",
    "ValidationIssue",
    "ValidationReport",
    "ValidationResult",
    "format_timestamp",
    "parse_timestamp",
    "wire_name",
]
