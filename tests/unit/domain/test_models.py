"""
instruction-audit — unit tests for domain models and canonical serialization
"""

from __future__ import annotations

import json

import pytest

from instruction_audit.domain.models import (
    InstructionCategory,
    IssueCode,
    IssueSeverity,
    ValidationIssue,
    ValidationResult,
    format_timestamp,
    parse_timestamp,
    wire_name,
)

pytestmark = pytest.mark.unit


def _issue(
    severity: IssueSeverity, code: IssueCode = IssueCode.INSUFFICIENT_STEPS
) -> ValidationIssue:
    return ValidationIssue(
        instruction_id="X",
        action_code="QA_INSPECTION",
        category=InstructionCategory.QUALITY,
        severity=severity,
        code=code,
        message="m",
    )


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("instruction_id", "instructionId"),
        ("related_instruction_ids", "relatedInstructionIds"),
        ("owner", "owner"),
    ],
)
def test_wire_name(name: str, expected: str) -> None:
    assert wire_name(name) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024-05-01T09:00:00Z", "2024-05-01T09:00:00.000Z"),
        ("2024-05-01T11:00:00+02:00", "2024-05-01T09:00:00.000Z"),
        ("2024-05-01T09:00:00", "2024-05-01T09:00:00.000Z"),
        ("2024-05-01", "2024-05-01T00:00:00.000Z"),
        ("2024-05-01T09:00:00.123456z", "2024-05-01T09:00:00.123Z"),
    ],
)
def test_parse_timestamp_normalizes_to_utc(raw: str, expected: str) -> None:
    assert format_timestamp(parse_timestamp(raw)) == expected


@pytest.mark.parametrize("raw", ["", "   ", "yesterday", "2024-13-01", 1714554000, None])
def test_parse_timestamp_rejects_invalid_values(raw: object) -> None:
    with pytest.raises(ValueError):
        parse_timestamp(raw)


def test_result_counts_are_derived_from_issues() -> None:
    result = ValidationResult(
        instruction_id="X",
        action_code="QA_INSPECTION",
        title="t",
        category=InstructionCategory.QUALITY,
    )

    updated = result.with_issue(_issue(IssueSeverity.ERROR)).with_issue(
        _issue(IssueSeverity.WARNING)
    )

    assert (result.error_count, result.warning_count, result.has_issues) == (0, 0, False)
    assert (updated.error_count, updated.warning_count) == (1, 1)


def test_to_dict_uses_wire_names_and_omits_none() -> None:
    payload = _issue(IssueSeverity.WARNING).to_dict()

    assert payload == {
        "instructionId": "X",
        "actionCode": "QA_INSPECTION",
        "category": "quality",
        "severity": "warning",
        "code": "insufficient_steps",
        "message": "m",
    }


def test_to_json_is_canonical_unless_indented() -> None:
    issue = _issue(IssueSeverity.ERROR)

    compact = issue.to_json()

    assert " " not in compact
    assert list(json.loads(compact)) == sorted(json.loads(compact))
    assert issue.to_json(indent=2).startswith("{\n  ")
