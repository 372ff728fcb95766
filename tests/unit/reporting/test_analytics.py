"""
instruction-audit — unit tests for log statistics
"""

from __future__ import annotations

from datetime import date

import pytest

from instruction_audit.domain.models import (
    InstructionCategory,
    InstructionLogEntry,
    InstructionStatus,
    IssueSeverity,
)
from instruction_audit.reporting.analytics import (
    category_metrics,
    full_date_label,
    short_date_label,
    summarize_instructions,
    validation_severity,
)
from instruction_audit.validation.engine import result_lookup, validate_instruction_sequences
from tests.unit.validation._builders import make_entry

pytestmark = pytest.mark.unit


def _entries() -> list[InstructionLogEntry]:
    return [
        make_entry("A", "pending", "2024-05-01T08:00:00Z", action="CAPA_UPDATE"),
        make_entry("A", "approved", "2024-05-01T18:00:00Z", action="CAPA_UPDATE"),
        make_entry(
            "S",
            "pending",
            "2024-05-03T10:00:00Z",
            category="safety",
            action="SAFETY_DRILL",
            notes="n",
        ),
        make_entry("B", "in_review", "2024-05-03T11:00:00Z", action="QUALITY_AUDIT"),
    ]


def test_summary_counts_and_distributions() -> None:
    stats = summarize_instructions(_entries())

    assert stats.has_data
    assert stats.total_instructions == 4
    assert stats.unique_actions == 3
    assert stats.active_categories == 2
    assert stats.average_per_day == 2.0
    assert [(item.category, item.count) for item in stats.type_distribution] == [
        (InstructionCategory.QUALITY, 3),
        (InstructionCategory.SAFETY, 1),
    ]
    assert stats.type_distribution[0].label == "Quality Assurance"
    assert stats.type_distribution[0].percentage == pytest.approx(75.0)
    assert [item.status for item in stats.status_distribution] == [
        InstructionStatus.PENDING,
        InstructionStatus.IN_REVIEW,
        InstructionStatus.APPROVED,
    ]
    assert stats.status_distribution[1].label == "In Review"


def test_timeline_and_peak_day() -> None:
    stats = summarize_instructions(_entries())

    assert [(point.date, point.count) for point in stats.timeline] == [
        ("2024-05-01", 2),
        ("2024-05-03", 2),
    ]
    assert stats.timeline[0].label == "May 1"
    assert stats.peak_day is not None
    assert stats.peak_day.date == "2024-05-01"


def test_top_actions_rank_by_count_then_first_seen() -> None:
    stats = summarize_instructions(_entries())

    assert [(item.code, item.count) for item in stats.top_actions] == [
        ("CAPA_UPDATE", 2),
        ("SAFETY_DRILL", 1),
        ("QUALITY_AUDIT", 1),
    ]
    assert stats.top_actions[0].name == "CAPA Update"


def test_validation_counts_come_from_report() -> None:
    entries = _entries()
    report = validate_instruction_sequences(entries)

    stats = summarize_instructions(entries, report)

    assert stats.validation.affected == report.totals.affected_count
    assert stats.validation.errors == report.totals.error_count
    assert stats.validation.warnings == report.totals.warning_count
    lookup = result_lookup(report)
    assert validation_severity(lookup.get("S")) is IssueSeverity.ERROR
    assert validation_severity(lookup.get("A")) is None
    assert validation_severity(lookup.get("B")) is IssueSeverity.WARNING


def test_empty_input() -> None:
    stats = summarize_instructions([])

    assert not stats.has_data
    assert stats.average_per_day == 0.0
    assert stats.peak_day is None
    assert stats.to_dict()["typeDistribution"] == []


def test_category_metrics_include_zero_counts() -> None:
    metrics = category_metrics(_entries())

    assert [(item.category.value, item.count) for item in metrics] == [
        ("quality", 3),
        ("compliance", 0),
        ("safety", 1),
        ("efficiency", 0),
    ]


def test_date_labels() -> None:
    day = date(2024, 12, 9)

    assert short_date_label(day) == "Dec 9"
    assert full_date_label(day) == "December 9, 2024"
