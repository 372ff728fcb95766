"""
instruction-audit — log statistics

Purpose
- Summarize a parsed log (category/status/action mix and daily volume) next to
  a validation report's headline counts.

Functional requirements
- Category and status distributions follow the fixed display order and drop
  zero counts.
- The daily timeline is keyed by UTC calendar date, ascending.
- Top actions are the five most frequent codes; ties keep first-seen order.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date

from instruction_audit.constants import (
    CATEGORY_COLORS,
    CATEGORY_LABELS,
    STATUS_LABELS,
    STATUS_ORDER,
    TOP_ACTIONS_LIMIT,
)
from instruction_audit.domain.models import (
    CanonicalModel,
    InstructionCategory,
    InstructionLogEntry,
    InstructionStatus,
    IssueSeverity,
    ValidationReport,
    ValidationResult,
)

_MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


@dataclass(frozen=True, slots=True)
class CategoryMetric(CanonicalModel):
    category: InstructionCategory
    count: int


@dataclass(frozen=True, slots=True)
class CategoryShare(CanonicalModel):
    category: InstructionCategory
    label: str
    count: int
    percentage: float
    color: str


@dataclass(frozen=True, slots=True)
class StatusShare(CanonicalModel):
    status: InstructionStatus
    label: str
    count: int
    percentage: float


@dataclass(frozen=True, slots=True)
class TimelinePoint(CanonicalModel):
    date: str
    label: str
    full_label: str
    count: int


@dataclass(frozen=True, slots=True)
class ActionShare(CanonicalModel):
    code: str
    name: str
    category: InstructionCategory
    color: str
    count: int
    percentage: float


@dataclass(frozen=True, slots=True)
class ValidationCounts(CanonicalModel):
    affected: int = 0
    errors: int = 0
    warnings: int = 0


@dataclass(frozen=True, slots=True)
class InstructionStatistics(CanonicalModel):
    total_instructions: int
    unique_actions: int
    active_categories: int
    average_per_day: float
    validation: ValidationCounts
    type_distribution: tuple[CategoryShare, ...]
    status_distribution: tuple[StatusShare, ...]
    timeline: tuple[TimelinePoint, ...]
    top_actions: tuple[ActionShare, ...]
    peak_day: TimelinePoint | None = None

    @property
    def has_data(self) -> bool:
        return self.total_instructions > 0


def category_metrics(entries: Iterable[InstructionLogEntry]) -> tuple[CategoryMetric, ...]:
    """Per-category entry counts in display order, zeros included."""

    counts = Counter(entry.category for entry in entries)
    return tuple(
        CategoryMetric(category=category, count=counts.get(category, 0))
        for category in InstructionCategory
    )


def summarize_instructions(
    entries: Sequence[InstructionLogEntry],
    report: ValidationReport | None = None,
) -> InstructionStatistics:
    total = len(entries)
    category_counts = Counter(entry.category for entry in entries)
    status_counts = Counter(entry.status for entry in entries)
    action_counts: Counter[str] = Counter()
    first_seen: dict[str, InstructionLogEntry] = {}
    daily_counts: Counter[date] = Counter()

    for entry in entries:
        action_counts[entry.action.code] += 1
        first_seen.setdefault(entry.action.code, entry)
        daily_counts[entry.timestamp.date()] += 1

    timeline = tuple(
        TimelinePoint(
            date=day.isoformat(),
            label=short_date_label(day),
            full_label=full_date_label(day),
            count=daily_counts[day],
        )
        for day in sorted(daily_counts)
    )
    peak_day: TimelinePoint | None = None
    for point in timeline:
        if peak_day is None or point.count > peak_day.count:
            peak_day = point

    type_distribution = tuple(
        CategoryShare(
            category=category,
            label=CATEGORY_LABELS[category.value],
            count=category_counts[category],
            percentage=_percentage(category_counts[category], total),
            color=CATEGORY_COLORS[category.value],
        )
        for category in InstructionCategory
        if category_counts[category] > 0
    )
    status_distribution = tuple(
        StatusShare(
            status=InstructionStatus(status),
            label=STATUS_LABELS[status],
            count=status_counts[InstructionStatus(status)],
            percentage=_percentage(status_counts[InstructionStatus(status)], total),
        )
        for status in STATUS_ORDER
        if status_counts[InstructionStatus(status)] > 0
    )

    ranked = sorted(first_seen, key=lambda code: -action_counts[code])
    top_actions = tuple(
        ActionShare(
            code=code,
            name=first_seen[code].action.name,
            category=first_seen[code].action.category,
            color=CATEGORY_COLORS[first_seen[code].action.category.value],
            count=action_counts[code],
            percentage=_percentage(action_counts[code], total),
        )
        for code in ranked[:TOP_ACTIONS_LIMIT]
    )

    validation = ValidationCounts()
    if report is not None:
        validation = ValidationCounts(
            affected=report.totals.affected_count,
            errors=report.totals.error_count,
            warnings=report.totals.warning_count,
        )

    return InstructionStatistics(
        total_instructions=total,
        unique_actions=len(action_counts),
        active_categories=len(category_counts),
        average_per_day=total / len(timeline) if timeline else 0.0,
        validation=validation,
        type_distribution=type_distribution,
        status_distribution=status_distribution,
        timeline=timeline,
        top_actions=top_actions,
        peak_day=peak_day,
    )


def validation_severity(result: ValidationResult | None) -> IssueSeverity | None:
    """Worst severity present in ``result``; ``None`` for clean or missing results."""

    if result is None:
        return None
    if result.error_count > 0:
        return IssueSeverity.ERROR
    if result.warning_count > 0:
        return IssueSeverity.WARNING
    return None


def short_date_label(day: date) -> str:
    return f"{_MONTHS[day.month - 1][:3]} {day.day}"


def full_date_label(day: date) -> str:
    return f"{_MONTHS[day.month - 1]} {day.day}, {day.year}"


def _percentage(count: int, total: int) -> float:
    return count / total * 100 if total else 0.0


__all__ = [
    "ActionShare",
    "CategoryMetric",
    "CategoryShare",
    "InstructionStatistics",
    "StatusShare",
    "TimelinePoint",
    "ValidationCounts",
    "category_metrics",
    "full_date_label",
    "short_date_label",
    "summarize_instructions",
    "validation_severity",
]
