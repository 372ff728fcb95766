"""Validation entrypoint: group, run sequence and pairing checks, aggregate."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from types import MappingProxyType

from instruction_audit.domain.models import (
    InstructionCategory,
    InstructionLogEntry,
    ValidationReport,
    ValidationResult,
    format_timestamp,
)
from instruction_audit.validation.aggregator import ReportBuilder
from instruction_audit.validation.grouping import group_by_instruction
from instruction_audit.validation.pairing import validate_pairings
from instruction_audit.validation.rules import DEFAULT_RULE_CATALOG, RuleCatalog
from instruction_audit.validation.sequence import validate_sequence

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def validate_instruction_sequences(
    entries: Iterable[InstructionLogEntry],
    *,
    rules: RuleCatalog = DEFAULT_RULE_CATALOG,
    clock: Clock | None = None,
) -> ValidationReport:
    """Validate ``entries`` against ``rules`` and build a fresh report.

    Apart from ``generated_at`` (taken from ``clock``), the report is a pure
    function of the entries and the rule catalog.
    """

    snapshot = tuple(entries)
    builder = ReportBuilder()

    for group in group_by_instruction(snapshot):
        builder.add_group(group)
        builder.add_findings(validate_sequence(group, rules[group.category]))

    for category in InstructionCategory:
        category_entries = tuple(entry for entry in snapshot if entry.category is category)
        if not category_entries:
            continue
        builder.track_category(category)
        builder.add_findings(validate_pairings(category_entries, rules[category].pairing_rules))

    report = builder.build(generated_at=format_timestamp((clock or _utc_now)()))
    logger.info(
        "validated %d instructions: %d errors, %d warnings",
        report.totals.instruction_count,
        report.totals.error_count,
        report.totals.warning_count,
        extra={
            "instruction_count": report.totals.instruction_count,
            "affected_count": report.totals.affected_count,
            "error_count": report.totals.error_count,
            "warning_count": report.totals.warning_count,
        },
    )
    return report


def result_lookup(report: ValidationReport) -> Mapping[str, ValidationResult]:
    """Index ``report.results`` by instruction id."""

    return MappingProxyType({result.instruction_id: result for result in report.results})


__all__ = ["Clock", "result_lookup", "validate_instruction_sequences"]
