"""
instruction-audit — per-lifecycle sequence checks

Checks run over a group's members in ascending timestamp order:
- start and end status presence,
- adjacent timestamp ordering,
- status regression against the rule's ``status_order``,
- per-entry step count and owner notes.
"""

from __future__ import annotations

from instruction_audit.domain.models import InstructionLogEntry, InstructionStatus, IssueCode
from instruction_audit.validation.findings import Finding, format_status, format_status_list
from instruction_audit.validation.grouping import LifecycleGroup
from instruction_audit.validation.rules import CategoryRule, SequenceRule

# Once a lifecycle is rejected no later status counts as a regression.
_REJECTED_FLOOR = 1 << 62


def validate_sequence(group: LifecycleGroup, rule: CategoryRule) -> tuple[Finding, ...]:
    ordered = group.chronological()
    findings: list[Finding] = []
    findings.extend(_check_boundaries(ordered, rule.sequence))
    findings.extend(_check_time_order(ordered))
    findings.extend(_check_regressions(ordered, rule.sequence))
    for entry in ordered:
        findings.extend(_check_content(entry, rule))
    return tuple(findings)


def _check_boundaries(
    ordered: tuple[InstructionLogEntry, ...], sequence: SequenceRule
) -> list[Finding]:
    findings: list[Finding] = []
    first, last = ordered[0], ordered[-1]
    statuses = {entry.status for entry in ordered}

    starts = format_status_list(sequence.start_statuses)
    if statuses.isdisjoint(sequence.start_statuses):
        findings.append(
            Finding.error(
                first,
                IssueCode.MISSING_SEQUENCE_START,
                f"Sequence is missing a recognised start status ({starts}).",
            )
        )
    elif first.status not in sequence.start_statuses:
        findings.append(
            Finding.warning(
                first,
                IssueCode.MISSING_SEQUENCE_START,
                f"Sequence begins with {format_status(first.status)}, expected {starts}.",
                detail=first.status.value,
            )
        )

    ends = format_status_list(sequence.end_statuses)
    if statuses.isdisjoint(sequence.end_statuses):
        findings.append(
            Finding.warning(
                last,
                IssueCode.MISSING_SEQUENCE_END,
                f"Sequence does not include an end status ({ends}).",
            )
        )
    elif last.status not in sequence.end_statuses:
        findings.append(
            Finding.warning(
                last,
                IssueCode.MISSING_SEQUENCE_END,
                f"Sequence ends with {format_status(last.status)}, expected {ends}.",
                detail=last.status.value,
            )
        )
    return findings


def _check_time_order(ordered: tuple[InstructionLogEntry, ...]) -> list[Finding]:
    findings: list[Finding] = []
    for previous, current in zip(ordered, ordered[1:], strict=False):
        if current.timestamp < previous.timestamp:
            findings.append(
                Finding.error(
                    current,
                    IssueCode.TIME_ORDER_VIOLATION,
                    f"Entry timestamp {current.created_at} occurs before the previous event "
                    f"({previous.created_at}).",
                    detail=previous.created_at,
                )
            )
        elif current.timestamp == previous.timestamp:
            findings.append(
                Finding.warning(
                    current,
                    IssueCode.TIME_ORDER_VIOLATION,
                    f"Entry timestamp {current.created_at} matches a previous event "
                    "and may be out of order.",
                    detail=previous.created_at,
                )
            )
    return findings


def _check_regressions(
    ordered: tuple[InstructionLogEntry, ...], sequence: SequenceRule
) -> list[Finding]:
    findings: list[Finding] = []
    highest = -1
    for index, entry in enumerate(ordered):
        if entry.status is InstructionStatus.REJECTED:
            highest = _REJECTED_FLOOR
            continue
        if highest == _REJECTED_FLOOR:
            continue

        position = sequence.order_index(entry.status)
        if position is None:
            continue

        if position < highest:
            previous_status = ordered[index - 1].status if index > 0 else entry.status
            findings.append(
                Finding.warning(
                    entry,
                    IssueCode.STATUS_REGRESSION,
                    f"Status regressed from {format_status(previous_status)} "
                    f"to {format_status(entry.status)}.",
                    detail=previous_status.value,
                )
            )
            continue

        highest = position
    return findings


def _check_content(entry: InstructionLogEntry, rule: CategoryRule) -> list[Finding]:
    findings: list[Finding] = []
    step_count = entry.payload.step_count
    if rule.min_steps is not None and step_count < rule.min_steps:
        noun = "step" if step_count == 1 else "steps"
        needed = "step is" if rule.min_steps == 1 else "steps are"
        findings.append(
            Finding.warning(
                entry,
                IssueCode.INSUFFICIENT_STEPS,
                f"Instruction payload includes {step_count} {noun} but {rule.min_steps} "
                f"{needed} recommended for {entry.category.value} instructions.",
                detail=str(step_count),
            )
        )

    if entry.payload.has_owner_notes:
        return findings

    if rule.require_owner_notes:
        findings.append(
            Finding.error(
                entry,
                IssueCode.MISSING_REQUIRED_FIELD,
                "Owner notes are required for this instruction category.",
                detail="payload.ownerNotes",
            )
        )
    if entry.status in rule.require_owner_notes_for_statuses:
        findings.append(
            Finding.warning(
                entry,
                IssueCode.MISSING_REQUIRED_FIELD,
                f"Owner notes should be provided when an instruction is "
                f"{format_status(entry.status)}.",
                detail="payload.ownerNotes",
            )
        )
    return findings


__all__ = ["validate_sequence"]
