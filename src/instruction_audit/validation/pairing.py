"""
instruction-audit — start/follow-up pairing checks

For each pairing rule, every start-type entry must be matched by a distinct
end-type entry from the same owner at or after it. Matching is greedy in
input order. End-type entries are checked independently for any same-owner
start at or before them, so one gap can surface from both sides.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from instruction_audit.domain.models import InstructionLogEntry, IssueCode
from instruction_audit.validation.findings import Finding
from instruction_audit.validation.rules import PairingRule


def validate_pairings(
    entries: Sequence[InstructionLogEntry],
    rules: Iterable[PairingRule],
) -> tuple[Finding, ...]:
    findings: list[Finding] = []
    for rule in rules:
        findings.extend(_check_rule(entries, rule))
    return tuple(findings)


def _check_rule(entries: Sequence[InstructionLogEntry], rule: PairingRule) -> list[Finding]:
    starts = [entry for entry in entries if entry.action.code in rule.start_actions]
    ends = [entry for entry in entries if entry.action.code in rule.end_actions]
    expected = ", ".join(sorted(rule.end_actions))
    findings: list[Finding] = []

    remaining = list(ends)
    for start in starts:
        match = next(
            (
                index
                for index, end in enumerate(remaining)
                if end.owner == start.owner and end.timestamp >= start.timestamp
            ),
            None,
        )
        if match is not None:
            del remaining[match]
            continue

        early_ends = tuple(
            end.id for end in ends if end.owner == start.owner and end.timestamp < start.timestamp
        )
        findings.append(
            Finding.error(
                start,
                IssueCode.MISSING_PAIR_END,
                f"{rule.description} A follow-up entry was not found for {start.action.code}.",
                detail=f"expected one of: {expected}",
                related_instruction_ids=early_ends or None,
            )
        )

    for end in ends:
        if any(
            start.owner == end.owner and start.timestamp <= end.timestamp for start in starts
        ):
            continue
        late_starts = tuple(start.id for start in starts if start.owner == end.owner)
        findings.append(
            Finding.warning(
                end,
                IssueCode.MISSING_PAIR_START,
                f"{rule.description} A preceding start entry was not found for "
                f"{end.action.code}.",
                detail=f"expected one of: {', '.join(sorted(rule.start_actions))}",
                related_instruction_ids=late_starts or None,
            )
        )
    return findings


__all__ = ["validate_pairings"]
