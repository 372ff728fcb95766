"""
instruction-audit — lifecycle grouping

Entries sharing an ``id`` describe one instruction's lifecycle. Groups keep
first-seen order and their members keep input order. A group's category is
its first member's category; groups whose members disagree are logged but
not reconciled.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from instruction_audit.domain.models import InstructionCategory, InstructionLogEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LifecycleGroup:
    instruction_id: str
    entries: tuple[InstructionLogEntry, ...]

    def __post_init__(self) -> None:
        if not self.entries:
            raise ValueError("lifecycle group requires at least one entry")

    @property
    def category(self) -> InstructionCategory:
        return self.entries[0].category

    @property
    def categories(self) -> tuple[InstructionCategory, ...]:
        """Distinct member categories in first-seen order."""

        return tuple(dict.fromkeys(entry.category for entry in self.entries))

    @property
    def is_mixed_category(self) -> bool:
        return len(self.categories) > 1

    def chronological(self) -> tuple[InstructionLogEntry, ...]:
        """Members sorted ascending by timestamp; ties keep input order."""

        return tuple(sorted(self.entries, key=lambda entry: entry.timestamp))


def group_by_instruction(entries: Iterable[InstructionLogEntry]) -> tuple[LifecycleGroup, ...]:
    buckets: dict[str, list[InstructionLogEntry]] = {}
    for entry in entries:
        buckets.setdefault(entry.id, []).append(entry)

    groups = tuple(
        LifecycleGroup(instruction_id=instruction_id, entries=tuple(members))
        for instruction_id, members in buckets.items()
    )
    for group in groups:
        if group.is_mixed_category:
            logger.warning(
                "instruction %s spans multiple categories; validating as %s",
                group.instruction_id,
                group.category.value,
                extra={
                    "instruction_id": group.instruction_id,
                    "categories": [category.value for category in group.categories],
                },
            )
    return groups


__all__ = ["LifecycleGroup", "group_by_instruction"]
