"""Immutable validator output consumed by the report aggregator."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from instruction_audit.domain.models import (
    InstructionLogEntry,
    InstructionStatus,
    IssueCode,
    IssueSeverity,
)

_STATUS_SEPARATORS = re.compile(r"[_\s]+")


@dataclass(frozen=True, slots=True)
class Finding:
    """One rule violation attributed to the entry that triggered it."""

    entry: InstructionLogEntry
    severity: IssueSeverity
    code: IssueCode
    message: str
    detail: str | None = None
    related_instruction_ids: tuple[str, ...] | None = None

    @classmethod
    def error(
        cls,
        entry: InstructionLogEntry,
        code: IssueCode,
        message: str,
        *,
        detail: str | None = None,
        related_instruction_ids: tuple[str, ...] | None = None,
    ) -> Finding:
        return cls(entry, IssueSeverity.ERROR, code, message, detail, related_instruction_ids)

    @classmethod
    def warning(
        cls,
        entry: InstructionLogEntry,
        code: IssueCode,
        message: str,
        *,
        detail: str | None = None,
        related_instruction_ids: tuple[str, ...] | None = None,
    ) -> Finding:
        return cls(entry, IssueSeverity.WARNING, code, message, detail, related_instruction_ids)


def format_status(status: InstructionStatus | str) -> str:
    """Title-case a status value: ``in_review`` becomes ``In Review``."""

    tokens = (token for token in _STATUS_SEPARATORS.split(str(status)) if token)
    return " ".join(token[0].upper() + token[1:] for token in tokens)


def format_status_list(statuses: Iterable[InstructionStatus]) -> str:
    return " or ".join(format_status(status) for status in statuses)


__all__ = ["Finding", "format_status", "format_status_list"]
