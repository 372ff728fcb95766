"""End-to-end audit: parse a log, validate its entries, and bundle the outcome."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from instruction_audit.domain.models import (
    InstructionLogEntry,
    LogFileMetadata,
    LogParseError,
    ValidationReport,
)
from instruction_audit.ingestion.parser import (
    ParseResult,
    parse_instruction_file,
    parse_instruction_log,
)
from instruction_audit.observability.logging import correlation_scope
from instruction_audit.validation.engine import Clock, validate_instruction_sequences
from instruction_audit.validation.rules import DEFAULT_RULE_CATALOG, RuleCatalog

logger = logging.getLogger(__name__)


class NoUsableRecordsError(ValueError):
    """Raised when a log file yields no valid instruction records."""

    def __init__(self, source: str, errors: tuple[LogParseError, ...]) -> None:
        self.source = source
        self.errors = errors
        detail = f"; {len(errors)} line(s) failed to parse" if errors else ""
        super().__init__(f"no valid instruction records found in {source}{detail}")


@dataclass(frozen=True, slots=True)
class AuditOutcome:
    parsed: ParseResult
    report: ValidationReport

    @property
    def entries(self) -> tuple[InstructionLogEntry, ...]:
        return self.parsed.entries

    @property
    def errors(self) -> tuple[LogParseError, ...]:
        return self.parsed.errors

    @property
    def metadata(self) -> LogFileMetadata | None:
        return self.parsed.metadata


def audit_log_text(
    raw: str,
    *,
    rules: RuleCatalog = DEFAULT_RULE_CATALOG,
    clock: Clock | None = None,
) -> AuditOutcome:
    """Parse and validate in-memory log text. Never raises for text input."""

    parsed = parse_instruction_log(raw)
    report = validate_instruction_sequences(parsed.entries, rules=rules, clock=clock)
    return AuditOutcome(parsed=parsed, report=report)


def audit_log_file(
    path: str | Path,
    *,
    encoding: str = "utf-8",
    rules: RuleCatalog = DEFAULT_RULE_CATALOG,
    clock: Clock | None = None,
) -> AuditOutcome:
    """Parse and validate a log file.

    Raises ``NoUsableRecordsError`` when no line parses into an entry, and lets
    ``OSError`` from reading the file propagate.
    """

    source = Path(path)
    with correlation_scope(source=source.name):
        parsed = parse_instruction_file(source, encoding=encoding)
        if not parsed.has_entries:
            logger.warning(
                "no usable records in %s",
                source.name,
                extra={"parse_error_count": len(parsed.errors)},
            )
            raise NoUsableRecordsError(str(source), parsed.errors)
        if parsed.errors:
            logger.warning(
                "%d line(s) in %s failed to parse",
                len(parsed.errors),
                source.name,
                extra={"parse_error_count": len(parsed.errors)},
            )
        report = validate_instruction_sequences(parsed.entries, rules=rules, clock=clock)
    return AuditOutcome(parsed=parsed, report=report)


__all__ = ["AuditOutcome", "NoUsableRecordsError", "audit_log_file", "audit_log_text"]
