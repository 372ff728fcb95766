"""Domain types for instruction log entries and validation reports."""

from instruction_audit.domain.models import (
    ActionMetadata,
    CategorySummary,
    InstructionCategory,
    InstructionLogEntry,
    InstructionPayload,
    InstructionStatus,
    IssueCode,
    IssueSeverity,
    LogFileMetadata,
    LogParseError,
    ReportTotals,
    ValidationIssue,
    ValidationReport,
    ValidationResult,
    format_timestamp,
    parse_timestamp,
)

__all__ = [
    "ActionMetadata",
    "CategorySummary",
    "InstructionCategory",
    "InstructionLogEntry",
    "InstructionPayload",
    "InstructionStatus",
    "IssueCode",
    "IssueSeverity",
    "LogFileMetadata",
    "LogParseError",
    "ReportTotals",
    "ValidationIssue",
    "ValidationReport",
    "ValidationResult",
    "format_timestamp",
    "parse_timestamp",
]
