"""
instruction-audit — offline validation of instruction lifecycle logs.

Reads JSON Lines instruction logs, resolves each record's action metadata,
groups records by instruction id, and checks status progression, step and
owner-note requirements, and follow-up action pairing per category. Results
are aggregated into a deterministic ``ValidationReport``.

Importing the package has no side effects: no config is loaded and logging is
left untouched until the CLI (or the caller) sets it up.
"""

from instruction_audit.domain.models import (
    InstructionCategory,
    InstructionLogEntry,
    InstructionStatus,
    ValidationReport,
    ValidationResult,
)
from instruction_audit.ingestion import ParseResult, parse_instruction_log, resolve_action
from instruction_audit.pipeline import AuditOutcome, audit_log_file, audit_log_text
from instruction_audit.validation import (
    DEFAULT_RULE_CATALOG,
    result_lookup,
    validate_instruction_sequences,
)

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_RULE_CATALOG",
    "AuditOutcome",
    "InstructionCategory",
    "InstructionLogEntry",
    "InstructionStatus",
    "ParseResult",
    "ValidationReport",
    "ValidationResult",
    "__version__",
    "audit_log_file",
    "audit_log_text",
    "parse_instruction_log",
    "resolve_action",
    "result_lookup",
    "validate_instruction_sequences",
]
