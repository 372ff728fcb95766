"""Log ingestion: action resolution and JSON Lines record parsing."""

from instruction_audit.ingestion.actions import (
    ACTION_DEFINITIONS,
    CATEGORY_INFERENCE_RULES,
    ActionDefinition,
    CategoryInferenceRule,
    format_action_name,
    infer_category,
    normalize_action_code,
    resolve_action,
)
from instruction_audit.ingestion.parser import (
    ParseResult,
    RecordIssue,
    RecordValidationError,
    is_instruction_record,
    parse_instruction_file,
    parse_instruction_log,
    parse_instruction_record,
)

__all__ = [
    "ACTION_DEFINITIONS",
    "CATEGORY_INFERENCE_RULES",
    "ActionDefinition",
    "CategoryInferenceRule",
    "ParseResult",
    "RecordIssue",
    "RecordValidationError",
    "format_action_name",
    "infer_category",
    "is_instruction_record",
    "normalize_action_code",
    "parse_instruction_file",
    "parse_instruction_log",
    "parse_instruction_record",
    "resolve_action",
]
