"""Report export and log statistics."""

from instruction_audit.reporting.analytics import (
    ActionShare,
    CategoryMetric,
    CategoryShare,
    InstructionStatistics,
    StatusShare,
    TimelinePoint,
    ValidationCounts,
    category_metrics,
    summarize_instructions,
    validation_severity,
)
from instruction_audit.reporting.export import (
    format_report_json,
    format_report_text,
    report_filename,
    write_report,
)

__all__ = [
    "ActionShare",
    "CategoryMetric",
    "CategoryShare",
    "InstructionStatistics",
    "StatusShare",
    "TimelinePoint",
    "ValidationCounts",
    "category_metrics",
    "format_report_json",
    "format_report_text",
    "report_filename",
    "summarize_instructions",
    "validation_severity",
    "write_report",
]
