"""
instruction-audit — report export

Renders a ``ValidationReport`` as pretty JSON (for download/archival) or as a
plain-text summary listing only affected instructions.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from instruction_audit.constants import CATEGORY_LABELS, REPORT_FILENAME_PREFIX
from instruction_audit.domain.models import IssueSeverity, ValidationReport, ValidationResult
from instruction_audit.utils.fs import atomic_write

logger = logging.getLogger(__name__)

_FRACTIONAL_SECONDS = re.compile(r"\..*$")


def report_filename(report: ValidationReport) -> str:
    """``instruction-validation-2024-05-01T10-00-00.json`` style name.

    Colons become hyphens and everything from the fractional-seconds dot on is
    dropped.
    """

    stamp = _FRACTIONAL_SECONDS.sub("", report.generated_at.replace(":", "-"))
    return f"{REPORT_FILENAME_PREFIX}-{stamp}.json"


def format_report_json(report: ValidationReport, *, indent: int = 2) -> str:
    return report.to_json(indent=indent) + "\n"


def write_report(report: ValidationReport, directory: str | Path, *, indent: int = 2) -> Path:
    """Atomically write ``report`` into ``directory`` and return the file path."""

    target = Path(directory) / report_filename(report)
    written = atomic_write(target, format_report_json(report, indent=indent))
    logger.info("wrote validation report", extra={"report_path": str(written)})
    return written


def format_report_text(report: ValidationReport, *, max_results: int | None = None) -> str:
    totals = report.totals
    lines = [
        f"Validation report generated {report.generated_at}",
        (
            f"Instructions: {totals.instruction_count}  affected={totals.affected_count} "
            f"errors={totals.error_count} warnings={totals.warning_count}"
        ),
        "",
        "CATEGORIES",
    ]
    if not report.category_summaries:
        lines.append("(none)")
    for summary in report.category_summaries:
        label = CATEGORY_LABELS.get(summary.category.value, summary.category.value)
        lines.append(
            f"  {label:<24} instructions={summary.instruction_count} "
            f"affected={summary.affected_count} errors={summary.error_count} "
            f"warnings={summary.warning_count}"
        )

    affected = [result for result in report.results if result.has_issues]
    shown = affected if max_results is None else affected[:max_results]
    lines.append("")
    lines.append("RESULTS")
    if not shown:
        lines.append("(none)")
    for result in shown:
        lines.extend(_format_result(result))
    hidden = len(affected) - len(shown)
    if hidden > 0:
        lines.append(f"... {hidden} more affected instruction{'s' if hidden != 1 else ''}")

    return "\n".join(lines).rstrip() + "\n"


def _format_result(result: ValidationResult) -> list[str]:
    lines = [
        f"{result.instruction_id} [{result.category.value}] {result.title} ({result.action_code})"
        f" errors={result.error_count} warnings={result.warning_count}"
    ]
    for issue in result.issues:
        marker = "E" if issue.severity is IssueSeverity.ERROR else "W"
        lines.append(f"  {marker} {issue.code.value}: {issue.message}")
    return lines


__all__ = [
    "format_report_json",
    "format_report_text",
    "report_filename",
    "write_report",
]
