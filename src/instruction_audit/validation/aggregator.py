"""
instruction-audit — report aggregation

``ReportBuilder`` folds validator findings into per-instruction results and
per-category summaries, then freezes them into a ``ValidationReport``.

Attribution rules
- A result is created by the first finding for its instruction id and keeps
  that entry's action code, title, and category.
- Every issue in a result carries the result's id, action code, and category.
- Category summaries exist for every category that had at least one entry.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from instruction_audit.domain.models import (
    CategorySummary,
    InstructionCategory,
    ReportTotals,
    ValidationIssue,
    ValidationReport,
    ValidationResult,
)
from instruction_audit.validation.findings import Finding
from instruction_audit.validation.grouping import LifecycleGroup


class ReportBuilder:
    __slots__ = ("_group_count", "_instruction_counts", "_results")

    def __init__(self) -> None:
        self._results: dict[str, ValidationResult] = {}
        self._instruction_counts: dict[InstructionCategory, int] = {}
        self._group_count = 0

    @property
    def group_count(self) -> int:
        return self._group_count

    def add_group(self, group: LifecycleGroup) -> ReportBuilder:
        self._group_count += 1
        category = group.category
        self._instruction_counts[category] = self._instruction_counts.get(category, 0) + 1
        return self

    def track_category(self, category: InstructionCategory) -> ReportBuilder:
        """Ensure ``category`` appears in the summaries even without groups."""

        self._instruction_counts.setdefault(category, 0)
        return self

    def add_findings(self, findings: Iterable[Finding]) -> ReportBuilder:
        for finding in findings:
            self.add_finding(finding)
        return self

    def add_finding(self, finding: Finding) -> ReportBuilder:
        entry = finding.entry
        result = self._results.get(entry.id)
        if result is None:
            result = ValidationResult(
                instruction_id=entry.id,
                action_code=entry.action.code,
                title=entry.title,
                category=entry.category,
            )
        issue = ValidationIssue(
            instruction_id=result.instruction_id,
            action_code=result.action_code,
            category=result.category,
            severity=finding.severity,
            code=finding.code,
            message=finding.message,
            detail=finding.detail,
            related_instruction_ids=finding.related_instruction_ids,
        )
        self._results[entry.id] = result.with_issue(issue)
        return self

    def build(self, *, generated_at: str) -> ValidationReport:
        results = tuple(
            sorted(
                self._results.values(),
                key=lambda item: (-item.error_count, -item.warning_count, item.title),
            )
        )

        summaries = {
            category: CategorySummary(category=category, instruction_count=count)
            for category, count in self._instruction_counts.items()
        }
        affected = errors = warnings = 0
        for result in results:
            if not result.has_issues:
                continue
            affected += 1
            errors += result.error_count
            warnings += result.warning_count
            summary = summaries.get(result.category) or CategorySummary(category=result.category)
            summaries[result.category] = replace(
                summary,
                affected_count=summary.affected_count + 1,
                error_count=summary.error_count + result.error_count,
                warning_count=summary.warning_count + result.warning_count,
            )

        ordered_summaries = tuple(
            sorted(
                summaries.values(),
                key=lambda item: (-item.error_count, -item.warning_count, item.category.value),
            )
        )
        totals = ReportTotals(
            instruction_count=self._group_count,
            affected_count=affected,
            error_count=errors,
            warning_count=warnings,
        )
        return ValidationReport(
            results=results,
            totals=totals,
            category_summaries=ordered_summaries,
            generated_at=generated_at,
        )


__all__ = ["ReportBuilder"]
