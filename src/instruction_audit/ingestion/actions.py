"""
instruction-audit — action code resolver

Purpose
- Normalize raw action codes and derive display name, category, and color.

Resolution order
- Known codes come from ``ACTION_DEFINITIONS``.
- Unknown codes take their category from ``CATEGORY_INFERENCE_RULES`` (ordered,
  first match wins, ``quality`` when nothing matches) and a name derived from
  the code's tokens.
- Color comes from the definition when it carries one, otherwise from the
  category color table.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final

from instruction_audit.constants import CATEGORY_COLORS, DEFAULT_ACTION_NAME
from instruction_audit.domain.models import ActionMetadata, InstructionCategory

_SEPARATOR_RUN: Final[re.Pattern[str]] = re.compile(r"[\s-]+")
_DIGITS: Final[re.Pattern[str]] = re.compile(r"[0-9]+")
_ACRONYM: Final[re.Pattern[str]] = re.compile(r"[A-Z]{1,3}")

DEFAULT_INFERRED_CATEGORY: Final[InstructionCategory] = InstructionCategory.QUALITY


@dataclass(frozen=True, slots=True)
class ActionDefinition:
    name: str
    category: InstructionCategory
    color: str | None = None


@dataclass(frozen=True, slots=True)
class CategoryInferenceRule:
    pattern: re.Pattern[str]
    category: InstructionCategory

    def matches(self, code: str) -> bool:
        return self.pattern.search(code) is not None


def _definitions(
    raw: Mapping[str, tuple[str, InstructionCategory]],
) -> Mapping[str, ActionDefinition]:
    return MappingProxyType(
        {
            code: ActionDefinition(name=name, category=category)
            for code, (name, category) in raw.items()
        }
    )


_Q = InstructionCategory.QUALITY
_C = InstructionCategory.COMPLIANCE
_S = InstructionCategory.SAFETY
_E = InstructionCategory.EFFICIENCY

ACTION_DEFINITIONS: Final[Mapping[str, ActionDefinition]] = _definitions(
    {
        "QA_INSPECTION": ("Quality Inspection", _Q),
        "QA_DEVIATION_REVIEW": ("Deviation Review", _Q),
        "QUALITY_AUDIT": ("Quality Audit", _Q),
        "QUALITY_CHECK": ("Quality Check", _Q),
        "COMPLIANCE_AUDIT": ("Compliance Audit", _C),
        "COMPLIANCE_CHECK": ("Compliance Check", _C),
        "COMPLIANCE_REVIEW": ("Compliance Review", _C),
        "POLICY_UPDATE": ("Policy Update", _C),
        "SAFETY_DRILL": ("Safety Drill", _S),
        "SAFETY_ALERT": ("Safety Alert", _S),
        "SAFETY_INSPECTION": ("Safety Inspection", _S),
        "INCIDENT_REVIEW": ("Incident Review", _S),
        "WORKFLOW_OPTIMIZATION": ("Workflow Optimization", _E),
        "WORKFLOW_UPDATE": ("Workflow Update", _E),
        "PROCESS_UPDATE": ("Process Update", _E),
        "PROCESS_IMPROVEMENT": ("Process Improvement", _E),
        "EFFICIENCY_REVIEW": ("Efficiency Review", _E),
        "MAINTENANCE_SCHEDULE": ("Maintenance Schedule", _E),
        "MAINTENANCE_CHECK": ("Maintenance Check", _E),
        "PERFORMANCE_REVIEW": ("Performance Review", _E),
        "SOP_UPDATE": ("SOP Update", _C),
        "SOP_REVIEW": ("SOP Review", _C),
        "AUDIT_RESPONSE": ("Audit Response", _C),
        "RISK_ASSESSMENT": ("Risk Assessment", _S),
        "INCIDENT_REPORT": ("Incident Report", _S),
        "QUALITY_IMPROVEMENT": ("Quality Improvement", _Q),
        "TRAINING_SESSION": ("Training Session", _Q),
        "TRAINING_COMPLETION": ("Training Completion", _Q),
        "CAPA_UPDATE": ("CAPA Update", _Q),
    }
)

# Prefix rules precede substring rules for each category; order is significant.
CATEGORY_INFERENCE_RULES: Final[tuple[CategoryInferenceRule, ...]] = (
    CategoryInferenceRule(re.compile(r"^(QA|QC|QUALITY|LAB)"), _Q),
    CategoryInferenceRule(re.compile(r"(QUALITY|QA|QC|CALIBRATION)"), _Q),
    CategoryInferenceRule(re.compile(r"^(COMP|REG|POLICY|AUDIT|GOV)"), _C),
    CategoryInferenceRule(re.compile(r"(COMPLIANCE|AUDIT|REGULATION|POLICY)"), _C),
    CategoryInferenceRule(re.compile(r"^(SAFE|HSE|EHS|SECURITY|RISK)"), _S),
    CategoryInferenceRule(re.compile(r"(SAFETY|INCIDENT|HAZARD|EMERGENCY)"), _S),
    CategoryInferenceRule(re.compile(r"^(OPS|EFF|LEAN|MAINT|SOP|WORK|PROC|PROD)"), _E),
    CategoryInferenceRule(
        re.compile(r"(EFFICIENCY|OPTIM|MAINTENANCE|WORKFLOW|THROUGHPUT|SCHEDULE)"), _E
    ),
)


def normalize_action_code(code: str) -> str:
    """Trim, collapse whitespace/hyphen runs to ``_``, and uppercase."""

    return _SEPARATOR_RUN.sub("_", code.strip()).upper()


def infer_category(
    code: str,
    rules: tuple[CategoryInferenceRule, ...] = CATEGORY_INFERENCE_RULES,
) -> InstructionCategory:
    normalized = normalize_action_code(code)
    for rule in rules:
        if rule.matches(normalized):
            return rule.category
    return DEFAULT_INFERRED_CATEGORY


def format_action_name(code: str) -> str:
    """Derive a display name such as ``Capa 2 QA Review`` from a raw code."""

    tokens = [token for token in normalize_action_code(code).split("_") if token]
    if not tokens:
        return DEFAULT_ACTION_NAME
    return " ".join(_format_token(token) for token in tokens)


def _format_token(token: str) -> str:
    if _DIGITS.fullmatch(token) or _ACRONYM.fullmatch(token):
        return token
    return token[0] + token[1:].lower()


def resolve_action(
    code: str,
    *,
    category: InstructionCategory | None = None,
) -> ActionMetadata:
    """Resolve ``code`` to action metadata.

    An explicit ``category`` overrides the table/inferred one; the color then
    follows the winning category unless the definition pins its own color.
    """

    normalized = normalize_action_code(code)
    definition = ACTION_DEFINITIONS.get(normalized)
    if definition is not None:
        resolved_category = definition.category
        name = definition.name
    else:
        resolved_category = infer_category(normalized)
        name = format_action_name(normalized)

    if category is not None:
        resolved_category = InstructionCategory(category)

    color = definition.color if definition is not None and definition.color else None
    return ActionMetadata(
        code=normalized,
        name=name,
        category=resolved_category,
        color=color or CATEGORY_COLORS[resolved_category.value],
    )


__all__ = [
    "ACTION_DEFINITIONS",
    "CATEGORY_INFERENCE_RULES",
    "DEFAULT_INFERRED_CATEGORY",
    "ActionDefinition",
    "CategoryInferenceRule",
    "format_action_name",
    "infer_category",
    "normalize_action_code",
    "resolve_action",
]
