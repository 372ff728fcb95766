"""
instruction-audit — category rule catalog

Purpose
- Define the per-category lifecycle rules the validators consume.
- Load YAML rule overrides on top of the built-in catalog.

Functional requirements
- The catalog is an immutable mapping with exactly one rule per category.
- Override files name only the keys they change; everything else keeps the
  built-in value.
- Invalid override files raise ``RuleCatalogError`` listing every problem as
  ``path: message``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final, TypeAlias

import yaml

from instruction_audit.constants import RULE_CATALOG_SCHEMA_VERSION
from instruction_audit.domain.models import InstructionCategory, InstructionStatus
from instruction_audit.ingestion.actions import normalize_action_code

logger = logging.getLogger(__name__)

_P = InstructionStatus.PENDING
_R = InstructionStatus.IN_REVIEW
_A = InstructionStatus.APPROVED
_X = InstructionStatus.REJECTED


@dataclass(frozen=True, slots=True)
class SequenceRule:
    start_statuses: tuple[InstructionStatus, ...]
    end_statuses: tuple[InstructionStatus, ...]
    status_order: tuple[InstructionStatus, ...]

    def order_index(self, status: InstructionStatus) -> int | None:
        try:
            return self.status_order.index(status)
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class PairingRule:
    """Start-type actions that need a later follow-up by the same owner."""

    start_actions: frozenset[str]
    end_actions: frozenset[str]
    description: str


@dataclass(frozen=True, slots=True)
class CategoryRule:
    category: InstructionCategory
    sequence: SequenceRule
    min_steps: int | None = None
    require_owner_notes: bool = False
    require_owner_notes_for_statuses: frozenset[InstructionStatus] = frozenset()
    pairing_rules: tuple[PairingRule, ...] = ()


RuleCatalog: TypeAlias = Mapping[InstructionCategory, CategoryRule]


@dataclass(frozen=True, slots=True)
class RuleCatalogIssue:
    path: str
    message: str


class RuleCatalogError(ValueError):
    """Raised when a rule catalog or override file is invalid."""

    def __init__(self, issues: Sequence[RuleCatalogIssue], *, source: str | None = None) -> None:
        self.issues = tuple(issues)
        self.source = source
        rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        header = f"invalid rule catalog ({source})" if source else "invalid rule catalog"
        super().__init__(f"{header}:\n{rendered or '- unknown validation failure'}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[RuleCatalogIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(RuleCatalogIssue(path=path, message=message))

    def items(self) -> tuple[RuleCatalogIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def _pairing(starts: Iterable[str], ends: Iterable[str], description: str) -> PairingRule:
    return PairingRule(
        start_actions=frozenset(starts),
        end_actions=frozenset(ends),
        description=description,
    )


def _check_rule(rule: CategoryRule, path: str, issues: _IssueCollector) -> None:
    if not rule.sequence.start_statuses:
        issues.add(f"{path}.sequence.start_statuses", "must not be empty")
    if not rule.sequence.end_statuses:
        issues.add(f"{path}.sequence.end_statuses", "must not be empty")
    if not rule.sequence.status_order:
        issues.add(f"{path}.sequence.status_order", "must not be empty")
    if rule.min_steps is not None and rule.min_steps < 0:
        issues.add(f"{path}.min_steps", "must be >= 0")


_STANDARD_SEQUENCE: Final[SequenceRule] = SequenceRule(
    start_statuses=(_P, _R),
    end_statuses=(_A, _X),
    status_order=(_P, _R, _A),
)

_SAFETY_FOLLOW_UPS: Final[tuple[str, ...]] = ("SAFETY_ALERT", "INCIDENT_REVIEW", "INCIDENT_REPORT")


def build_rule_catalog(rules: Iterable[CategoryRule]) -> RuleCatalog:
    """Freeze ``rules`` into a catalog, requiring exactly one rule per category."""

    issues = _IssueCollector()
    catalog: dict[InstructionCategory, CategoryRule] = {}
    for rule in rules:
        if rule.category in catalog:
            issues.add(f"categories.{rule.category.value}", "duplicate category rule")
            continue
        _check_rule(rule, f"categories.{rule.category.value}", issues)
        catalog[rule.category] = rule

    for category in InstructionCategory:
        if category not in catalog:
            issues.add(f"categories.{category.value}", "missing category rule")

    if issues.has_issues:
        raise RuleCatalogError(issues.items())
    return MappingProxyType({category: catalog[category] for category in InstructionCategory})


DEFAULT_RULE_CATALOG: Final[RuleCatalog] = build_rule_catalog(
    (
        CategoryRule(
            category=InstructionCategory.QUALITY,
            sequence=_STANDARD_SEQUENCE,
            min_steps=2,
            require_owner_notes_for_statuses=frozenset({_X}),
            pairing_rules=(
                _pairing(
                    ("TRAINING_SESSION",),
                    ("TRAINING_COMPLETION",),
                    "Training sessions should conclude with a completion record.",
                ),
                _pairing(
                    ("QA_INSPECTION", "QUALITY_CHECK"),
                    ("QA_DEVIATION_REVIEW", "QUALITY_IMPROVEMENT"),
                    "Quality checks should be followed by a review or improvement action.",
                ),
            ),
        ),
        CategoryRule(
            category=InstructionCategory.COMPLIANCE,
            sequence=_STANDARD_SEQUENCE,
            min_steps=3,
            require_owner_notes=True,
            pairing_rules=(
                _pairing(
                    ("COMPLIANCE_AUDIT",),
                    ("AUDIT_RESPONSE",),
                    "Compliance audits must capture a corresponding response entry.",
                ),
                _pairing(
                    ("POLICY_UPDATE", "SOP_UPDATE"),
                    ("COMPLIANCE_REVIEW", "SOP_REVIEW"),
                    "Policy and SOP updates should be reviewed for compliance.",
                ),
            ),
        ),
        CategoryRule(
            category=InstructionCategory.SAFETY,
            sequence=_STANDARD_SEQUENCE,
            min_steps=2,
            require_owner_notes=True,
            pairing_rules=(
                _pairing(
                    ("SAFETY_DRILL", "SAFETY_INSPECTION"),
                    _SAFETY_FOLLOW_UPS,
                    "Safety activities should log the resulting alert or incident review.",
                ),
                _pairing(
                    ("RISK_ASSESSMENT",),
                    _SAFETY_FOLLOW_UPS,
                    "Risk assessments should link to the follow-up safety communication.",
                ),
            ),
        ),
        CategoryRule(
            category=InstructionCategory.EFFICIENCY,
            sequence=_STANDARD_SEQUENCE,
            min_steps=1,
            require_owner_notes_for_statuses=frozenset({_X}),
            pairing_rules=(
                _pairing(
                    ("MAINTENANCE_SCHEDULE",),
                    ("MAINTENANCE_CHECK",),
                    "Maintenance schedules require a matching maintenance check entry.",
                ),
                _pairing(
                    ("WORKFLOW_OPTIMIZATION", "WORKFLOW_UPDATE", "PROCESS_UPDATE"),
                    ("PROCESS_IMPROVEMENT", "EFFICIENCY_REVIEW"),
                    "Workflow changes should be assessed with a follow-up review.",
                ),
            ),
        ),
    )
)


def load_rule_catalog(
    path: str | Path,
    *,
    base: RuleCatalog = DEFAULT_RULE_CATALOG,
) -> RuleCatalog:
    """Load YAML overrides from ``path`` and apply them onto ``base``."""

    source = Path(path)
    try:
        raw_text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise RuleCatalogError(
            (RuleCatalogIssue("<file>", f"unable to read rule file: {exc}"),),
            source=str(source),
        ) from exc

    try:
        payload = yaml.safe_load(raw_text)
    except yaml.YAMLError as exc:
        raise RuleCatalogError(
            (RuleCatalogIssue("<file>", f"invalid YAML: {exc}"),),
            source=str(source),
        ) from exc

    document = payload if payload is not None else {}
    catalog = apply_rule_overrides(document, base=base, source=str(source))
    logger.info("loaded rule overrides", extra={"rules_path": str(source)})
    return catalog


def apply_rule_overrides(
    payload: object,
    *,
    base: RuleCatalog = DEFAULT_RULE_CATALOG,
    source: str | None = None,
) -> RuleCatalog:
    """Apply an already-decoded override document onto ``base``."""

    issues = _IssueCollector()
    if not isinstance(payload, Mapping):
        issues.add("<root>", f"expected mapping, got {type(payload).__name__}")
        raise RuleCatalogError(issues.items(), source=source)

    _reject_unknown_keys(payload, {"schema_version", "categories"}, "", issues)
    if "schema_version" in payload:
        version = payload["schema_version"]
        if isinstance(version, bool) or not isinstance(version, int):
            issues.add("schema_version", f"expected integer, got {type(version).__name__}")
        elif version != RULE_CATALOG_SCHEMA_VERSION:
            issues.add(
                "schema_version",
                f"unsupported version {version}; expected {RULE_CATALOG_SCHEMA_VERSION}",
            )

    overrides = payload.get("categories", {})
    if not isinstance(overrides, Mapping):
        issues.add("categories", f"expected mapping, got {type(overrides).__name__}")
        raise RuleCatalogError(issues.items(), source=source)

    updated: dict[InstructionCategory, CategoryRule] = dict(base)
    for key in sorted(overrides, key=str):
        path = f"categories.{key}"
        try:
            category = InstructionCategory(key)
        except ValueError:
            issues.add(path, "unknown category")
            continue
        entry = overrides[key]
        if not isinstance(entry, Mapping):
            issues.add(path, f"expected mapping, got {type(entry).__name__}")
            continue
        rule = _override_rule(updated[category], entry, path, issues)
        if rule is not None:
            updated[category] = rule

    if issues.has_issues:
        raise RuleCatalogError(issues.items(), source=source)

    try:
        return build_rule_catalog(updated.values())
    except RuleCatalogError as exc:
        raise RuleCatalogError(exc.issues, source=source) from exc


def rule_catalog_to_dict(catalog: RuleCatalog = DEFAULT_RULE_CATALOG) -> dict[str, Any]:
    """Render ``catalog`` as plain data in override-file shape."""

    categories: dict[str, Any] = {}
    for category in InstructionCategory:
        rule = catalog[category]
        categories[category.value] = {
            "sequence": {
                "start_statuses": [status.value for status in rule.sequence.start_statuses],
                "end_statuses": [status.value for status in rule.sequence.end_statuses],
                "status_order": [status.value for status in rule.sequence.status_order],
            },
            "min_steps": rule.min_steps,
            "require_owner_notes": rule.require_owner_notes,
            "require_owner_notes_for_statuses": sorted(
                status.value for status in rule.require_owner_notes_for_statuses
            ),
            "pairing_rules": [
                {
                    "start_actions": sorted(pairing.start_actions),
                    "end_actions": sorted(pairing.end_actions),
                    "description": pairing.description,
                }
                for pairing in rule.pairing_rules
            ],
        }
    return {"schema_version": RULE_CATALOG_SCHEMA_VERSION, "categories": categories}


def _override_rule(
    rule: CategoryRule,
    entry: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> CategoryRule | None:
    allowed = {
        "sequence",
        "min_steps",
        "require_owner_notes",
        "require_owner_notes_for_statuses",
        "pairing_rules",
    }
    _reject_unknown_keys(entry, allowed, path, issues)
    before = len(issues.items())
    changes: dict[str, Any] = {}

    if "sequence" in entry:
        sequence = _override_sequence(rule.sequence, entry["sequence"], f"{path}.sequence", issues)
        if sequence is not None:
            changes["sequence"] = sequence

    if "min_steps" in entry:
        value = entry["min_steps"]
        if value is None:
            changes["min_steps"] = None
        elif isinstance(value, bool) or not isinstance(value, int):
            issues.add(f"{path}.min_steps", f"expected integer, got {type(value).__name__}")
        elif value < 0:
            issues.add(f"{path}.min_steps", "must be >= 0")
        else:
            changes["min_steps"] = value

    if "require_owner_notes" in entry:
        flag = entry["require_owner_notes"]
        if isinstance(flag, bool):
            changes["require_owner_notes"] = flag
        else:
            issues.add(
                f"{path}.require_owner_notes", f"expected boolean, got {type(flag).__name__}"
            )

    if "require_owner_notes_for_statuses" in entry:
        statuses = _as_statuses(
            entry["require_owner_notes_for_statuses"],
            f"{path}.require_owner_notes_for_statuses",
            issues,
            allow_empty=True,
        )
        if statuses is not None:
            changes["require_owner_notes_for_statuses"] = frozenset(statuses)

    if "pairing_rules" in entry:
        pairings = _as_pairings(entry["pairing_rules"], f"{path}.pairing_rules", issues)
        if pairings is not None:
            changes["pairing_rules"] = pairings

    if len(issues.items()) != before:
        return None
    return replace(rule, **changes)


def _override_sequence(
    sequence: SequenceRule,
    value: object,
    path: str,
    issues: _IssueCollector,
) -> SequenceRule | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected mapping, got {type(value).__name__}")
        return None
    fields = ("start_statuses", "end_statuses", "status_order")
    _reject_unknown_keys(value, set(fields), path, issues)
    changes: dict[str, tuple[InstructionStatus, ...]] = {}
    for key in fields:
        if key not in value:
            continue
        parsed = _as_statuses(value[key], f"{path}.{key}", issues, allow_empty=False)
        if parsed is not None:
            changes[key] = parsed
    return replace(sequence, **changes)


def _as_statuses(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allow_empty: bool,
) -> tuple[InstructionStatus, ...] | None:
    if not isinstance(value, list):
        issues.add(path, f"expected list, got {type(value).__name__}")
        return None
    if not value and not allow_empty:
        issues.add(path, "must not be empty")
        return None

    statuses: list[InstructionStatus] = []
    ok = True
    for index, item in enumerate(value):
        try:
            status = InstructionStatus(item)
        except ValueError:
            allowed = ", ".join(member.value for member in InstructionStatus)
            issues.add(f"{path}[{index}]", f"invalid status {item!r}; expected one of: {allowed}")
            ok = False
            continue
        if status in statuses:
            issues.add(f"{path}[{index}]", f"duplicate status {status.value!r}")
            ok = False
            continue
        statuses.append(status)
    return tuple(statuses) if ok else None


def _as_pairings(
    value: object,
    path: str,
    issues: _IssueCollector,
) -> tuple[PairingRule, ...] | None:
    if not isinstance(value, list):
        issues.add(path, f"expected list, got {type(value).__name__}")
        return None

    rules: list[PairingRule] = []
    ok = True
    for index, item in enumerate(value):
        item_path = f"{path}[{index}]"
        if not isinstance(item, Mapping):
            issues.add(item_path, f"expected mapping, got {type(item).__name__}")
            ok = False
            continue
        allowed = {"start_actions", "end_actions", "description"}
        _reject_unknown_keys(item, allowed, item_path, issues)
        starts = _as_action_codes(item.get("start_actions"), f"{item_path}.start_actions", issues)
        ends = _as_action_codes(item.get("end_actions"), f"{item_path}.end_actions", issues)
        description = item.get("description")
        if not isinstance(description, str) or not description.strip():
            issues.add(f"{item_path}.description", "expected non-empty string")
            ok = False
            continue
        if starts is None or ends is None:
            ok = False
            continue
        rules.append(_pairing(starts, ends, description.strip()))
    return tuple(rules) if ok else None


def _as_action_codes(value: object, path: str, issues: _IssueCollector) -> tuple[str, ...] | None:
    if not isinstance(value, list) or not value:
        issues.add(path, "expected non-empty list of action codes")
        return None
    codes: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str) or not normalize_action_code(item):
            issues.add(f"{path}[{index}]", "expected non-empty action code")
            return None
        codes.append(normalize_action_code(item))
    return tuple(codes)


def _reject_unknown_keys(
    payload: Mapping[Any, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload, key=str):
        if key not in allowed:
            issues.add(f"{path}.{key}" if path else str(key), "unknown field")


__all__ = [
    "DEFAULT_RULE_CATALOG",
    "CategoryRule",
    "PairingRule",
    "RuleCatalog",
    "RuleCatalogError",
    "RuleCatalogIssue",
    "SequenceRule",
    "apply_rule_overrides",
    "build_rule_catalog",
    "load_rule_catalog",
    "rule_catalog_to_dict",
]
