"""Lifecycle validation: rule catalog, validators, and report aggregation."""

from instruction_audit.validation.aggregator import ReportBuilder
from instruction_audit.validation.engine import (
    Clock,
    result_lookup,
    validate_instruction_sequences,
)
from instruction_audit.validation.findings import Finding, format_status, format_status_list
from instruction_audit.validation.grouping import LifecycleGroup, group_by_instruction
from instruction_audit.validation.pairing import validate_pairings
from instruction_audit.validation.rules import (
    DEFAULT_RULE_CATALOG,
    CategoryRule,
    PairingRule,
    RuleCatalog,
    RuleCatalogError,
    RuleCatalogIssue,
    SequenceRule,
    apply_rule_overrides,
    build_rule_catalog,
    load_rule_catalog,
    rule_catalog_to_dict,
)
from instruction_audit.validation.sequence import validate_sequence

__all__ = [
    "DEFAULT_RULE_CATALOG",
    "CategoryRule",
    "Clock",
    "Finding",
    "LifecycleGroup",
    "PairingRule",
    "ReportBuilder",
    "RuleCatalog",
    "RuleCatalogError",
    "RuleCatalogIssue",
    "SequenceRule",
    "apply_rule_overrides",
    "build_rule_catalog",
    "format_status",
    "format_status_list",
    "group_by_instruction",
    "load_rule_catalog",
    "result_lookup",
    "rule_catalog_to_dict",
    "validate_instruction_sequences",
    "validate_pairings",
    "validate_sequence",
]
