"""
instruction-audit — unit tests for the rule catalog and YAML overrides

What this test file should cover
- The built-in catalog covers every category and is read-only.
- YAML overrides change only the keys they name.
- Invalid override files list every problem with its path.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from instruction_audit.domain.models import InstructionCategory, InstructionStatus
from instruction_audit.validation.rules import (
    DEFAULT_RULE_CATALOG,
    RuleCatalogError,
    apply_rule_overrides,
    build_rule_catalog,
    load_rule_catalog,
    rule_catalog_to_dict,
)

pytestmark = pytest.mark.unit


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_default_catalog_covers_every_category_in_order() -> None:
    assert list(DEFAULT_RULE_CATALOG) == list(InstructionCategory)
    compliance = DEFAULT_RULE_CATALOG[InstructionCategory.COMPLIANCE]
    assert compliance.require_owner_notes is True
    assert compliance.min_steps == 3
    quality = DEFAULT_RULE_CATALOG[InstructionCategory.QUALITY]
    assert quality.require_owner_notes_for_statuses == frozenset({InstructionStatus.REJECTED})


def test_default_catalog_is_read_only() -> None:
    with pytest.raises(TypeError):
        DEFAULT_RULE_CATALOG[InstructionCategory.QUALITY] = None  # type: ignore[index]


def test_build_rule_catalog_requires_every_category() -> None:
    only_quality = [DEFAULT_RULE_CATALOG[InstructionCategory.QUALITY]]

    with pytest.raises(RuleCatalogError) as exc_info:
        build_rule_catalog(only_quality * 2)

    paths = [issue.path for issue in exc_info.value.issues]
    assert paths == [
        "categories.quality",
        "categories.compliance",
        "categories.safety",
        "categories.efficiency",
    ]


def test_yaml_overrides_change_only_named_keys(tmp_path: Path) -> None:
    rules_path = _write(
        tmp_path / "rules.yaml",
        """
schema_version: 1
categories:
  quality:
    min_steps: 4
    require_owner_notes_for_statuses: [rejected, in_review]
  efficiency:
    sequence:
      end_statuses: [approved]
    pairing_rules:
      - start_actions: [line changeover]
        end_actions: [LINE_VERIFICATION]
        description: "Changeovers need a verification."
""",
    )

    catalog = load_rule_catalog(rules_path)

    quality = catalog[InstructionCategory.QUALITY]
    assert quality.min_steps == 4
    assert quality.require_owner_notes_for_statuses == frozenset(
        {InstructionStatus.REJECTED, InstructionStatus.IN_REVIEW}
    )
    assert quality.pairing_rules == DEFAULT_RULE_CATALOG[InstructionCategory.QUALITY].pairing_rules

    efficiency = catalog[InstructionCategory.EFFICIENCY]
    default_sequence = DEFAULT_RULE_CATALOG[InstructionCategory.EFFICIENCY].sequence
    assert efficiency.sequence.end_statuses == (InstructionStatus.APPROVED,)
    assert efficiency.sequence.start_statuses == default_sequence.start_statuses
    (pairing,) = efficiency.pairing_rules
    assert pairing.start_actions == frozenset({"LINE_CHANGEOVER"})
    assert pairing.description == "Changeovers need a verification."

    assert catalog[InstructionCategory.SAFETY] is DEFAULT_RULE_CATALOG[InstructionCategory.SAFETY]


def test_empty_override_file_returns_equivalent_catalog(tmp_path: Path) -> None:
    catalog = load_rule_catalog(_write(tmp_path / "empty.yaml", ""))

    assert dict(catalog) == dict(DEFAULT_RULE_CATALOG)


def test_invalid_overrides_report_every_problem() -> None:
    payload = {
        "schema_version": 9,
        "extra": True,
        "categories": {
            "finance": {},
            "quality": {
                "min_steps": -1,
                "require_owner_notes": "yes",
                "sequence": {"start_statuses": ["open"]},
            },
            "safety": {"pairing_rules": [{"start_actions": [], "description": ""}]},
        },
    }

    with pytest.raises(RuleCatalogError) as exc_info:
        apply_rule_overrides(payload, source="inline")

    paths = {issue.path for issue in exc_info.value.issues}
    assert {
        "extra",
        "schema_version",
        "categories.finance",
        "categories.quality.min_steps",
        "categories.quality.require_owner_notes",
        "categories.quality.sequence.start_statuses[0]",
        "categories.safety.pairing_rules[0].start_actions",
        "categories.safety.pairing_rules[0].end_actions",
        "categories.safety.pairing_rules[0].description",
    } <= paths
    assert "invalid rule catalog (inline)" in str(exc_info.value)


def test_unreadable_and_malformed_files_raise_rule_catalog_error(tmp_path: Path) -> None:
    with pytest.raises(RuleCatalogError, match="unable to read rule file"):
        load_rule_catalog(tmp_path / "missing.yaml")

    with pytest.raises(RuleCatalogError, match="invalid YAML"):
        load_rule_catalog(_write(tmp_path / "bad.yaml", "categories: [unclosed"))

    with pytest.raises(RuleCatalogError, match="expected mapping"):
        load_rule_catalog(_write(tmp_path / "list.yaml", "- quality"))


def test_catalog_dump_round_trips_through_overrides() -> None:
    dumped = rule_catalog_to_dict()

    assert dumped["schema_version"] == 1
    assert dumped["categories"]["compliance"]["require_owner_notes"] is True
    reloaded = apply_rule_overrides(yaml.safe_load(yaml.safe_dump(dumped)))
    assert dict(reloaded) == dict(DEFAULT_RULE_CATALOG)
