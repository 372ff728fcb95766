"""Stable constants shared across the ingestion, validation, and reporting layers."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
RULE_CATALOG_SCHEMA_VERSION: Final[int] = 1

# Default runtime paths (relative to the config file unless overridden).
REPORTS_DIR: Final[PurePosixPath] = PurePosixPath("reports")
LOGS_DIR: Final[PurePosixPath] = PurePosixPath("logs")

# Keys that may carry the raw action identifier, in precedence order.
ACTION_CODE_ALIASES: Final[tuple[str, ...]] = ("action", "actionCode", "action_code")

DEFAULT_ACTION_NAME: Final[str] = "Instruction"
REPORT_FILENAME_PREFIX: Final[str] = "instruction-validation"
TOP_ACTIONS_LIMIT: Final[int] = 5

CATEGORY_ORDER: Final[tuple[str, ...]] = ("quality", "compliance", "safety", "efficiency")

CATEGORY_LABELS: Final[dict[str, str]] = {
    "quality": "Quality Assurance",
    "compliance": "Compliance",
    "safety": "Safety",
    "efficiency": "Operational Efficiency",
}

CATEGORY_COLORS: Final[dict[str, str]] = {
    "quality": "#722ed1",
    "compliance": "#1677ff",
    "safety": "#fa541c",
    "efficiency": "#52c41a",
}

STATUS_ORDER: Final[tuple[str, ...]] = ("pending", "in_review", "approved", "rejected")

STATUS_LABELS: Final[dict[str, str]] = {
    "pending": "Pending Review",
    "in_review": "In Review",
    "approved": "Approved",
    "rejected": "Requires Changes",
}

STATUS_COLORS: Final[dict[str, str]] = {
    "pending": "gold",
    "in_review": "blue",
    "approved": "green",
    "rejected": "red",
}

__all__ = [
    "ACTION_CODE_ALIASES",
    "CATEGORY_COLORS",
    "CATEGORY_LABELS",
    "CATEGORY_ORDER",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_ACTION_NAME",
    "LOGS_DIR",
    "REPORTS_DIR",
    "REPORT_FILENAME_PREFIX",
    "RULE_CATALOG_SCHEMA_VERSION",
    "STATUS_COLORS",
    "STATUS_LABELS",
    "STATUS_ORDER",
    "TOP_ACTIONS_LIMIT",
]
