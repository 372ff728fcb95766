"""Command-line interface router for instruction-audit."""

from __future__ import annotations

import argparse
import json
import sys
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml

from instruction_audit.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
)
from instruction_audit.domain.models import InstructionCategory, ValidationReport
from instruction_audit.ingestion import ParseResult, parse_instruction_file, resolve_action
from instruction_audit.observability import correlation_scope, setup_logging, shutdown_logging
from instruction_audit.pipeline import AuditOutcome, NoUsableRecordsError, audit_log_file
from instruction_audit.reporting import (
    CategoryShare,
    StatusShare,
    format_report_text,
    summarize_instructions,
    validation_severity,
    write_report,
)
from instruction_audit.ui.render import CLIRenderer, create_renderer
from instruction_audit.validation import (
    DEFAULT_RULE_CATALOG,
    RuleCatalog,
    RuleCatalogError,
    load_rule_catalog,
    result_lookup,
    rule_catalog_to_dict,
    validate_instruction_sequences,
)

EXIT_SUCCESS = 0
EXIT_ISSUES_FOUND = 1
EXIT_USAGE = 2
EXIT_INPUT = 3


class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    def __init__(self, message: str, exit_code: int = 1) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="instruction-audit",
        description=(
            "instruction-audit — validate JSON Lines instruction logs.\n\n"
            "Common workflows:\n"
            "  instruction-audit validate logs.jsonl     Validate lifecycles and pairings\n"
            "  instruction-audit parse logs.jsonl        Check which lines parse\n"
            "  instruction-audit stats logs.jsonl        Summarize the log\n"
            "  instruction-audit rules                   Show the effective rule catalog\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./instruction_audit.toml if present).",
    )
    common.add_argument("--profile", default=None, help="Optional config profile overlay name.")
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output and debug logs.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )
    common.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Emit machine-readable JSON on stdout.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_parser = subparsers.add_parser(
        "parse",
        parents=[common],
        help="Parse a log file and list lines that failed",
    )
    parse_parser.add_argument("log_path", help="JSON Lines log file.")
    parse_parser.set_defaults(handler=_cmd_parse)

    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common],
        help="Validate instruction lifecycles and follow-up pairings",
        description=(
            "Validate a JSON Lines log.\n\n"
            "Exit codes: 0 clean, 1 errors found (or warnings with --fail-on-warning),\n"
            "2 config/usage error, 3 unreadable log or no usable records."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    validate_parser.add_argument("log_path", help="JSON Lines log file.")
    _add_rules_argument(validate_parser)
    validate_parser.add_argument(
        "--fail-on-warning",
        action="store_true",
        default=None,
        help="Exit 1 when only warnings were found.",
    )
    validate_parser.add_argument(
        "--output",
        dest="output_dir",
        default=None,
        help="Write the report JSON into this directory.",
    )
    validate_parser.add_argument(
        "--write-report",
        action="store_true",
        default=False,
        help="Write the report JSON into report.output_dir from config.",
    )
    validate_parser.add_argument(
        "--max-results",
        type=_non_negative_int,
        default=None,
        help="Limit affected instructions listed in text output.",
    )
    validate_parser.set_defaults(handler=_cmd_validate)

    resolve_parser = subparsers.add_parser(
        "resolve",
        parents=[common],
        help="Show action metadata for raw action codes",
    )
    resolve_parser.add_argument("codes", nargs="+", help="Raw action codes.")
    resolve_parser.add_argument(
        "--category",
        choices=[category.value for category in InstructionCategory],
        default=None,
        help="Explicit category override.",
    )
    resolve_parser.set_defaults(handler=_cmd_resolve)

    stats_parser = subparsers.add_parser(
        "stats",
        parents=[common],
        help="Summarize category, status, action, and daily volume",
    )
    stats_parser.add_argument("log_path", help="JSON Lines log file.")
    _add_rules_argument(stats_parser)
    stats_parser.set_defaults(handler=_cmd_stats)

    rules_parser = subparsers.add_parser(
        "rules",
        parents=[common],
        help="Show the effective rule catalog as YAML",
    )
    _add_rules_argument(rules_parser)
    rules_parser.set_defaults(handler=_cmd_rules)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show the effective configuration",
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return EXIT_USAGE

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_parse(args: argparse.Namespace) -> int:
    with _session(args) as config:
        log_path = _require_path(args.log_path)
        parsed = _read_log(log_path, config)

    payload: dict[str, object] = {
        "command": "parse",
        "source": str(log_path),
        "metadata": parsed.metadata.to_dict() if parsed.metadata is not None else None,
        "entry_count": len(parsed.entries),
        "errors": [error.to_dict() for error in parsed.errors],
    }
    exit_code = EXIT_SUCCESS if parsed.has_entries else EXIT_INPUT
    if _flag(args, "json"):
        _emit_json(payload)
        return exit_code

    renderer = _get_renderer(args)
    renderer.kv("File", log_path.name)
    renderer.kv("Entries", len(parsed.entries))
    renderer.kv("Parse errors", len(parsed.errors))
    renderer.table(
        ("Line", "Message"),
        [(str(error.line), error.message) for error in parsed.errors],
        title="Rejected lines:",
    )
    if not parsed.has_entries:
        renderer.warning("no valid instruction records found")
    return exit_code


def _cmd_validate(args: argparse.Namespace) -> int:
    with _session(args) as config:
        log_path = _require_path(args.log_path)
        rules = _load_rules(args, config)
        outcome = _audit(log_path, config, rules)
        report = outcome.report

        output_dir = _optional_str(getattr(args, "output_dir", None))
        if output_dir is None and _flag(args, "write_report"):
            output_dir = _optional_str(_section(config, "report").get("output_dir"))
        report_path: Path | None = None
        if output_dir is not None:
            report_path = write_report(report, output_dir, indent=_report_indent(config))

    fail_on_warning = args.fail_on_warning
    if fail_on_warning is None:
        fail_on_warning = bool(_section(config, "validation").get("fail_on_warning", False))
    exit_code = _validation_exit_code(report, fail_on_warning=fail_on_warning)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "validate",
                "source": str(log_path),
                "metadata": outcome.metadata.to_dict() if outcome.metadata else None,
                "parse_errors": [error.to_dict() for error in outcome.errors],
                "report": report.to_dict(),
                "report_path": str(report_path) if report_path is not None else None,
            }
        )
        return exit_code

    renderer = _get_renderer(args)
    max_results = getattr(args, "max_results", None)
    if max_results is None:
        max_results = int(_section(config, "report").get("max_results", 50))
    renderer.block(format_report_text(report, max_results=max_results))
    if outcome.errors:
        renderer.warning(f"{len(outcome.errors)} line(s) failed to parse and were skipped")
    if report_path is not None:
        renderer.kv("Report written", report_path)
    if exit_code == EXIT_SUCCESS:
        renderer.styled("Result: ", "PASS", "ok")
    else:
        renderer.styled("Result: ", "FAIL", "error")
    return exit_code


def _cmd_resolve(args: argparse.Namespace) -> int:
    category = InstructionCategory(args.category) if args.category else None
    resolved = [resolve_action(code, category=category) for code in args.codes]

    if _flag(args, "json"):
        _emit_json({"command": "resolve", "actions": [action.to_dict() for action in resolved]})
        return EXIT_SUCCESS

    renderer = _get_renderer(args)
    renderer.table(
        ("Code", "Name", "Category", "Color"),
        [(item.code, item.name, item.category.value, item.color) for item in resolved],
    )
    return EXIT_SUCCESS


def _cmd_stats(args: argparse.Namespace) -> int:
    with _session(args) as config:
        log_path = _require_path(args.log_path)
        rules = _load_rules(args, config)
        parsed = _read_log(log_path, config)
        if not parsed.has_entries:
            raise CLIError(f"no valid instruction records found in {log_path}", EXIT_INPUT)
        report = validate_instruction_sequences(parsed.entries, rules=rules)
        stats = summarize_instructions(parsed.entries, report)

    if _flag(args, "json"):
        _emit_json({"command": "stats", "source": str(log_path), "statistics": stats.to_dict()})
        return EXIT_SUCCESS

    renderer = _get_renderer(args)
    renderer.kv("Total instructions", stats.total_instructions)
    renderer.kv("Unique actions", stats.unique_actions)
    renderer.kv("Active categories", stats.active_categories)
    renderer.kv("Average per day", f"{stats.average_per_day:.2f}")
    if stats.peak_day is not None:
        renderer.kv("Peak day", f"{stats.peak_day.full_label} ({stats.peak_day.count})")
    renderer.kv(
        "Validation",
        f"affected={stats.validation.affected} errors={stats.validation.errors} "
        f"warnings={stats.validation.warnings}",
    )
    renderer.table(
        ("Category", "Count", "Share"),
        _share_rows(stats.type_distribution),
        title="Categories:",
    )
    renderer.table(
        ("Status", "Count", "Share"),
        _share_rows(stats.status_distribution),
        title="Statuses:",
    )
    renderer.table(
        ("Action", "Name", "Count", "Share"),
        [
            (item.code, item.name, str(item.count), f"{item.percentage:.1f}%")
            for item in stats.top_actions
        ],
        title="Top actions:",
    )
    if renderer.verbose:
        renderer.table(
            ("Date", "Count"),
            [(point.full_label, str(point.count)) for point in stats.timeline],
            title="Timeline:",
        )
        lookup = result_lookup(report)
        flagged = sorted(
            instruction_id
            for instruction_id, result in lookup.items()
            if validation_severity(result) is not None
        )
        if flagged:
            renderer.section("Flagged instructions:")
            renderer.items(flagged)
    return EXIT_SUCCESS


def _cmd_rules(args: argparse.Namespace) -> int:
    with _session(args) as config:
        rules = _load_rules(args, config)
    catalog = rule_catalog_to_dict(rules)

    if _flag(args, "json"):
        _emit_json({"command": "rules", "catalog": catalog})
        return EXIT_SUCCESS

    renderer = _get_renderer(args)
    renderer.block(yaml.safe_dump(catalog, sort_keys=False, allow_unicode=True))
    return EXIT_SUCCESS


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    profile = _optional_str(getattr(args, "profile", None))

    if _flag(args, "json"):
        _emit_json({"command": "config", "active_profile": profile, "config": config})
        return EXIT_SUCCESS

    renderer = _get_renderer(args)
    renderer.kv("Active profile", profile or "(default)")
    renderer.text(dump_effective_config(config, indent=2))
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _session(args: argparse.Namespace) -> Iterator[dict[str, Any]]:
    """Load config and configure logging for the duration of one command."""

    config = _load_effective_config(args)
    run_id = f"{datetime.now(tz=UTC):%Y%m%dT%H%M%SZ}-{uuid.uuid4().hex[:8]}"
    setup_logging(
        _section(config, "observability"),
        run_id=run_id,
        verbose=_flag(args, "verbose"),
    )
    try:
        with correlation_scope(run_id=run_id):
            yield config
    finally:
        shutdown_logging()


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    config_path = _optional_str(getattr(args, "config_path", None))
    profile = _optional_str(getattr(args, "profile", None))
    try:
        return load_config(config_path, profile=profile)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=EXIT_USAGE) from exc


def _load_rules(args: argparse.Namespace, config: Mapping[str, Any]) -> RuleCatalog:
    rules_path = _optional_str(getattr(args, "rules_path", None))
    if rules_path is None:
        configured = _section(config, "validation").get("rules_path")
        rules_path = configured if isinstance(configured, str) else None
    if rules_path is None:
        return DEFAULT_RULE_CATALOG
    try:
        return load_rule_catalog(rules_path)
    except RuleCatalogError as exc:
        raise CLIError(str(exc), exit_code=EXIT_USAGE) from exc


def _read_log(log_path: Path, config: Mapping[str, Any]) -> ParseResult:
    try:
        return parse_instruction_file(log_path, encoding=_encoding(config))
    except OSError as exc:
        raise CLIError(f"unable to read log file {log_path}: {exc}", EXIT_INPUT) from exc


def _audit(log_path: Path, config: Mapping[str, Any], rules: RuleCatalog) -> AuditOutcome:
    try:
        return audit_log_file(log_path, encoding=_encoding(config), rules=rules)
    except NoUsableRecordsError as exc:
        raise CLIError(str(exc), EXIT_INPUT) from exc
    except OSError as exc:
        raise CLIError(f"unable to read log file {log_path}: {exc}", EXIT_INPUT) from exc


def _validation_exit_code(report: ValidationReport, *, fail_on_warning: bool) -> int:
    if report.has_errors or (fail_on_warning and report.has_warnings):
        return EXIT_ISSUES_FOUND
    return EXIT_SUCCESS


def _require_path(raw: object) -> Path:
    cleaned = _optional_str(raw)
    if cleaned is None:
        raise CLIError("a log file path is required", exit_code=EXIT_USAGE)
    candidate = Path(cleaned).expanduser()
    if not candidate.is_file():
        raise CLIError(f"log file not found: {candidate}", exit_code=EXIT_INPUT)
    return candidate


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = config.get(name)
    return section if isinstance(section, Mapping) else {}


def _encoding(config: Mapping[str, Any]) -> str:
    return str(_section(config, "ingestion").get("encoding", "utf-8"))


def _report_indent(config: Mapping[str, Any]) -> int:
    return int(_section(config, "report").get("indent", 2))


def _add_rules_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--rules",
        dest="rules_path",
        default=None,
        help="YAML rule overrides (default: validation.rules_path from config).",
    )


def _non_negative_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from exc
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


def _share_rows(shares: Sequence[CategoryShare | StatusShare]) -> list[tuple[str, ...]]:
    return [(item.label, str(item.count), f"{item.percentage:.1f}%") for item in shares]


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"))


def _optional_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "main", "run_cli"]
