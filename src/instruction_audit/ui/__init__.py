"""Command-line surface: argparse router and plain-text renderer."""

from instruction_audit.ui.cli import CLIError, build_parser, main, run_cli
from instruction_audit.ui.render import CLIRenderer, create_renderer

__all__ = ["CLIError", "CLIRenderer", "build_parser", "create_renderer", "main", "run_cli"]
