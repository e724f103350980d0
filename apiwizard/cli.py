# File: apiwizard/cli.py
"""
APIWizard - Command-Line Interface
====================================

Developer CLI built with the standard-library ``argparse`` module.  Drives
the wizard headlessly from a schema discovery payload up to the preview
step, then writes the synthesized OpenAPI document.

Usage examples::

    # All tables, default methods, JSON to stdout
    python -m apiwizard -s schema.json --service db

    # Selected tables and methods, YAML file
    python -m apiwizard -s schema.yaml --service db --tables users,orders \\
        --methods GET,POST,DELETE -o openapi.yaml

    # Check selections without writing anything
    python -m apiwizard -s schema.json --service db --validate-only

Exit codes:
    0 - success
    1 - validation error (a wizard gate stayed closed)
    2 - synthesis error
    3 - export error
    4 - input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional, Sequence

from apiwizard.bitmask import coerce_verb
from apiwizard.errors import InvalidVerbError, UnsupportedFieldTypeError
from apiwizard.models import HTTPVerb, TableDescriptor, WizardSettings
from apiwizard.utils import Timer

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_SYNTHESIS_ERROR: int = 2
EXIT_EXPORT_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root apiwizard logger based on verbosity level.

    Args:
        verbosity: -1 = ERROR, 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    elif verbosity == 0:
        level = logging.WARNING
    else:
        level = logging.ERROR

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    formatter: logging.Formatter = logging.Formatter(fmt, datefmt="%H:%M:%S")
    handler.setFormatter(formatter)

    root_logger: logging.Logger = logging.getLogger("apiwizard")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from apiwizard import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="apiwizard",
        description=(
            "APIWizard - OpenAPI generation from database schema discovery.\n\n"
            "Selects tables, builds per-method endpoint configurations and "
            "synthesizes an OpenAPI 3.0 document."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -s schema.json --service db\n"
            "  %(prog)s -s schema.yaml --service db --tables users -o api.yaml\n"
            "  %(prog)s -s schema.json --service db --validate-only\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"APIWizard v{__version__}",
    )

    # --- Input ---
    parser.add_argument(
        "-s", "--schema",
        type=str,
        required=True,
        metavar="PATH",
        help="Schema discovery payload (JSON or YAML).",
    )
    parser.add_argument(
        "--service",
        type=str,
        required=True,
        metavar="NAME",
        help="Database service name used as the path prefix.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="Wizard settings file (JSON or YAML).",
    )

    # --- Selection ---
    selection_group = parser.add_argument_group("selection")
    selection_group.add_argument(
        "--tables",
        type=str,
        default=None,
        metavar="A,B",
        help="Comma-separated tables to include (default: all).",
    )
    selection_group.add_argument(
        "--methods",
        type=str,
        default=None,
        metavar="GET,POST",
        help="Comma-separated HTTP methods to enable (default: all but DELETE).",
    )

    # --- Output ---
    output_group = parser.add_argument_group("output")
    output_group.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="FILE",
        help="Write the document here instead of stdout.",
    )
    output_group.add_argument(
        "--format",
        type=str,
        default=None,
        choices=["json", "yaml"],
        help="Output format (default: from the file suffix, else json).",
    )
    output_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Run the wizard to preview and report, without writing output.",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    return parser


def _split_csv(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def _load_inputs(args: argparse.Namespace) -> Optional[tuple]:
    """Return ``(tables, settings, methods)`` or None after logging why not."""
    from apiwizard.generator import (
        load_schema_file,
        load_settings_file,
        parse_schema_response,
    )

    try:
        tables: List[TableDescriptor] = parse_schema_response(
            load_schema_file(Path(args.schema).resolve())
        )
    except UnsupportedFieldTypeError as exc:
        logger.error("Unsupported column type: %s", exc)
        return None
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Failed to load schema: %s", exc)
        return None

    settings: WizardSettings = WizardSettings()
    if args.config is not None:
        try:
            settings = load_settings_file(Path(args.config).resolve())
        except (FileNotFoundError, ValueError) as exc:
            logger.error("Failed to load settings: %s", exc)
            return None

    methods: Optional[List[HTTPVerb]] = None
    raw_methods: Optional[List[str]] = _split_csv(args.methods)
    if raw_methods is not None:
        try:
            methods = [coerce_verb(m) for m in raw_methods]
        except InvalidVerbError as exc:
            logger.error("%s", exc)
            return None
    return tables, settings, methods


def _print_gate_errors(errors: Sequence[str], step: str) -> None:
    print(f"Cannot leave step '{step}':", file=sys.stderr)
    for message in errors:
        print(f"  x {message}", file=sys.stderr)


def run(args: argparse.Namespace) -> int:
    """Execute the CLI pipeline and return an exit code."""
    from apiwizard.exporters import export_document, render_document
    from apiwizard.generator import drive_to_preview
    from apiwizard.wizard import WizardStateMachine

    inputs: Optional[tuple] = _load_inputs(args)
    if inputs is None:
        return EXIT_INPUT_ERROR
    tables, settings, methods = inputs

    machine: WizardStateMachine = WizardStateMachine(args.service, settings)
    with Timer("wizard") as timer:
        try:
            reached: bool = drive_to_preview(
                machine, tables, _split_csv(args.tables), methods
            )
        except ValueError as exc:
            logger.error("%s", exc)
            return EXIT_INPUT_ERROR
    logger.info("Wizard reached %s in %.3fs.", machine.step.value, timer.elapsed)

    if not reached:
        step = machine.state.current_step
        _print_gate_errors(machine.state.errors_for(step), step.value)
        return EXIT_VALIDATION_ERROR

    result = machine.last_preview
    if result is None or result.document is None or result.errors:
        for message in result.errors if result is not None else ():
            logger.error("Synthesis: %s", message)
        return EXIT_SYNTHESIS_ERROR

    document = result.document
    if args.validate_only:
        print(
            f"{args.service}: {len(machine.state.selected_tables)} tables, "
            f"{len(document.paths)} paths, {len(document.schema_names)} schemas - OK"
        )
        return EXIT_SUCCESS

    if args.output is None:
        sys.stdout.write(render_document(document, args.format or "json"))
        return EXIT_SUCCESS

    try:
        exported = export_document(document, Path(args.output), args.format)
    except (OSError, ValueError) as exc:
        logger.error("Export failed: %s", exc)
        return EXIT_EXPORT_ERROR
    logger.info("sha256 %s", exported.sha256)
    if not args.quiet:
        print(f"Wrote {exported.path} ({exported.size_bytes} bytes)")
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    verbosity: int = -1 if args.quiet else args.verbose
    _setup_logging(verbosity)

    exit_code: int = run(args)
    if exit_code != EXIT_SUCCESS:
        logger.error("apiwizard failed with exit code %d.", exit_code)
    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "run",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_SYNTHESIS_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("apiwizard.cli loaded.")
