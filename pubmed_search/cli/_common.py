"""Utilities shared by CLI entrypoints."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, cast

from pubmed_search.config import JsonFileConfigStore, default_store
from pubmed_search.logging import configure_logging

if TYPE_CHECKING:
    from pubmed_search.api.results import Envelope
    from pubmed_search.config import ConfigStore


_LOG_LEVEL_CHOICES = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")
_LOG_FORMAT_CHOICES = ("text", "json")
_LOG_DESTINATION_CHOICES = ("auto", "stdout", "stderr")


CliRunner = Callable[[argparse.Namespace], "Envelope"]


class CLIArgs(argparse.Namespace):
    log_level: str
    log_format: str
    log_destination: str
    config: Path | None
    store: ConfigStore


def build_parser(*, prog: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description=description,
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="JSON credential file (default: $VALYU_CONFIG_FILE or ~/.valyu/config.json).",
    )
    parser.add_argument(
        "--log-level",
        type=_log_level_type,
        choices=_LOG_LEVEL_CHOICES,
        default="WARNING",
        help="Logging verbosity (case-insensitive).",
    )
    parser.add_argument(
        "--log-format",
        type=_log_format_type,
        choices=_LOG_FORMAT_CHOICES,
        default="text",
        help="Structured JSON or human-readable text logs.",
    )
    parser.add_argument(
        "--log-destination",
        type=_log_destination_type,
        choices=_LOG_DESTINATION_CHOICES,
        default="stderr",
        help="Write logs to stdout, stderr, or split automatically by level.",
    )
    return parser


def run_cli(
    parser: argparse.ArgumentParser,
    argv: Sequence[str] | None,
    *,
    cli_name: str,
    runner: CliRunner,
) -> int:
    """Parse ``argv``, run the command and print its envelope as JSON."""
    args = cast(CLIArgs, parser.parse_args(argv))
    configure_logging(
        level=args.log_level,
        fmt=args.log_format,
        destination=args.log_destination,
    )
    logger = logging.getLogger(f"pubmed_search.cli.{cli_name}")
    args.store = JsonFileConfigStore(args.config) if args.config else default_store()
    logger.debug("Using credential store %s", args.store.location, extra={"cli": cli_name})

    envelope = runner(args)
    emit(envelope)
    return exit_code_for(envelope)


def emit(envelope: Envelope) -> None:
    sys.stdout.write(json.dumps(envelope.to_payload(), indent=2, ensure_ascii=False) + "\n")
    sys.stdout.flush()


def exit_code_for(envelope: Envelope) -> int:
    return 0 if envelope.success else 1


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized not in _LOG_LEVEL_CHOICES:
        raise argparse.ArgumentTypeError(
            f"Invalid log level '{value}'. Expected one of: {', '.join(_LOG_LEVEL_CHOICES)}"
        )
    return normalized


def _log_format_type(value: str) -> str:
    normalized = value.lower()
    if normalized not in _LOG_FORMAT_CHOICES:
        raise argparse.ArgumentTypeError(
            f"Invalid log format '{value}'. Expected one of: {', '.join(_LOG_FORMAT_CHOICES)}"
        )
    return normalized


def _log_destination_type(value: str) -> str:
    normalized = value.lower()
    if normalized not in _LOG_DESTINATION_CHOICES:
        expected = ", ".join(_LOG_DESTINATION_CHOICES)
        raise argparse.ArgumentTypeError(
            f"Invalid log destination '{value}'. Expected one of: {expected}"
        )
    return normalized


__all__ = [
    "CliRunner",
    "build_parser",
    "emit",
    "exit_code_for",
    "run_cli",
]
