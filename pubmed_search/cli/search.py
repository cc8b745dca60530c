"""`search` CLI entrypoint.

``search <query> [maxResults]`` runs a PubMed search through the Valyu API and
``search setup <api-key>`` stores a key. The literal first token ``setup`` is
what separates the two; a query that is exactly "setup" cannot be searched.

Positional tokens go through argparse, so a token starting with "-" is read as
an option: ``search covid -h`` prints help and no JSON document instead of
using "-h" as the result limit.
"""

from __future__ import annotations

import argparse
import logging
import re
from collections.abc import Sequence

import httpx

from pubmed_search.api.client import DEFAULT_LIMIT, SearchClient
from pubmed_search.api.results import (
    API_KEY_USAGE,
    QUERY_USAGE,
    CommandFailure,
    Envelope,
    SetupSuccess,
)
from pubmed_search.cli import _common
from pubmed_search.config import ConfigError, ConfigStore, save_api_key

PROG_NAME = "search"
DESCRIPTION = "Search PubMed through the Valyu API and print the JSON response."
SETUP_COMMAND = "setup"

_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = _common.build_parser(prog=PROG_NAME, description=DESCRIPTION)
    parser.add_argument(
        "command",
        nargs="?",
        default="",
        help=f"Search query, or '{SETUP_COMMAND}' to store an API key.",
    )
    parser.add_argument(
        "argument",
        nargs="?",
        help="Maximum number of results, or the API key for setup.",
    )
    parser.add_argument("rest", nargs="*", help=argparse.SUPPRESS)
    return parser


def parse_limit(raw: str | None) -> int | None:
    """Read the result limit the way JavaScript's ``parseInt`` does.

    Missing or empty input gives the default. Input without a leading integer
    gives ``None``, which is sent to the API unchanged as JSON ``null``.
    """
    if not raw:
        return DEFAULT_LIMIT
    match = _LEADING_INT.match(raw)
    if match is None:
        return None
    return int(match.group(1))


def setup(store: ConfigStore, api_key: str | None) -> Envelope:
    if not api_key:
        return CommandFailure(API_KEY_USAGE)
    try:
        save_api_key(store, api_key)
    except ConfigError as exc:
        logger.error("Could not save API key", extra={"error": str(exc)})
        return CommandFailure(str(exc))
    return SetupSuccess(location=store.location)


def dispatch(
    command: str | None,
    argument: str | None,
    *,
    store: ConfigStore,
    client: SearchClient,
) -> Envelope:
    """Decide what a pair of positional tokens means and carry it out."""
    if command == SETUP_COMMAND:
        return setup(store, argument)

    query = command or ""
    if not query:
        return CommandFailure(QUERY_USAGE)
    return client.search(query, parse_limit(argument))


def run(args: argparse.Namespace, *, transport: httpx.BaseTransport | None = None) -> Envelope:
    client = SearchClient(args.store, transport=transport)
    return dispatch(args.command, args.argument, store=args.store, client=client)


def main(
    argv: Sequence[str] | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
) -> int:
    parser = build_parser()
    return _common.run_cli(
        parser,
        argv,
        cli_name="search",
        runner=lambda args: run(args, transport=transport),
    )


if __name__ == "__main__":  # pragma: no cover - manual execution guard
    raise SystemExit(main())


__all__ = ["build_parser", "dispatch", "main", "parse_limit", "run", "setup"]
