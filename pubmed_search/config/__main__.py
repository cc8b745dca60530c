from __future__ import annotations

import argparse
import sys
from pathlib import Path

from . import JsonFileConfigStore, doctor


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Credential utilities for the PubMed search CLI.")
    subparsers = parser.add_subparsers(dest="command")

    doctor_parser = subparsers.add_parser("doctor", help="Show where the Valyu API key comes from.")
    doctor_parser.add_argument(
        "--config-file", type=Path, help="Path to the credential file (config.json)."
    )

    args = parser.parse_args(argv)
    if args.command == "doctor":
        store = JsonFileConfigStore(args.config_file) if args.config_file else None
        return 0 if doctor(store=store) else 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
