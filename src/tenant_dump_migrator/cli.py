#!/usr/bin/env python
"""
Tenant dump migration CLI.

Usage:
    # Plain dumps
    tenant-dump-migrator dump.sql merged.sql

    # Gzipped input and output (selected by the .gz suffix)
    tenant-dump-migrator dump.sql.gz merged.sql.gz

    # Extra foreign key overrides and debug logging
    tenant-dump-migrator dump.sql.gz merged.sql.gz --config fk_overrides.yml -v
"""

import argparse
import sys
from typing import List, Optional

from .config import Settings
from .exceptions import DumpMigrationError
from .migrator import TenantDumpMigrator
from .utils.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tenant-dump-migrator",
        description="Merge a schema-per-tenant pg_dump into a single tenant_id-scoped schema",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("input", help="Input dump (.gz for gzip)")
    parser.add_argument("output", help="Output dump (.gz for gzip)")
    parser.add_argument(
        "--config",
        dest="fk_overrides_file",
        default=None,
        help="YAML file with extra foreign key include/exclude lists",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for a failed migration)
    """
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.fk_overrides_file:
        overrides["fk_overrides_file"] = args.fk_overrides_file

    try:
        settings = Settings(**overrides)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    configure_logging("DEBUG" if args.verbose else settings.log_level)

    try:
        TenantDumpMigrator(settings).migrate_files(args.input, args.output)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except DumpMigrationError as e:
        print(f"\n{e.line_no}: {e.line}", file=sys.stderr)
        print(f"Migration failed: {e.message}", file=sys.stderr)
        print("The output file is incomplete and must not be loaded.", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
