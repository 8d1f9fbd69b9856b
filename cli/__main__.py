#!/usr/bin/env python3
"""
ledgersort CLI - batch categorization of financial transactions.

Usage:
    python -m cli <command> <subcommand> [options]

Commands:
    transactions Add and inspect transactions
    batches      Inspect classification batches
    categorize   Submit and reconcile classification batches
    migrate      Database migrations

Examples:
    python -m cli migrate apply
    python -m cli transactions add 1001 --amount -42.10 --date 2025-01-15 \\
        --description "WHOLE FOODS #123" --type debit --account 12345678
    python -m cli categorize submit
    python -m cli categorize poll
    python -m cli categorize run
    python -m cli batches list --status created
"""

import sys
import argparse
from cli import batches, categorize, migrate, transactions
from config import load_config
from services.base import Services
from db.manager import DatabaseManager
from logger import setup_logging


def main():
    """Main CLI entry point with subcommands."""
    parser = argparse.ArgumentParser(
        prog="cli",
        description="ledgersort - Batch categorization of financial transactions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
    )

    transactions.setup_parser(subparsers)
    batches.setup_parser(subparsers)
    categorize.setup_parser(subparsers)
    migrate.setup_parser(subparsers)

    args = parser.parse_args()

    if hasattr(args, "func"):
        try:
            config = load_config()
            setup_logging(config)

            # migrate works on the raw database; everything else goes through services
            if args.command == "migrate":
                args.func(args, DatabaseManager(config))
            else:
                args.func(args, Services(config))
        except Exception as e:
            print(f"Error: {e}")
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
