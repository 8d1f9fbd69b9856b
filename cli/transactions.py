#!/usr/bin/env python3

import sqlite3
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from models.category import TransactionCategory
from models.transaction import Transaction, TransactionType
from logger import get_logger

logger = get_logger()


def cmd_add(args, services):
    """Add a single transaction; it starts as Pending and unbatched.

    Args:
        args: Parsed command-line arguments with id, amount, date, description,
              type and account
        services: Services container with the transactions service
    """
    try:
        amount = Decimal(args.amount)
        timestamp = date.fromisoformat(args.date)
    except (InvalidOperation, ValueError) as e:
        logger.error(f"Invalid transaction: {e}")
        sys.exit(1)

    transaction = Transaction(
        id=args.transaction_id,
        amount=amount,
        timestamp=timestamp,
        description=args.description,
        type=TransactionType(args.type),
        account_number=args.account,
    )

    try:
        services.transactions.create(transaction)
    except sqlite3.IntegrityError:
        logger.error(f"Transaction with ID '{transaction.id}' already exists.")
        sys.exit(1)

    logger.info(f"✓ Transaction {transaction.id} added (category: {transaction.category.value})")


def cmd_list(args, services):
    """List one page of transactions."""
    category = TransactionCategory(args.category) if args.category else None

    transactions, total = services.transactions.find_all(
        args.page, args.limit, category=category
    )

    if not transactions:
        logger.info("No transactions found.")
        return

    logger.info(f"\n{'ID':<20} {'Date':<10} {'Amount':>12} {'Category':<15} Description")
    logger.info("=" * 80)
    for t in transactions:
        logger.info(
            f"{t.id:<20} {t.timestamp.isoformat():<10} {t.amount:>12} "
            f"{t.category.value:<15} {t.description[:40]}"
        )

    logger.info(f"\nPage {args.page}, showing {len(transactions)} of {total} transaction(s)")


def cmd_show(args, services):
    """Show a single transaction."""
    transaction = services.transactions.find(args.transaction_id)
    if not transaction:
        logger.error(f"Transaction with ID '{args.transaction_id}' not found.")
        sys.exit(1)

    for key, value in transaction.to_dict().items():
        logger.info(f"{key}: {value}")
    logger.info(f"eligible_for_batching: {transaction.is_eligible_for_batching}")


def setup_parser(subparsers):
    """Setup transactions subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "transactions",
        help="Manage transactions",
        description="Add and inspect transactions",
    )

    transactions_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available transaction commands",
        dest="subcommand",
        required=True,
    )

    # transactions add
    add_parser = transactions_subparsers.add_parser(
        "add", help="Add a transaction for categorization"
    )
    add_parser.add_argument("transaction_id", help="Unique transaction ID")
    add_parser.add_argument("--amount", required=True, help="Signed amount, e.g. -12.50")
    add_parser.add_argument("--date", required=True, help="Transaction date (YYYY-MM-DD)")
    add_parser.add_argument("--description", required=True, help="Free-text description")
    add_parser.add_argument(
        "--type",
        required=True,
        choices=[t.value for t in TransactionType],
        help="Transaction type",
    )
    add_parser.add_argument("--account", required=True, help="Account number")
    add_parser.set_defaults(func=cmd_add)

    # transactions list
    list_parser = transactions_subparsers.add_parser("list", help="List transactions")
    list_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    list_parser.add_argument("--limit", type=int, default=10, help="Page size (default: 10)")
    list_parser.add_argument(
        "--category",
        choices=[c.value for c in TransactionCategory],
        help="Only show transactions in this category",
    )
    list_parser.set_defaults(func=cmd_list)

    # transactions show
    show_parser = transactions_subparsers.add_parser("show", help="Show a transaction")
    show_parser.add_argument("transaction_id", help="Transaction ID")
    show_parser.set_defaults(func=cmd_show)
