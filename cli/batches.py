#!/usr/bin/env python3

import sys
from models.batch import BatchStatus
from logger import get_logger

logger = get_logger()


def cmd_list(args, services):
    """List batches, oldest first."""
    status = BatchStatus(args.status) if args.status else None
    batches = services.batches.find_by_status(status, limit=args.limit)

    if not batches:
        logger.info("No batches found.")
        return

    logger.info("\nBatches:")
    logger.info("=" * 80)
    for batch in batches:
        logger.info(f"ID: {batch.id}")
        logger.info(f"Status: {batch.status.value} (remote: {batch.external_status or '-'})")
        logger.info(f"External ID: {batch.external_id if batch.is_submitted else 'not submitted'}")
        logger.info(f"Created: {batch.created_at.isoformat()}")
        if batch.completed_at:
            logger.info(f"Completed: {batch.completed_at.isoformat()}")
        logger.info("-" * 80)

    logger.info(f"\nTotal batches: {len(batches)}")


def cmd_show(args, services):
    """Show a batch and its member transactions."""
    batch = services.batches.find(args.batch_id)
    if not batch:
        logger.error(f"Batch '{args.batch_id}' not found.")
        sys.exit(1)

    logger.info(f"ID: {batch.id}")
    logger.info(f"Status: {batch.status.value}")
    logger.info(f"External ID: {batch.external_id if batch.is_submitted else 'not submitted'}")
    logger.info(f"External status: {batch.external_status or '-'}")
    logger.info(f"Output file: {batch.output_locator or '-'}")
    logger.info(f"Created: {batch.created_at.isoformat()}")
    logger.info(
        f"Completed: {batch.completed_at.isoformat() if batch.completed_at else '-'}"
    )
    logger.info(f"\nTransactions ({len(batch.transactions)}):")
    for t in batch.transactions:
        logger.info(f"  {t.id:<20} {t.category.value:<15} {t.description[:40]}")


def cmd_release(args, services):
    """Return a failed batch's unclassified transactions to the pending pool."""
    try:
        released = services.batches.release(args.batch_id)
    except (LookupError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"✓ Released {released} transaction(s) from batch {args.batch_id}")


def setup_parser(subparsers):
    """Setup batches subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "batches",
        help="Inspect classification batches",
        description="List, inspect and release classification batches",
    )

    batches_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available batch commands",
        dest="subcommand",
        required=True,
    )

    # batches list
    list_parser = batches_subparsers.add_parser("list", help="List batches")
    list_parser.add_argument(
        "--status", choices=[s.value for s in BatchStatus], help="Filter by status"
    )
    list_parser.add_argument("--limit", type=int, default=None, help="Maximum batches to show")
    list_parser.set_defaults(func=cmd_list)

    # batches show
    show_parser = batches_subparsers.add_parser("show", help="Show a batch")
    show_parser.add_argument("batch_id", help="Batch ID")
    show_parser.set_defaults(func=cmd_show)

    # batches release
    release_parser = batches_subparsers.add_parser(
        "release", help="Re-queue the transactions of a failed batch"
    )
    release_parser.add_argument("batch_id", help="Batch ID")
    release_parser.set_defaults(func=cmd_release)
