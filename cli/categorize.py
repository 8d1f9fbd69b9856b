#!/usr/bin/env python3

from categorization import CategorizationOrchestrator
from llm import get_batch_processor
from scheduler import CategorizationScheduler
from logger import get_logger

logger = get_logger()


def _build_orchestrator(services):
    processor = get_batch_processor(services.config, services)
    return CategorizationOrchestrator.from_config(services.config, services, processor)


def cmd_submit(args, services):
    """Run one formation cycle: batch pending transactions and submit them."""
    orchestrator = _build_orchestrator(services)
    batch = orchestrator.form_and_submit()

    if batch is None:
        logger.info("No pending transactions to submit.")
        return

    logger.info(f"✓ Submitted batch {batch.id} ({len(batch.transactions)} transaction(s))")

    remaining = services.transactions.count_eligible()
    if remaining:
        logger.info(f"{remaining} transaction(s) still waiting for a batch")


def cmd_poll(args, services):
    """Run one polling cycle over in-flight batches."""
    orchestrator = _build_orchestrator(services)
    summary = orchestrator.poll_and_reconcile()

    if summary.total == 0:
        logger.info("No batches in flight.")


def cmd_run(args, services):
    """Run both cycles on their configured cadence until interrupted."""
    orchestrator = _build_orchestrator(services)
    scheduler = CategorizationScheduler.from_config(services.config, orchestrator)

    logger.info(
        f"Categorization running (submit every {services.config.submit_interval_seconds:g}s, "
        f"poll every {services.config.poll_interval_seconds:g}s). Press Ctrl+C to stop."
    )
    scheduler.run_forever()


def setup_parser(subparsers):
    """Setup categorize subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "categorize",
        help="Run batch categorization",
        description="Submit pending transactions and reconcile batch results",
    )

    categorize_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available categorization commands",
        dest="subcommand",
        required=True,
    )

    submit_parser = categorize_subparsers.add_parser(
        "submit", help="Batch and submit pending transactions once"
    )
    submit_parser.set_defaults(func=cmd_submit)

    poll_parser = categorize_subparsers.add_parser(
        "poll", help="Poll in-flight batches once"
    )
    poll_parser.set_defaults(func=cmd_poll)

    run_parser = categorize_subparsers.add_parser(
        "run", help="Run submit and poll cycles continuously"
    )
    run_parser.set_defaults(func=cmd_run)
