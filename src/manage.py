"""FoodHub database management CLI.

Creates and drops the database schemas of the ordering and order cycle
domains. Set PROTEAN_ENV=production to target the PostgreSQL databases.

Usage:
    python src/manage.py setup-db                         # Create all tables
    python src/manage.py drop-db --domain order_cycles    # Drop one domain's tables
"""

import argparse
import sys

import structlog

from shared.db import drop_db, setup_db
from shared.logging import configure_logging

logger = structlog.get_logger(__name__)

DOMAIN_NAMES = ("ordering", "order_cycles")


def _domains():
    from order_cycles.domain import order_cycles
    from ordering.domain import ordering

    return {"ordering": ordering, "order_cycles": order_cycles}


def run(action, domains=None):
    """Run ``setup_db`` or ``drop_db`` for the named (or all) domains."""
    all_domains = _domains()
    targets = {d: all_domains[d] for d in domains} if domains else all_domains

    for name, domain in targets.items():
        domain.init()
        handled = action(domain)
        if handled:
            logger.info("Schema updated", domain=name, action=action.__name__, providers=handled)
        else:
            logger.info("No relational providers configured", domain=name)


def main(argv=None):
    parser = argparse.ArgumentParser(description="FoodHub database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for command, help_text in (("setup-db", "Create all database tables"), ("drop-db", "Drop all database tables")):
        subparser = subparsers.add_parser(command, help=help_text)
        subparser.add_argument(
            "--domain",
            choices=DOMAIN_NAMES,
            nargs="*",
            help="Specific domain(s) to target (default: all)",
        )

    args = parser.parse_args(argv)
    configure_logging(log_dir=None)

    if args.command == "setup-db":
        run(setup_db, args.domain)
    elif args.command == "drop-db":
        run(drop_db, args.domain)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
