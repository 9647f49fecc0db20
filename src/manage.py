"""Jamaa Market management CLI.

Creates and drops database schemas for all domains, and runs the periodic
maintenance jobs (transfer retries, checkout expiry) that a scheduler calls.

Usage:
    python src/manage.py setup-db          # Create all tables
    python src/manage.py drop-db           # Drop all tables
    python src/manage.py retry-transfers   # Retry failed store transfers that are due
    python src/manage.py expire-checkouts  # Expire stale checkout attempts
"""

import argparse
import sys

from shared.db import drop_db, setup_db

DOMAIN_NAMES = ["ordering", "settlement"]


def _domains():
    from ordering.domain import ordering
    from settlement.domain import settlement

    return {
        "ordering": ordering,
        "settlement": settlement,
    }


def setup_databases(domains=None):
    """Create database schemas for the specified (or all) domains."""
    all_domains = _domains()
    targets = {d: all_domains[d] for d in domains} if domains else all_domains

    for name, domain in targets.items():
        print(f"Initializing {name} domain...")
        domain.init()
        print(f"Creating {name} database schema...")
        setup_db(domain)
        print(f"  {name} schema ready.")

    print("Done.")


def drop_databases(domains=None):
    """Drop database schemas for the specified (or all) domains."""
    all_domains = _domains()
    targets = {d: all_domains[d] for d in domains} if domains else all_domains

    for name, domain in targets.items():
        print(f"Initializing {name} domain...")
        domain.init()
        print(f"Dropping {name} database schema...")
        drop_db(domain)
        print(f"  {name} schema dropped.")

    print("Done.")


def retry_transfers():
    """Re-attempt failed store transfers whose backoff has elapsed."""
    from settlement.domain import settlement
    from settlement.payout.settling import RetryFailedTransfers

    settlement.init()
    with settlement.domain_context():
        outcomes = settlement.process(RetryFailedTransfers(reason="scheduled"), asynchronous=False)

    for settlement_id, outcome in sorted((outcomes or {}).items()):
        print(f"  {settlement_id}: {outcome}")
    print(f"Retried {len(outcomes or {})} transfer(s).")


def expire_checkouts():
    """Move checkout attempts past their payment window to Expired."""
    from ordering.checkout.confirmation import ExpireCheckouts
    from ordering.domain import ordering

    ordering.init()
    with ordering.domain_context():
        count = ordering.process(ExpireCheckouts(reason="scheduled"), asynchronous=False)

    print(f"Expired {count} checkout(s).")


def main():
    from ordering.utils.logging import configure_logging

    configure_logging()

    parser = argparse.ArgumentParser(description="Jamaa Market management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    setup_parser = subparsers.add_parser("setup-db", help="Create all database tables")
    setup_parser.add_argument(
        "--domain",
        choices=DOMAIN_NAMES,
        nargs="*",
        help="Specific domain(s) to set up (default: all)",
    )

    drop_parser = subparsers.add_parser("drop-db", help="Drop all database tables")
    drop_parser.add_argument(
        "--domain",
        choices=DOMAIN_NAMES,
        nargs="*",
        help="Specific domain(s) to drop (default: all)",
    )

    subparsers.add_parser("retry-transfers", help="Retry failed store transfers that are due")
    subparsers.add_parser("expire-checkouts", help="Expire checkout attempts past their payment window")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases(args.domain)
    elif args.command == "drop-db":
        drop_databases(args.domain)
    elif args.command == "retry-transfers":
        retry_transfers()
    elif args.command == "expire-checkouts":
        expire_checkouts()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
