"""Storefront ordering database management CLI.

Creates and drops the database schema for the ordering domain, using the
provider configured for the current PROTEAN_ENV.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
    python src/manage.py seed-demo  # Create demo products and addresses
"""

import argparse
import sys


def setup_database():
    """Create the ordering schema."""
    from ordering.domain import ordering
    from ordering.utils.db import setup_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Creating ordering database schema...")
    setup_db(ordering)
    print("  ordering schema ready.")
    print("Done.")


def drop_database():
    """Drop the ordering schema."""
    from ordering.domain import ordering
    from ordering.utils.db import drop_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Dropping ordering database schema...")
    drop_db(ordering)
    print("  ordering schema dropped.")
    print("Done.")


def seed_demo(customers):
    """Seed demo products and addresses."""
    from ordering.domain import ordering
    from ordering.utils.seed import seed_demo_data

    print("Initializing ordering domain...")
    ordering.init()
    created = seed_demo_data(ordering, customers=customers)
    print(f"  created {created['products']} products and {created['addresses']} addresses.")
    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Storefront ordering database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    seed_parser = subparsers.add_parser("seed-demo", help="Create demo products and customer addresses")
    seed_parser.add_argument("--customers", type=int, default=100, help="Number of demo customers (default: 100)")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "seed-demo":
        seed_demo(args.customers)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
