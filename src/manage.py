"""DeliveryStream database management CLI.

The API and the background worker share one database in production; create
its schema once before starting either.

Usage:
    PROTEAN_ENV=production python src/manage.py setup-db   # Create all tables
    PROTEAN_ENV=production python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys


def _domain():
    from delivery.domain import delivery

    delivery.init()
    return delivery


def setup_database():
    from delivery.utils.db import setup_db

    prepared = setup_db(_domain())
    if not prepared:
        print("No relational database configured; nothing to create.")
    else:
        print(f"Schema ready on: {', '.join(prepared)}")


def drop_database():
    from delivery.utils.db import drop_db

    dropped = drop_db(_domain())
    if dropped:
        print(f"Schema dropped on: {', '.join(dropped)}")


def main():
    parser = argparse.ArgumentParser(description="DeliveryStream database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
