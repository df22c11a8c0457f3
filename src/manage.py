"""Stock ledger database management CLI.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys


def setup_database():
    from inventory.domain import inventory
    from inventory.utils.db import setup_db

    print("Initializing inventory domain...")
    inventory.init()
    providers = setup_db(inventory)
    if providers:
        print(f"  Schema ready on: {', '.join(providers)}")
    else:
        print("  No relational provider configured; nothing to create.")


def drop_database():
    from inventory.domain import inventory
    from inventory.utils.db import drop_db

    print("Initializing inventory domain...")
    inventory.init()
    providers = drop_db(inventory)
    if providers:
        print(f"  Schema dropped on: {', '.join(providers)}")
    else:
        print("  No relational provider configured; nothing to drop.")


def main():
    parser = argparse.ArgumentParser(description="Stock ledger database management")
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
