"""Ordering database management CLI.

Provides commands to create and drop the ordering schema and to load
products into the catalog table for local development.

Usage:
    python src/manage.py setup-db                 # Create all tables
    python src/manage.py drop-db                  # Drop all tables
    python src/manage.py seed-products data.json  # Load products from a JSON array
"""

import argparse
import json
import sys
from pathlib import Path

from ordering.catalogue.product import Product
from ordering.config import Settings
from ordering.domain import OrderingDomain
from ordering.utils.logging import configure_logging


def setup_database(ordering: OrderingDomain) -> None:
    print(f"Creating ordering schema on {ordering.database.url.render_as_string(hide_password=True)}...")
    ordering.setup_db()
    print("Done.")


def drop_database(ordering: OrderingDomain) -> None:
    print("Dropping ordering schema...")
    ordering.database.drop_all()
    print("Done.")


def seed_products(ordering: OrderingDomain, path: Path) -> int:
    """Load a JSON array of products; returns how many were inserted."""
    records = json.loads(path.read_text(encoding="utf-8"))
    products = [Product.model_validate(record) for record in records]
    ordering.catalog.add_products(products)
    print(f"Loaded {len(products)} products.")
    return len(products)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Ordering database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    seed_parser = subparsers.add_parser("seed-products", help="Load products from a JSON file")
    seed_parser.add_argument("path", type=Path, help="JSON file holding an array of products")

    args = parser.parse_args(argv)

    settings = Settings.from_env()
    configure_logging(settings.environment)
    ordering = OrderingDomain(settings)

    try:
        if args.command == "setup-db":
            setup_database(ordering)
        elif args.command == "drop-db":
            drop_database(ordering)
        elif args.command == "seed-products":
            seed_products(ordering, args.path)
    finally:
        ordering.shutdown()


if __name__ == "__main__":
    sys.exit(main())
