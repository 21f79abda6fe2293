"""Checkout database management CLI.

Usage:
    python src/manage.py setup-db                       # Create all tables
    python src/manage.py drop-db                        # Drop all tables
    python src/manage.py load-postal-codes codes.csv    # Import serviceable PIN codes

The postal code CSV needs a header row with ``postal_code``, ``city`` and
``state``; ``country``, ``shipping_method``, ``delivery_days`` and
``is_serviceable`` are optional.
"""

import argparse
import csv
import sys


def setup_database():
    from checkout.domain import checkout
    from checkout.utils.db import setup_db

    print("Initializing checkout domain...")
    checkout.init()
    print("Creating checkout database schema...")
    setup_db(checkout)
    print("Done.")


def drop_database():
    from checkout.domain import checkout
    from checkout.utils.db import drop_db

    print("Initializing checkout domain...")
    checkout.init()
    print("Dropping checkout database schema...")
    drop_db(checkout)
    print("Done.")


def _truthy(value) -> bool:
    return str(value).strip().lower() not in ("0", "false", "no", "n")


def load_postal_codes(path) -> int:
    """Upsert every row of ``path`` into the postal code table. Returns the row count."""
    from protean.exceptions import ObjectNotFoundError
    from protean.utils.globals import current_domain

    from checkout.location.postal_code import DEFAULT_SHIPPING_METHOD, PostalCodeEntry
    from checkout.validation.fields import validate_postal_code

    repo = current_domain.repository_for(PostalCodeEntry)
    loaded = 0
    with open(path, newline="", encoding="utf-8") as handle:
        for line_number, row in enumerate(csv.DictReader(handle), start=2):
            shape = validate_postal_code(row.get("postal_code", ""))
            if not shape.is_valid:
                print(f"  line {line_number}: skipped, {shape.error}")
                continue

            delivery_days = (row.get("delivery_days") or "").strip()
            values = {
                "city": row["city"].strip(),
                "state": row["state"].strip(),
                "country": (row.get("country") or "India").strip(),
                "shipping_method": (row.get("shipping_method") or DEFAULT_SHIPPING_METHOD).strip(),
                "delivery_days": int(delivery_days) if delivery_days else None,
                "is_serviceable": _truthy(row.get("is_serviceable") or "true"),
            }

            try:
                entry = repo.get(shape.value)
            except ObjectNotFoundError:
                entry = PostalCodeEntry(postal_code=shape.value, **values)
            else:
                for name, value in values.items():
                    setattr(entry, name, value)
            repo.add(entry)
            loaded += 1
    return loaded


def main():
    parser = argparse.ArgumentParser(description="Checkout database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    load_parser = subparsers.add_parser("load-postal-codes", help="Import serviceable postal codes from CSV")
    load_parser.add_argument("path", help="CSV file to import")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "load-postal-codes":
        from checkout.domain import checkout

        checkout.init()
        with checkout.domain_context():
            count = load_postal_codes(args.path)
        print(f"Loaded {count} postal codes.")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
