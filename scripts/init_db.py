"""
Create tables and (optionally) seed a demo shop.

Usage:
  python scripts/init_db.py                      # create missing tables
  python scripts/init_db.py --demo-shop shop-1   # also seed demo customers/loans

Environment:
  DATABASE_URL (defaults to sqlite:///shopdesk.db)
"""

from __future__ import annotations

import argparse
import os
import sys
from datetime import timedelta
from pathlib import Path

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.shopdesk.db import make_engine  # noqa: E402
from app.shopdesk.models import Base  # noqa: E402
from app.shopdesk.modules.customer_loans.service import LOANS_COLLECTION  # noqa: E402
from app.shopdesk.modules.customers.service import create_customer, list_customers  # noqa: E402
from app.shopdesk.store import SqlDocumentStore  # noqa: E402
from app.shopdesk.utils import utcnow  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402

DEMO_CUSTOMERS = (
    {"name": "Amal Perera", "phone": "0771234567", "email": "amal@example.com", "city": "Colombo"},
    {"name": "Nimali Silva", "phone": "0719876543", "email": "nimali@example.com", "city": "Kandy"},
    {"name": "Kasun Fernando", "phone": "0701112233", "city": "Galle", "notes": "Pays on Fridays"},
)

DEMO_LOANS = (
    ("Amal Perera", "1500.00", "TX-1001"),
    ("amal perera", "250", "TX-1007"),
    ("Nimali Silva", "980.50", None),
)


def _db_url(database_url: str | None) -> str:
    return (database_url or os.environ.get("DATABASE_URL") or "sqlite:///shopdesk.db").strip()


def create_tables(*, database_url: str | None = None) -> None:
    engine = make_engine(_db_url(database_url))
    try:
        Base.metadata.create_all(bind=engine)
    finally:
        engine.dispose()


def seed_demo(shop_id: str, *, database_url: str | None = None) -> int:
    """
    Seed demo customers and loans for `shop_id`. Skips shops that already
    have customers. Returns the number of customers created.
    """
    with script_session(_db_url(database_url)) as s:
        store = SqlDocumentStore(session=s)
        if list_customers(store, shop_id):
            print(f"Shop {shop_id} already has customers; skipping demo seed.", flush=True)
            return 0
        for payload in DEMO_CUSTOMERS:
            create_customer(store, payload, shop_id=shop_id)
        now = utcnow()
        for i, (name, amount, tx) in enumerate(DEMO_LOANS):
            store.add(
                LOANS_COLLECTION,
                {
                    "shopId": shop_id,
                    "customerName": name,
                    "amount": amount,
                    "timestamp": now - timedelta(days=i + 1),
                    "transactionId": tx,
                    "receiptId": None if tx else f"RC-{i + 1:04d}",
                },
            )
    return len(DEMO_CUSTOMERS)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--demo-shop", help="Seed demo customers and loans for this shop id")
    parser.add_argument("--database-url", help="Overrides DATABASE_URL")
    args = parser.parse_args()

    create_tables(database_url=args.database_url)
    print("Tables ready.", flush=True)
    if args.demo_shop:
        n = seed_demo(args.demo_shop, database_url=args.database_url)
        print(f"Seeded {n} demo customers for shop {args.demo_shop}.", flush=True)


if __name__ == "__main__":
    main()
