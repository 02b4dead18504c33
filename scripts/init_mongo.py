#!/usr/bin/env python3
"""
Initialize MongoDB indexes for Tugrik.

Creates:
- Unique _oid index on every collection named on the command line
  (and on every existing collection when none are named)
- Unique (owner, owned, path) index on the pointer ledger

Run this script after starting MongoDB:
    python scripts/init_mongo.py --database app Person Address
"""

import argparse
import os
import sys
import time

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from tugrik.core.config import configure, settings
from tugrik.core.errors import StoreConnectionError
from tugrik.core.types import LEDGER_COLLECTION
from tugrik.storage.mongo import MongoDocumentStore


def wait_for_mongo(store: MongoDocumentStore, max_retries: int = 30) -> bool:
    """Wait for MongoDB to be ready."""
    print(f"Connecting to MongoDB at {store.dsn}...")

    for attempt in range(max_retries):
        try:
            store.client
            print("✅ MongoDB is ready!")
            return True
        except StoreConnectionError:
            print(f"⏳ Waiting for MongoDB... (attempt {attempt + 1}/{max_retries})")
            time.sleep(2)

    return False


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Create Tugrik indexes in MongoDB")
    parser.add_argument("--database", default=settings.database, help="Database name")
    parser.add_argument("--dsn", default=settings.dsn or "mongodb://localhost:27017", help="Connection string")
    parser.add_argument("collections", nargs="*", help="Composite collections to index")
    args = parser.parse_args()

    if not args.database:
        print("❌ No database given (--database or TUGRIK_DATABASE)")
        sys.exit(1)

    config = configure(args.database, dsn=args.dsn)
    store = MongoDocumentStore(config.dsn, config.database, timeout_ms=config.connect_timeout_ms)

    print("=" * 50)
    print("Tugrik - MongoDB Initialization")
    print("=" * 50)

    if not wait_for_mongo(store):
        print("❌ Failed to connect to MongoDB")
        sys.exit(1)

    try:
        collections = args.collections or [
            name for name in store.list_collections() if name != LEDGER_COLLECTION
        ]
        print(f"\n📊 Creating indexes for: {', '.join(collections) or '(ledger only)'}")
        store.ensure_indexes(collections)
        print("\n✅ Index initialization complete!")
    finally:
        store.close()


if __name__ == "__main__":
    main()
