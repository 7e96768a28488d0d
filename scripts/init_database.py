#!/usr/bin/env python3
"""
Create the catalog tables in Postgres: products, outlets, stock_links, plus the
PostGIS extension, the full-text GIN index and the GiST location index.

Uses DATABASE_URL environment variable. Does NOT drop existing tables.
"""

from __future__ import annotations
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

# Make sure src is on sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import inspect

from src.database.catalog_real import PostgresCatalogStore
from src.exceptions import StorageUnavailable
from src.utils.catalog_config_loader import load_catalog_config


def main() -> int:
    cfg = load_catalog_config()
    url = os.environ.get(cfg.database.url_env)
    if not url:
        print(f"{cfg.database.url_env} is not set", file=sys.stderr)
        return 1

    store = PostgresCatalogStore.from_config(url, cfg.database)
    try:
        store.ping()
        print("✅ Database connection OK")

        store.create_tables()
        tables = inspect(store.engine).get_table_names()
        print("✅ Catalog tables now exist:", sorted(tables))
        return 0

    except StorageUnavailable as e:
        print(f"❌ Failed to connect to database: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
