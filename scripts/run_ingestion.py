#!/usr/bin/env python3
"""
Load drugs.csv, pharmacies.csv and pharmacy_drugs.csv into the catalog.

Clears and repopulates the whole catalog in one transaction; on failure the
previous catalog is left untouched. Exit codes:
  0 success
  1 bad config or source file (missing column, unreadable file)
  2 database unavailable
  3 integrity violation while loading
  4 another load is already running
  5 database rejected a statement (e.g. tables missing: run init_database.py)
  6 unexpected error
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from src.database.catalog_real import PostgresCatalogStore
from src.exceptions import ConflictError, IntegrityError, SourceSchemaError, StorageError, StorageUnavailable
from src.ingest.pipeline import run_ingestion
from src.utils.catalog_config_loader import PROJECT_ROOT, load_catalog_config

EXIT_OK = 0
EXIT_SOURCE = 1
EXIT_STORAGE = 2
EXIT_INTEGRITY = 3
EXIT_CONFLICT = 4
EXIT_DATABASE = 5
EXIT_UNEXPECTED = 6

logger = logging.getLogger("run_ingestion")


def main() -> int:
    parser = argparse.ArgumentParser(description="Load the product/outlet catalog from tabular files.")
    parser.add_argument("--config", type=Path, default=None, help="Path to catalog_config.yml")
    parser.add_argument("--data-dir", type=Path, default=None, help="Override ingestion.data_dir")
    parser.add_argument("--products", type=Path, default=None, help="Products file (overrides config)")
    parser.add_argument("--outlets", type=Path, default=None, help="Outlets file (overrides config)")
    parser.add_argument("--links", type=Path, default=None, help="Stock links file (overrides config)")
    parser.add_argument("--json", action="store_true", help="Print the load report as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every skipped row")
    args = parser.parse_args()

    cfg = load_catalog_config(args.config)
    logging.basicConfig(level=logging.DEBUG if args.verbose else cfg.logging.level, format=cfg.logging.format)

    if args.data_dir is not None:
        cfg.ingestion.data_dir = str(args.data_dir)

    url = os.environ.get(cfg.database.url_env)
    if not url:
        print(f"{cfg.database.url_env} is not set", file=sys.stderr)
        return EXIT_SOURCE

    overrides = {
        name: path
        for name, path in (("products", args.products), ("outlets", args.outlets), ("stock_links", args.links))
        if path is not None
    }
    store = PostgresCatalogStore.from_config(url, cfg.database)

    try:
        report = run_ingestion(store, cfg.ingestion, PROJECT_ROOT, **overrides)
    except SourceSchemaError as e:
        logger.error("Source error: %s", e)
        return EXIT_SOURCE
    except StorageUnavailable as e:
        logger.error("Database unavailable, nothing loaded: %s", e)
        return EXIT_STORAGE
    except IntegrityError as e:
        logger.error("Integrity violation, load rolled back: %s", e)
        return EXIT_INTEGRITY
    except ConflictError as e:
        logger.error("%s", e)
        return EXIT_CONFLICT
    except StorageError as e:
        logger.error("Database error, load rolled back: %s", e)
        return EXIT_DATABASE
    except Exception:
        logger.exception("Unexpected error, load rolled back")
        return EXIT_UNEXPECTED

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print("\n".join(report.summary_lines()))
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
