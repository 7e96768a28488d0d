#!/usr/bin/env python3
"""
Query the catalog from the terminal:
- search: outlets within a radius that stock a matching product
- --suggest: autocomplete product names for a prefix

Uses DATABASE_URL when set, otherwise the in-memory store seeded from data/.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from src.database.store_factory import build_store
from src.exceptions import CatalogError
from src.search import GeoPoint, SearchEngine, SuggestionEngine
from src.utils.catalog_config_loader import load_catalog_config


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def main() -> int:
    parser = argparse.ArgumentParser(description="Search the outlet catalog.")
    parser.add_argument("medicine", type=str, help="Product name (or prefix with --suggest)")
    parser.add_argument("lat", type=float, nargs="?", default=None)
    parser.add_argument("lng", type=float, nargs="?", default=None)
    parser.add_argument("--radius", type=float, default=5.0, help="Radius in km (default 5)")
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument("--suggest", action="store_true", help="Autocomplete instead of search")
    parser.add_argument("--config", type=Path, default=None, help="Path to catalog_config.yml")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    if not args.suggest and (args.lat is None or args.lng is None):
        parser.error("lat and lng are required for a search, e.g.:\n  python scripts/run_search.py amox 6.688 -1.642 --radius 5")

    setup_logging(args.verbose)
    cfg = load_catalog_config(args.config)
    store = build_store(cfg)

    try:
        if args.suggest:
            engine = SuggestionEngine(
                store,
                min_prefix_length=cfg.suggest.min_prefix_length,
                default_limit=cfg.suggest.default_limit,
            )
            for name in engine.suggest(args.medicine, args.limit):
                print(name)
            return 0

        engine = SearchEngine(store, default_limit=cfg.search.default_limit)
        results = engine.search(args.medicine, GeoPoint.parse(args.lat, args.lng), args.radius * 1000, args.limit)
    except CatalogError as e:
        print(f"[{e.kind}] {e}", file=sys.stderr)
        return 1

    if not results:
        print(f"No outlets within {args.radius:g} km stock '{args.medicine}'.")
        return 0
    for i, r in enumerate(results, start=1):
        print(f"[{i}] {r.distance_km:.2f} km  #{r.outlet_id} {r.name}")
        if r.address:
            print(f"    {r.address}")
        print(f"    matched: {', '.join(r.matched_product_names)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
