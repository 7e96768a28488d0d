"""
Catalog store selection. The choice between the Postgres store and the
in-memory stand-in happens here only.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from src.exceptions import CatalogError
from src.utils.catalog_config_loader import PROJECT_ROOT, CatalogConfig

logger = logging.getLogger(__name__)


def build_store(cfg: CatalogConfig) -> Any:
    """
    Use the Postgres/PostGIS store when the configured DATABASE_URL is set,
    else the in-memory store seeded from the configured source files.
    """
    url = os.getenv(cfg.database.url_env)
    if url:
        from src.database.catalog_real import PostgresCatalogStore

        logger.info("Using Postgres catalog store")
        return PostgresCatalogStore.from_config(url, cfg.database)

    from src.database.catalog import CatalogStore
    from src.ingest.pipeline import run_ingestion

    store = CatalogStore(
        max_readers=cfg.database.pool_size + cfg.database.max_overflow,
        checkout_timeout_s=cfg.database.pool_timeout_s,
    )
    paths = [cfg.ingestion.source_path(name, PROJECT_ROOT) for name in ("products", "outlets", "stock_links")]
    missing = [str(p) for p in paths if not p.exists()]
    if missing:
        logger.warning("In-memory catalog store starts empty; missing source files: %s", ", ".join(missing))
        return store
    try:
        run_ingestion(store, cfg.ingestion, PROJECT_ROOT)
    except CatalogError as e:
        logger.warning("Failed to seed in-memory catalog store: %s", e)
    return store
