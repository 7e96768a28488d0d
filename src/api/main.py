"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.api.catalog_router import router as catalog_router, run_bounded
from src.database.store_factory import build_store
from src.exceptions import CatalogError
from src.search.engine import SearchEngine
from src.search.suggest import SuggestionEngine
from src.utils.catalog_config_loader import CatalogConfig, load_catalog_config

logger = logging.getLogger(__name__)


def create_app(store: Optional[Any] = None, cfg: Optional[CatalogConfig] = None) -> FastAPI:
    cfg = cfg or load_catalog_config()
    store = store if store is not None else build_store(cfg)

    app = FastAPI(
        title="MedFinder API",
        description="Find outlets near a point that stock a product, by name or synonym",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = cfg
    app.state.store = store
    app.state.search_engine = SearchEngine(store, default_limit=cfg.search.default_limit)
    app.state.suggestion_engine = SuggestionEngine(
        store,
        min_prefix_length=cfg.suggest.min_prefix_length,
        default_limit=cfg.suggest.default_limit,
    )

    app.include_router(catalog_router, prefix="/api")
    app.include_router(catalog_router)

    @app.get("/health")
    async def health(request: Request):
        state = request.app.state
        try:
            counts = await run_bounded(state.store.counts, timeout_s=state.config.search.request_timeout_s)
        except CatalogError as e:
            logger.warning("Health check could not read catalog: %s", e)
            return {"status": "degraded", "kind": e.kind}
        return {"status": "ok", "catalog": counts}

    return app


_config = load_catalog_config()
logging.basicConfig(level=_config.logging.level, format=_config.logging.format)

app = create_app(cfg=_config)
