"""
Catalog configuration loader (database pool, search, suggest, ingestion sources, logging).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)


class DatabaseConfig(BaseModel):
    url_env: str = "DATABASE_URL"
    pool_size: int = Field(default=5, ge=1, le=100)
    max_overflow: int = Field(default=10, ge=0, le=100)
    pool_timeout_s: float = Field(default=3.0, gt=0)
    statement_timeout_ms: int = Field(default=5000, ge=100)


class SearchConfig(BaseModel):
    default_limit: int = Field(default=50, ge=1, le=1000)
    request_timeout_s: float = Field(default=10.0, gt=0)


class SuggestConfig(BaseModel):
    min_prefix_length: int = Field(default=2, ge=1)
    default_limit: int = Field(default=10, ge=1, le=100)


class SourceConfig(BaseModel):
    file: str
    delimiter: str = Field(default="\t", min_length=1, max_length=1)
    # canonical field -> accepted header names, tried in order
    columns: Dict[str, List[str]] = Field(default_factory=dict)


def _default_sources() -> Dict[str, SourceConfig]:
    return {
        "products": SourceConfig(
            file="drugs.csv",
            columns={"id": ["drug_id", "id"], "name": ["name"], "synonyms": ["synonym", "synonyms"]},
        ),
        "outlets": SourceConfig(
            file="pharmacies.csv",
            columns={
                "id": ["pharm_id", "id"],
                "name": ["name"],
                "address": ["address"],
                "latitude": ["lat", "latitude"],
                "longitude": ["lng", "lon", "long", "longitude"],
                "region": ["region"],
            },
        ),
        "stock_links": SourceConfig(
            file="pharmacy_drugs.csv",
            columns={"outlet_id": ["pharm_id", "pharmacy_id", "outlet_id"], "product_id": ["drug_id", "product_id"]},
        ),
    }


class IngestionConfig(BaseModel):
    data_dir: str = "data"
    top_products: int = Field(default=5, ge=0, le=100)
    sources: Dict[str, SourceConfig] = Field(default_factory=_default_sources)

    def source_path(self, name: str, base_dir: Optional[Path] = None) -> Path:
        data_dir = Path(self.data_dir)
        if not data_dir.is_absolute() and base_dir is not None:
            data_dir = base_dir / data_dir
        return data_dir / self.sources[name].file


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class CatalogConfig(BaseModel):
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    suggest: SuggestConfig = Field(default_factory=SuggestConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def _storage_fits_request_budget(self) -> "CatalogConfig":
        # A worker abandoned by a request timeout must still finish within that timeout.
        storage_s = self.database.pool_timeout_s + self.database.statement_timeout_ms / 1000
        if storage_s > self.search.request_timeout_s:
            raise ValueError(
                f"database.pool_timeout_s + statement_timeout_ms ({storage_s:g}s) "
                f"exceeds search.request_timeout_s ({self.search.request_timeout_s:g}s)"
            )
        return self


PROJECT_ROOT = Path(__file__).parent.parent.parent


def load_catalog_config(config_path: Optional[Path] = None) -> CatalogConfig:
    if config_path is None:
        config_path = PROJECT_ROOT / "config" / "catalog_config.yml"

    if not config_path.exists():
        raise FileNotFoundError(f"Catalog config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    try:
        cfg = CatalogConfig(**data)
        logger.info("Successfully loaded catalog config from %s", config_path)
        return cfg
    except ValidationError as e:
        logger.error("Catalog config validation failed: %s", e)
        raise
