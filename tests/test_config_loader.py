import pytest
from pydantic import ValidationError

from src.utils.catalog_config_loader import PROJECT_ROOT, CatalogConfig, DatabaseConfig, SearchConfig, load_catalog_config


def test_repo_config_loads():
    cfg = load_catalog_config()
    assert cfg.database.url_env == "DATABASE_URL"
    assert cfg.suggest.min_prefix_length == 2
    assert cfg.ingestion.sources["outlets"].columns["longitude"][0] == "lng"
    assert cfg.ingestion.sources["products"].delimiter == "\t"


def test_defaults_match_repo_config():
    assert load_catalog_config() == CatalogConfig()


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_catalog_config(tmp_path / "missing.yml")


def test_invalid_value(tmp_path):
    path = tmp_path / "catalog_config.yml"
    path.write_text("database:\n  pool_size: 0\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_catalog_config(path)


def test_empty_file_uses_defaults(tmp_path):
    path = tmp_path / "catalog_config.yml"
    path.write_text("", encoding="utf-8")
    assert load_catalog_config(path) == CatalogConfig()


def test_source_paths_resolve_against_base_dir():
    ingestion = CatalogConfig().ingestion
    assert ingestion.source_path("products", PROJECT_ROOT) == PROJECT_ROOT / "data" / "drugs.csv"


def test_storage_budget_must_fit_the_request_timeout():
    with pytest.raises(ValidationError, match="request_timeout_s"):
        CatalogConfig(
            database=DatabaseConfig(pool_timeout_s=8, statement_timeout_ms=5000),
            search=SearchConfig(request_timeout_s=10),
        )
    ok = CatalogConfig(
        database=DatabaseConfig(pool_timeout_s=5, statement_timeout_ms=5000),
        search=SearchConfig(request_timeout_s=10),
    )
    assert ok.database.pool_timeout_s == 5


def test_repo_config_fits_the_request_timeout():
    cfg = load_catalog_config()
    db = cfg.database
    assert db.pool_timeout_s + db.statement_timeout_ms / 1000 <= cfg.search.request_timeout_s


def test_storage_budget_checked_when_loading_yaml(tmp_path):
    path = tmp_path / "catalog_config.yml"
    path.write_text("database:\n  pool_timeout_s: 30\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_catalog_config(path)
