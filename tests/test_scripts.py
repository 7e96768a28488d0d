"""Operator scripts: exit codes and config wiring, without a database."""

import importlib.util

import pytest
from sqlalchemy import exc as sa_exc

from src.exceptions import (
    ConflictError,
    IntegrityError,
    SourceSchemaError,
    StorageError,
    StorageUnavailable,
)
from src.utils.catalog_config_loader import PROJECT_ROOT


def load_script(name):
    path = PROJECT_ROOT / "scripts" / f"{name}.py"
    module_spec = importlib.util.spec_from_file_location(f"scripts_{name}", path)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


class DummyStore:
    pass


@pytest.fixture
def ingestion_script(monkeypatch):
    script = load_script("run_ingestion")
    monkeypatch.setenv("DATABASE_URL", "postgresql://medfinder@localhost/medfinder")
    monkeypatch.setattr(script.PostgresCatalogStore, "from_config", classmethod(lambda cls, url, cfg: DummyStore()))
    monkeypatch.setattr("sys.argv", ["run_ingestion.py"])
    return script


def fail_with(exc):
    def run(*args, **kwargs):
        raise exc

    return run


@pytest.mark.parametrize(
    "exc,code",
    [
        (SourceSchemaError("missing column"), 1),
        (StorageUnavailable("down"), 2),
        (IntegrityError("duplicate"), 3),
        (ConflictError("busy"), 4),
        (StorageError("relation \"products\" does not exist"), 5),
        (sa_exc.ProgrammingError("SELECT 1", {}, Exception("relation does not exist")), 6),
        (RuntimeError("boom"), 6),
    ],
)
def test_ingestion_exit_codes(ingestion_script, monkeypatch, exc, code):
    monkeypatch.setattr(ingestion_script, "run_ingestion", fail_with(exc))
    assert ingestion_script.main() == code


def test_ingestion_exit_codes_are_distinct(ingestion_script):
    codes = [
        ingestion_script.EXIT_OK,
        ingestion_script.EXIT_SOURCE,
        ingestion_script.EXIT_STORAGE,
        ingestion_script.EXIT_INTEGRITY,
        ingestion_script.EXIT_CONFLICT,
        ingestion_script.EXIT_DATABASE,
        ingestion_script.EXIT_UNEXPECTED,
    ]
    assert len(set(codes)) == len(codes)


def test_ingestion_without_database_url(ingestion_script, monkeypatch):
    monkeypatch.delenv("DATABASE_URL")
    assert ingestion_script.main() == ingestion_script.EXIT_SOURCE


def test_suggest_uses_configured_default_limit(kumasi_store, tmp_path, monkeypatch, capsys):
    script = load_script("run_search")
    config = tmp_path / "catalog_config.yml"
    config.write_text("suggest:\n  default_limit: 1\n", encoding="utf-8")
    monkeypatch.setattr(script, "build_store", lambda cfg: kumasi_store)
    monkeypatch.setattr("sys.argv", ["run_search.py", "am", "--suggest", "--config", str(config)])

    assert script.main() == 0
    assert capsys.readouterr().out.splitlines() == ["Amlodipine"]
