import pytest

from src.exceptions import ConflictError, IntegrityError, SourceSchemaError
from src.ingest import load_unit, run_ingestion
from src.search import SearchEngine
from src.utils.catalog_config_loader import PROJECT_ROOT, IngestionConfig, load_catalog_config

from conftest import CENTER, write_tsv

PRODUCT_HEADER = ["drug_id", "name", "synonym"]
OUTLET_HEADER = ["pharm_id", "name", "address", "lat", "lng"]
LINK_HEADER = ["pharm_id", "drug_id"]


def write_sources(tmp_path, products, outlets, links, outlet_header=OUTLET_HEADER):
    data = tmp_path / "data"
    data.mkdir(exist_ok=True)
    write_tsv(data / "drugs.csv", PRODUCT_HEADER, products)
    write_tsv(data / "pharmacies.csv", outlet_header, outlets)
    write_tsv(data / "pharmacy_drugs.csv", LINK_HEADER, links)
    return tmp_path


@pytest.fixture
def amox_dir(tmp_path):
    return write_sources(
        tmp_path,
        products=[(1, "amoxicillin", "amox|amoxil")],
        outlets=[(1, "A Pharmacy", "Addr", 6.688, -1.642)],
        links=[(1, 1)],
    )


def ids_near_center(store, query="amox"):
    return [r.outlet_id for r in SearchEngine(store).search(query, CENTER, 100_000)]


def test_loaded_catalog_is_searchable(store, amox_dir):
    report = run_ingestion(store, IngestionConfig(), amox_dir)
    assert report.store_counts == {"products": 1, "outlets": 1, "stock_links": 1}

    results = SearchEngine(store).search("amox", CENTER, 5000)
    assert [(r.outlet_id, r.distance_km, r.matched_product_names) for r in results] == [(1, 0.0, ["amoxicillin"])]


def test_outlet_with_non_numeric_latitude_is_skipped_with_its_links(store, tmp_path):
    write_sources(
        tmp_path,
        products=[(1, "amoxicillin", "amox")],
        outlets=[(1, "A Pharmacy", "Addr", 6.688, -1.642), (2, "Bad Pharmacy", "Addr", "six", -1.642)],
        links=[(1, 1), (2, 1)],
    )
    report = run_ingestion(store, IngestionConfig(), tmp_path)

    assert report.sources["outlets"].loaded == 1
    assert report.sources["outlets"].skipped == 1
    assert report.sources["stock_links"].reasons == {"unknown outlet id": 1}
    assert ids_near_center(store) == [1]
    assert ids_near_center(store, "amoxicillin") == [1]


def test_link_to_unknown_product_adds_one_skip(store, tmp_path):
    write_sources(
        tmp_path,
        products=[(1, "amoxicillin", "")],
        outlets=[(1, "A Pharmacy", "Addr", 6.688, -1.642)],
        links=[(1, 1), (1, 99)],
    )
    report = run_ingestion(store, IngestionConfig(), tmp_path)
    links = report.sources["stock_links"]
    assert (links.loaded, links.skipped) == (1, 1)
    assert links.reasons == {"unknown product id": 1}


def test_rerun_produces_the_same_catalog(store, amox_dir):
    first = run_ingestion(store, IngestionConfig(), amox_dir)
    before = ids_near_center(store)
    second = run_ingestion(store, IngestionConfig(), amox_dir)
    assert second.store_counts == first.store_counts
    assert ids_near_center(store) == before


def test_run_replaces_previous_contents(kumasi_store, amox_dir):
    run_ingestion(kumasi_store, IngestionConfig(), amox_dir)
    assert kumasi_store.counts() == {"products": 1, "outlets": 1, "stock_links": 1}
    assert kumasi_store.suggest_by_prefix("para", 10) == []


def test_missing_column_fails_before_touching_the_store(amox_store, tmp_path):
    write_sources(
        tmp_path,
        products=[(2, "paracetamol", "")],
        outlets=[(2, "B", "Addr", 6.6)],
        links=[(2, 2)],
        outlet_header=["pharm_id", "name", "address", "lat"],
    )
    with pytest.raises(SourceSchemaError):
        run_ingestion(amox_store, IngestionConfig(), tmp_path)

    assert amox_store.counts() == {"products": 1, "outlets": 1, "stock_links": 1}
    # no load was left open
    amox_store.load_begin()
    amox_store.load_rollback()


def test_longitude_header_variant(store, tmp_path):
    write_sources(
        tmp_path,
        products=[(1, "amoxicillin", "")],
        outlets=[(1, "A Pharmacy", "Addr", 6.688, -1.642)],
        links=[(1, 1)],
        outlet_header=["pharm_id", "name", "address", "latitude", "longitude"],
    )
    run_ingestion(store, IngestionConfig(), tmp_path)
    assert ids_near_center(store, "amoxicillin") == [1]


def test_duplicate_ids_keep_the_first_row(store, tmp_path):
    write_sources(
        tmp_path,
        products=[(1, "amoxicillin", ""), (1, "impostor", "")],
        outlets=[(1, "A Pharmacy", "Addr", 6.688, -1.642)],
        links=[(1, 1), (1, 1)],
    )
    report = run_ingestion(store, IngestionConfig(), tmp_path)
    assert report.sources["products"].reasons == {"duplicate products key 1": 1}
    assert report.sources["stock_links"].skipped == 1
    assert store.suggest_by_prefix("im", 10) == []
    assert store.suggest_by_prefix("am", 10) == ["amoxicillin"]


def test_concurrent_load_is_refused(amox_store, amox_dir):
    amox_store.load_begin()
    try:
        with pytest.raises(ConflictError):
            run_ingestion(amox_store, IngestionConfig(), amox_dir)
    finally:
        amox_store.load_rollback()


def test_store_error_mid_load_rolls_back(kumasi_store, amox_dir, monkeypatch):
    before = kumasi_store.counts()

    def refuse(outlet_id, product_id):
        raise IntegrityError("boom")

    monkeypatch.setattr(kumasi_store, "insert_stock_link", refuse)
    with pytest.raises(IntegrityError):
        run_ingestion(kumasi_store, IngestionConfig(), amox_dir)

    assert kumasi_store.counts() == before
    assert kumasi_store.suggest_by_prefix("para", 10) == ["Paracetamol"]


def test_load_unit_commits_and_rolls_back(store):
    with load_unit(store):
        store.insert_product(1, "amoxicillin", [])
    assert store.counts()["products"] == 1

    with pytest.raises(RuntimeError):
        with load_unit(store):
            store.clear_all()
            raise RuntimeError("stop")
    assert store.counts()["products"] == 1


def test_report_summary(store, amox_dir):
    report = run_ingestion(store, IngestionConfig(), amox_dir)
    lines = report.summary_lines()
    assert lines[0] == "products: loaded 1, skipped 0"
    assert "store now holds 1 products, 1 outlets, 1 stock links" in lines
    assert report.to_dict()["most_stocked"] == [["amoxicillin", 1]]


def test_bundled_sample_data_loads_cleanly(store):
    cfg = load_catalog_config()
    report = run_ingestion(store, cfg.ingestion, PROJECT_ROOT)
    assert report.store_counts == {"products": 6, "outlets": 5, "stock_links": 13}
    assert all(c.skipped == 0 for c in report.sources.values())
    assert report.most_stocked[0] == ("Paracetamol", 4)
