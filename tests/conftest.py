"""Pytest fixtures for catalog, search and ingestion tests."""

import pytest

from src.database.catalog import CatalogStore
from src.search.geo import GeoPoint

CENTER = GeoPoint(6.688, -1.642)


def load(store, products=(), outlets=(), links=()):
    """Load rows straight into a store as one committed unit."""
    store.load_begin()
    store.clear_all()
    for pid, name, synonyms in products:
        store.insert_product(pid, name, synonyms)
    for oid, name, address, lat, lng in outlets:
        store.insert_outlet(oid, name, address, GeoPoint(lat, lng))
    for oid, pid in links:
        store.insert_stock_link(oid, pid)
    store.load_commit()
    return store


def write_tsv(path, header, rows):
    lines = ["\t".join(header)] + ["\t".join(str(c) for c in row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def store():
    """Empty in-memory CatalogStore."""
    return CatalogStore()


@pytest.fixture
def amox_store(store):
    """One product, one outlet at CENTER, one link."""
    return load(
        store,
        products=[(1, "amoxicillin", ["amox", "amoxil"])],
        outlets=[(1, "A Pharmacy", "Addr", 6.688, -1.642)],
        links=[(1, 1)],
    )


@pytest.fixture
def kumasi_store(store):
    """A handful of outlets around CENTER with overlapping stock."""
    return load(
        store,
        products=[
            (1, "Amoxicillin", ["amox", "amoxil"]),
            (2, "Paracetamol", ["acetaminophen", "panadol"]),
            (3, "Amoxicillin Clavulanate", ["augmentin", "co-amoxiclav"]),
            (4, "Ibuprofen Tablets", ["advil"]),
            (5, "Amlodipine", []),
        ],
        outlets=[
            (10, "Centre Pharmacy", "Adum", 6.688, -1.642),
            (11, "East Chemists", "Asafo", 6.688, -1.632),
            (12, "North Drug Store", "Suame", 6.708, -1.642),
            (13, "Far Pharmacy", "Obuasi", 6.2, -1.67),
            (14, "Twin A", "Bantama", 6.698, -1.642),
            (15, "Twin B", "Bantama", 6.698, -1.642),
        ],
        links=[
            (10, 1), (10, 3), (10, 2),
            (11, 2),
            (12, 1), (12, 4),
            (13, 1),
            (14, 1), (15, 3),
        ],
    )
