"""
In-memory CatalogStore for local development and tests.

Implements the same interface as src.database.catalog_real (Postgres/PostGIS):
snapshot isolation for readers, one load at a time, bounded reader checkout.
It is NOT intended for production use.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Set, Tuple

from src.exceptions import ConflictError, IntegrityError, LoadStateError, StorageUnavailable
from src.search.geo import GeoPoint, geodesic_distance_m
from src.search.results import OutletHit, SearchResult, group_and_rank
from src.search.text_match import index_terms, matches, query_terms

logger = logging.getLogger(__name__)


@dataclass
class Product:
    id: int
    name: str
    synonyms: List[str] = field(default_factory=list)


@dataclass
class Outlet:
    id: int
    name: str
    address: str
    location: GeoPoint
    region: Optional[str] = None


@dataclass
class _Staging:
    products: Dict[int, Product] = field(default_factory=dict)
    outlets: Dict[int, Outlet] = field(default_factory=dict)
    links: Set[Tuple[int, int]] = field(default_factory=set)


class _Snapshot:
    """Immutable view published at commit; readers never see it change."""

    def __init__(self, staging: Optional[_Staging] = None) -> None:
        staging = staging or _Staging()
        self.products: Dict[int, Product] = dict(staging.products)
        self.outlets: Dict[int, Outlet] = dict(staging.outlets)
        self.links: FrozenSet[Tuple[int, int]] = frozenset(staging.links)
        self.terms: Dict[int, FrozenSet[str]] = {
            p.id: index_terms([p.name, *p.synonyms]) for p in self.products.values()
        }
        self.products_by_outlet: Dict[int, Set[int]] = {}
        for outlet_id, product_id in self.links:
            self.products_by_outlet.setdefault(outlet_id, set()).add(product_id)


class CatalogStore:
    """
    In-memory stand-in for the Postgres catalog store.

    Methods mirror PostgresCatalogStore so the engines, pipeline and API can
    run without a database.
    """

    def __init__(self, *, max_readers: int = 8, checkout_timeout_s: float = 10.0) -> None:
        self._snapshot = _Snapshot()
        self._staging: Optional[_Staging] = None
        self._load_lock = threading.Lock()
        self._readers = threading.BoundedSemaphore(max_readers)
        self._checkout_timeout_s = checkout_timeout_s

    # ------------------------------------------------------------------ #
    # Reader checkout
    # ------------------------------------------------------------------ #
    @contextmanager
    def _checkout(self) -> Iterator[_Snapshot]:
        if not self._readers.acquire(timeout=self._checkout_timeout_s):
            raise StorageUnavailable(
                "Timed out waiting for a catalog reader slot",
                context={"timeout_s": self._checkout_timeout_s},
            )
        try:
            yield self._snapshot
        finally:
            self._readers.release()

    # ------------------------------------------------------------------ #
    # Load unit of work
    # ------------------------------------------------------------------ #
    def load_begin(self) -> None:
        if not self._load_lock.acquire(blocking=False):
            raise ConflictError("A catalog load is already in progress")
        current = self._snapshot
        self._staging = _Staging(
            products=dict(current.products),
            outlets=dict(current.outlets),
            links=set(current.links),
        )
        logger.debug("Catalog load started")

    def _require_staging(self) -> _Staging:
        if self._staging is None:
            raise LoadStateError("No catalog load in progress")
        return self._staging

    def clear_all(self) -> None:
        staging = self._require_staging()
        staging.links.clear()
        staging.outlets.clear()
        staging.products.clear()

    def insert_product(self, id: int, name: str, synonyms: Sequence[str] = ()) -> None:
        staging = self._require_staging()
        if id in staging.products:
            raise IntegrityError("Duplicate product id", context={"product_id": id})
        staging.products[id] = Product(id=id, name=name, synonyms=list(synonyms))

    def insert_outlet(
        self,
        id: int,
        name: str,
        address: str,
        location: GeoPoint,
        region: Optional[str] = None,
    ) -> None:
        staging = self._require_staging()
        if id in staging.outlets:
            raise IntegrityError("Duplicate outlet id", context={"outlet_id": id})
        if location is None or not location.is_valid():
            raise IntegrityError("Outlet location is not a valid point", context={"outlet_id": id})
        staging.outlets[id] = Outlet(id=id, name=name, address=address, location=location, region=region)

    def insert_stock_link(self, outlet_id: int, product_id: int) -> None:
        staging = self._require_staging()
        if outlet_id not in staging.outlets:
            raise IntegrityError("Stock link references unknown outlet", context={"outlet_id": outlet_id})
        if product_id not in staging.products:
            raise IntegrityError("Stock link references unknown product", context={"product_id": product_id})
        key = (outlet_id, product_id)
        if key in staging.links:
            raise IntegrityError("Duplicate stock link", context={"outlet_id": outlet_id, "product_id": product_id})
        staging.links.add(key)

    def load_commit(self) -> None:
        staging = self._require_staging()
        # The rebuilt snapshot replaces the old one in a single reference swap.
        self._snapshot = _Snapshot(staging)
        self._staging = None
        self._load_lock.release()
        logger.debug("Catalog load committed")

    def load_rollback(self) -> None:
        self._require_staging()
        self._staging = None
        self._load_lock.release()
        logger.debug("Catalog load rolled back")

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def search_by_text_and_radius(
        self,
        query_text: str,
        center: GeoPoint,
        radius_m: float,
        limit: int,
    ) -> List[SearchResult]:
        with self._checkout() as snap:
            terms = query_terms(query_text)
            candidates = {pid for pid, indexed in snap.terms.items() if matches(terms, indexed)}
            if not candidates:
                return []

            nearby: Dict[int, float] = {}
            for outlet in snap.outlets.values():
                distance_m = geodesic_distance_m(center, outlet.location)
                if distance_m <= radius_m:
                    nearby[outlet.id] = distance_m

            hits = []
            for outlet_id, distance_m in nearby.items():
                outlet = snap.outlets[outlet_id]
                for product_id in snap.products_by_outlet.get(outlet_id, ()):
                    if product_id in candidates:
                        hits.append(
                            OutletHit(
                                outlet_id=outlet.id,
                                name=outlet.name,
                                address=outlet.address,
                                location=outlet.location,
                                distance_m=distance_m,
                                product_name=snap.products[product_id].name,
                            )
                        )
            return group_and_rank(hits, limit)

    def suggest_by_prefix(self, prefix: str, limit: int) -> List[str]:
        needle = prefix.lower()
        with self._checkout() as snap:
            names = sorted(
                (p.name for p in snap.products.values() if p.name.lower().startswith(needle)),
                key=lambda n: (n.lower(), n),
            )
        return names[:limit]

    # ------------------------------------------------------------------ #
    # Diagnostics
    # ------------------------------------------------------------------ #
    def counts(self) -> Dict[str, int]:
        with self._checkout() as snap:
            return {
                "products": len(snap.products),
                "outlets": len(snap.outlets),
                "stock_links": len(snap.links),
            }

    def most_stocked_products(self, limit: int = 5) -> List[Tuple[str, int]]:
        with self._checkout() as snap:
            per_product = Counter(product_id for _, product_id in snap.links)
            ranked = sorted(
                ((snap.products[pid].name, n) for pid, n in per_product.items()),
                key=lambda item: (-item[1], item[0]),
            )
        return ranked[:limit]
