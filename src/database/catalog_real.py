"""
Real Postgres/PostGIS-backed catalog store for production when DATABASE_URL is set.
Implements the same interface as src.database.catalog (in-memory stand-in).
"""

from __future__ import annotations

import logging
import re
import threading
import zlib
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import create_engine, delete, insert, text
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Connection

from src.database.models import TEXT_SEARCH_CONFIG, Base, Outlet, Product, StockLink
from src.exceptions import ConflictError, IntegrityError, LoadStateError, StorageError, StorageUnavailable
from src.search.geo import GeoPoint
from src.search.results import SearchResult

logger = logging.getLogger(__name__)

# Transaction-scoped advisory lock key shared by every process loading this catalog.
_LOAD_LOCK_KEY = zlib.crc32(b"medfinder.catalog.load")

# Text candidates and radius candidates are computed independently, then intersected
# through stock_links. The to_tsvector expression matches ix_products_search_tsv.
_SEARCH_SQL = f"""
    WITH matched_products AS (
        SELECT id, name
        FROM products
        WHERE to_tsvector('{TEXT_SEARCH_CONFIG}'::regconfig, search_text)
              @@ plainto_tsquery('{TEXT_SEARCH_CONFIG}'::regconfig, :query)
    ),
    nearby_outlets AS (
        SELECT id, name, address, geom,
               ST_Distance(geom, ST_SetSRID(ST_MakePoint(:lng, :lat), 4326)::geography) AS distance_m
        FROM outlets
        WHERE ST_DWithin(geom, ST_SetSRID(ST_MakePoint(:lng, :lat), 4326)::geography, :radius_m)
    )
    SELECT
        o.id AS outlet_id,
        o.name,
        o.address,
        ST_Y(o.geom::geometry) AS lat,
        ST_X(o.geom::geometry) AS lng,
        ROUND((o.distance_m / 1000.0)::numeric, 2) AS distance_km,
        array_agg(DISTINCT mp.name ORDER BY mp.name) AS matched_product_names
    FROM nearby_outlets o
    JOIN stock_links sl ON sl.outlet_id = o.id
    JOIN matched_products mp ON mp.id = sl.product_id
    GROUP BY o.id, o.name, o.address, o.geom, o.distance_m
    ORDER BY distance_km, o.id
    LIMIT :limit
"""

_SUGGEST_SQL = r"""
    SELECT name FROM products
    WHERE name ILIKE :pattern ESCAPE '\'
    ORDER BY lower(name), name
    LIMIT :limit
"""

_MOST_STOCKED_SQL = """
    SELECT p.name, COUNT(*) AS outlet_count
    FROM stock_links sl
    JOIN products p ON p.id = sl.product_id
    GROUP BY p.id, p.name
    ORDER BY outlet_count DESC, p.name
    LIMIT :limit
"""


def _normalize_connection_string(s: str) -> str:
    """Strip common mistakes: 'psql \'...\'', extra quotes, whitespace."""
    s = s.strip()
    if re.match(r"^psql\s+", s, re.IGNORECASE):
        s = re.sub(r"^psql\s+", "", s, flags=re.IGNORECASE).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1].strip()
    return s


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}%"


class PostgresCatalogStore:
    """
    Catalog data access using SQLAlchemy over PostGIS. Use when DATABASE_URL is set.

    The engine's QueuePool is the only shared resource: at most
    ``pool_size + max_overflow`` connections, callers beyond that wait up to
    ``pool_timeout_s`` and then get StorageUnavailable.
    """

    def __init__(
        self,
        connection_string: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout_s: float = 10.0,
        statement_timeout_ms: int = 5000,
    ) -> None:
        connection_string = _normalize_connection_string(connection_string)
        self.engine = create_engine(
            connection_string,
            pool_pre_ping=True,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout_s,
        )
        self.statement_timeout_ms = statement_timeout_ms
        self._load_conn: Optional[Connection] = None
        self._load_guard = threading.Lock()

    @classmethod
    def from_config(cls, connection_string: str, db_cfg: Any) -> "PostgresCatalogStore":
        return cls(
            connection_string,
            pool_size=db_cfg.pool_size,
            max_overflow=db_cfg.max_overflow,
            pool_timeout_s=db_cfg.pool_timeout_s,
            statement_timeout_ms=db_cfg.statement_timeout_ms,
        )

    # ------------------------------------------------------------------ #
    # Schema / lifecycle
    # ------------------------------------------------------------------ #
    def create_tables(self) -> None:
        with self._translate_errors():
            with self.engine.begin() as conn:
                conn.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
                Base.metadata.create_all(bind=conn)
        logger.info("Ensured catalog tables: %s", ", ".join(sorted(Base.metadata.tables)))

    def ping(self) -> bool:
        with self._read() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        try:
            yield
        except sa_exc.TimeoutError as e:
            raise StorageUnavailable("Timed out waiting for a database connection") from e
        except (sa_exc.OperationalError, sa_exc.InterfaceError) as e:
            raise StorageUnavailable("Catalog database unavailable", context={"error": type(e.orig).__name__}) from e
        except sa_exc.IntegrityError as e:
            raise IntegrityError("Constraint violated", context={"error": type(e.orig).__name__}) from e
        except sa_exc.DBAPIError as e:
            raise StorageError("Catalog database error", context={"error": type(e.orig).__name__}) from e
        except sa_exc.SQLAlchemyError as e:
            raise StorageError("Catalog database error", context={"error": type(e).__name__}) from e

    @contextmanager
    def _read(self) -> Iterator[Connection]:
        """Checked-out connection in a read transaction bounded by statement_timeout."""
        with self._translate_errors():
            with self.engine.connect() as conn:
                with conn.begin():
                    conn.execute(
                        text("SELECT set_config('statement_timeout', :ms, true)"),
                        {"ms": str(self.statement_timeout_ms)},
                    )
                    yield conn

    # ------------------------------------------------------------------ #
    # Load unit of work
    # ------------------------------------------------------------------ #
    def load_begin(self) -> None:
        with self._load_guard:
            if self._load_conn is not None:
                raise ConflictError("A catalog load is already in progress")
            with self._translate_errors():
                conn = self.engine.connect()
                try:
                    conn.begin()
                    locked = conn.execute(
                        text("SELECT pg_try_advisory_xact_lock(:key)"), {"key": _LOAD_LOCK_KEY}
                    ).scalar()
                except Exception:
                    conn.close()
                    raise
            if not locked:
                conn.rollback()
                conn.close()
                raise ConflictError("A catalog load is already in progress in another process")
            self._load_conn = conn
        logger.debug("Catalog load started")

    def _require_load(self) -> Connection:
        if self._load_conn is None:
            raise LoadStateError("No catalog load in progress")
        return self._load_conn

    def _write(self, stmt: Any, *, entity: str, key: Dict[str, Any]) -> None:
        conn = self._require_load()
        try:
            with self._translate_errors():
                conn.execute(stmt)
        except IntegrityError as e:
            raise IntegrityError(f"Constraint violated inserting {entity}", context=key) from e.__cause__

    def clear_all(self) -> None:
        conn = self._require_load()
        with self._translate_errors():
            # DELETE instead of TRUNCATE: readers keep their MVCC snapshot until commit.
            conn.execute(delete(StockLink))
            conn.execute(delete(Outlet))
            conn.execute(delete(Product))

    def insert_product(self, id: int, name: str, synonyms: Sequence[str] = ()) -> None:
        synonyms = list(synonyms)
        stmt = insert(Product).values(
            id=id,
            name=name,
            synonyms=synonyms,
            search_text=" ".join([name, *synonyms]),
        )
        self._write(stmt, entity="product", key={"product_id": id})

    def insert_outlet(
        self,
        id: int,
        name: str,
        address: str,
        location: GeoPoint,
        region: Optional[str] = None,
    ) -> None:
        if location is None or not location.is_valid():
            raise IntegrityError("Outlet location is not a valid point", context={"outlet_id": id})
        stmt = insert(Outlet).values(id=id, name=name, address=address, region=region, geom=location.to_ewkt())
        self._write(stmt, entity="outlet", key={"outlet_id": id})

    def insert_stock_link(self, outlet_id: int, product_id: int) -> None:
        stmt = insert(StockLink).values(outlet_id=outlet_id, product_id=product_id)
        self._write(stmt, entity="stock link", key={"outlet_id": outlet_id, "product_id": product_id})

    def load_commit(self) -> None:
        conn = self._require_load()
        try:
            with self._translate_errors():
                conn.commit()
        finally:
            self._release_load(conn)
        logger.debug("Catalog load committed")

    def load_rollback(self) -> None:
        conn = self._require_load()
        try:
            with self._translate_errors():
                conn.rollback()
        finally:
            self._release_load(conn)
        logger.debug("Catalog load rolled back")

    def _release_load(self, conn: Connection) -> None:
        with self._load_guard:
            self._load_conn = None
        conn.close()

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
        params = {"query": query_text, "lat": center.lat, "lng": center.lng, "radius_m": radius_m, "limit": limit}
        with self._read() as conn:
            rows = conn.execute(text(_SEARCH_SQL), params).mappings().all()
        return [
            SearchResult(
                outlet_id=int(r["outlet_id"]),
                name=r["name"],
                address=r["address"] or "",
                location=GeoPoint(float(r["lat"]), float(r["lng"])),
                distance_km=float(r["distance_km"]),
                matched_product_names=list(r["matched_product_names"] or []),
            )
            for r in rows
        ]

    def suggest_by_prefix(self, prefix: str, limit: int) -> List[str]:
        with self._read() as conn:
            rows = conn.execute(text(_SUGGEST_SQL), {"pattern": _like_prefix(prefix), "limit": limit}).all()
        return [r[0] for r in rows]

    # ------------------------------------------------------------------ #
    # Diagnostics
    # ------------------------------------------------------------------ #
    def counts(self) -> Dict[str, int]:
        with self._read() as conn:
            row = conn.execute(
                text(
                    "SELECT (SELECT COUNT(*) FROM products) AS products, "
                    "(SELECT COUNT(*) FROM outlets) AS outlets, "
                    "(SELECT COUNT(*) FROM stock_links) AS stock_links"
                )
            ).mappings().one()
        return {k: int(v) for k, v in row.items()}

    def most_stocked_products(self, limit: int = 5) -> List[Tuple[str, int]]:
        with self._read() as conn:
            rows = conn.execute(text(_MOST_STOCKED_SQL), {"limit": limit}).all()
        return [(r[0], int(r[1])) for r in rows]
