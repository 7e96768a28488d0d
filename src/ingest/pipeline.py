"""
Bulk load of products, outlets and stock links into a catalog store.

The run is one unit of work: clear, insert products, insert outlets, insert
links whose ids survived validation, commit. Malformed rows are skipped and
counted; anything else rolls the store back to its pre-run state and
propagates.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from src.exceptions import CatalogError
from src.ingest.sources import TabularSource
from src.ingest.validation import (
    Accepted,
    OutletRecord,
    ProductRecord,
    Skipped,
    StockLinkRecord,
    validate_row,
)
from src.utils.catalog_config_loader import IngestionConfig

logger = logging.getLogger(__name__)

SOURCE_NAMES = ("products", "outlets", "stock_links")


@dataclass
class SourceCounts:
    loaded: int = 0
    skipped: int = 0
    reasons: Counter = field(default_factory=Counter)

    def skip(self, item: Skipped) -> None:
        self.skipped += 1
        self.reasons[item.reason] += 1


@dataclass
class LoadReport:
    """Operator-facing summary of one ingestion run."""

    sources: Dict[str, SourceCounts] = field(default_factory=lambda: {n: SourceCounts() for n in SOURCE_NAMES})
    store_counts: Dict[str, int] = field(default_factory=dict)
    most_stocked: List[Tuple[str, int]] = field(default_factory=list)
    elapsed_s: float = 0.0

    def summary_lines(self) -> List[str]:
        lines = []
        for name in SOURCE_NAMES:
            c = self.sources[name]
            lines.append(f"{name}: loaded {c.loaded}, skipped {c.skipped}")
            for reason, n in c.reasons.most_common(5):
                lines.append(f"    {n} x {reason}")
        if self.store_counts:
            lines.append(
                "store now holds {products} products, {outlets} outlets, {stock_links} stock links".format(
                    **self.store_counts
                )
            )
        if self.most_stocked:
            lines.append("most stocked products:")
            for name, n in self.most_stocked:
                lines.append(f"    {name}: {n} outlets")
        lines.append(f"elapsed {self.elapsed_s:.2f}s")
        return lines

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sources": {
                n: {"loaded": c.loaded, "skipped": c.skipped, "reasons": dict(c.reasons)}
                for n, c in self.sources.items()
            },
            "store_counts": dict(self.store_counts),
            "most_stocked": [list(item) for item in self.most_stocked],
            "elapsed_s": round(self.elapsed_s, 3),
        }


@contextmanager
def load_unit(store) -> Iterator[None]:
    """Open a load on ``store``; commit on success, roll back on any error."""
    store.load_begin()
    try:
        yield
    except BaseException:
        try:
            store.load_rollback()
        except CatalogError as rollback_error:
            logger.error("Catalog rollback failed: %s", rollback_error)
        else:
            logger.error("Catalog load rolled back")
        raise
    store.load_commit()


def sources_from_config(cfg: IngestionConfig, base_dir: Optional[Path] = None, **overrides: Path) -> Dict[str, TabularSource]:
    """Build the three TabularSources; ``overrides`` replaces a source's path by name."""
    out: Dict[str, TabularSource] = {}
    for name in SOURCE_NAMES:
        source_cfg = cfg.sources.get(name)
        if source_cfg is None:
            raise ValueError(f"Ingestion config has no '{name}' source")
        path = overrides.get(name) or cfg.source_path(name, base_dir)
        out[name] = TabularSource(name, path, aliases=source_cfg.columns, delimiter=source_cfg.delimiter)
    return out


class IngestionPipeline:
    """Loads three tabular sources into a catalog store as one atomic snapshot."""

    def __init__(self, store, sources: Dict[str, TabularSource], *, top_products: int = 5) -> None:
        missing = [n for n in SOURCE_NAMES if n not in sources]
        if missing:
            raise ValueError(f"Missing sources: {', '.join(missing)}")
        self.store = store
        self.sources = sources
        self.top_products = top_products

    def _validated(self, name: str, model, report: LoadReport) -> List[Accepted]:
        accepted: List[Accepted] = []
        for row in self.sources[name].rows():
            result = validate_row(model, row)
            if isinstance(result, Skipped):
                logger.debug("Skipping %s line %d: %s", name, result.line, result.reason)
                report.sources[name].skip(result)
            else:
                accepted.append(result)
        return accepted

    def _dedupe(self, name: str, items: List[Accepted], key, report: LoadReport) -> List[Accepted]:
        seen: Set[Any] = set()
        kept: List[Accepted] = []
        for item in items:
            k = key(item.record)
            if k in seen:
                report.sources[name].skip(Skipped(item.line, f"duplicate {name} key {k}"))
                continue
            seen.add(k)
            kept.append(item)
        return kept

    def run(self) -> LoadReport:
        started = time.monotonic()
        report = LoadReport()

        # Resolve every column mapping before reading or touching the store.
        for source in self.sources.values():
            source.resolve()

        products = self._dedupe("products", self._validated("products", ProductRecord, report), lambda r: r.id, report)
        outlets = self._dedupe("outlets", self._validated("outlets", OutletRecord, report), lambda r: r.id, report)
        links = self._dedupe(
            "stock_links",
            self._validated("stock_links", StockLinkRecord, report),
            lambda r: (r.outlet_id, r.product_id),
            report,
        )

        with load_unit(self.store):
            self.store.clear_all()

            product_ids: Set[int] = set()
            for item in products:
                p: ProductRecord = item.record
                self.store.insert_product(p.id, p.name, p.synonyms)
                product_ids.add(p.id)
            report.sources["products"].loaded = len(product_ids)

            outlet_ids: Set[int] = set()
            for item in outlets:
                o: OutletRecord = item.record
                self.store.insert_outlet(o.id, o.name, o.address, o.location, region=o.region)
                outlet_ids.add(o.id)
            report.sources["outlets"].loaded = len(outlet_ids)

            link_counts = report.sources["stock_links"]
            for item in links:
                link: StockLinkRecord = item.record
                if link.outlet_id not in outlet_ids:
                    link_counts.skip(Skipped(item.line, "unknown outlet id"))
                    continue
                if link.product_id not in product_ids:
                    link_counts.skip(Skipped(item.line, "unknown product id"))
                    continue
                self.store.insert_stock_link(link.outlet_id, link.product_id)
                link_counts.loaded += 1

        report.store_counts = self.store.counts()
        if self.top_products:
            report.most_stocked = self.store.most_stocked_products(self.top_products)
        report.elapsed_s = time.monotonic() - started

        for line in report.summary_lines():
            logger.info(line)
        return report


def run_ingestion(store, cfg: IngestionConfig, base_dir: Optional[Path] = None, **overrides: Path) -> LoadReport:
    """Convenience wrapper: build sources from config and run one load."""
    sources = sources_from_config(cfg, base_dir, **overrides)
    return IngestionPipeline(store, sources, top_products=cfg.top_products).run()
