"""
Search result shape and the group/rank step shared by the catalog stores.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from src.search.geo import GeoPoint, round_km


@dataclass(frozen=True)
class SearchResult:
    outlet_id: int
    name: str
    address: str
    location: GeoPoint
    distance_km: float
    matched_product_names: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outlet_id": self.outlet_id,
            "name": self.name,
            "address": self.address,
            "lat": self.location.lat,
            "lng": self.location.lng,
            "distance_km": self.distance_km,
            "matched_product_names": list(self.matched_product_names),
        }


@dataclass(frozen=True)
class OutletHit:
    """One (outlet, matched product) pair inside the search radius."""

    outlet_id: int
    name: str
    address: str
    location: GeoPoint
    distance_m: float
    product_name: str


def group_and_rank(hits: Iterable[OutletHit], limit: int) -> List[SearchResult]:
    """
    Collapse hits to one result per outlet, then order by (distance_km, outlet_id)
    and keep the first ``limit``. Matched names are distinct and sorted.
    """
    grouped: Dict[int, Tuple[OutletHit, set]] = {}
    for hit in hits:
        if hit.outlet_id in grouped:
            grouped[hit.outlet_id][1].add(hit.product_name)
        else:
            grouped[hit.outlet_id] = (hit, {hit.product_name})

    results = [
        SearchResult(
            outlet_id=first.outlet_id,
            name=first.name,
            address=first.address,
            location=first.location,
            distance_km=round_km(first.distance_m),
            matched_product_names=sorted(names),
        )
        for first, names in grouped.values()
    ]
    results.sort(key=lambda r: (r.distance_km, r.outlet_id))
    return results[:limit]
