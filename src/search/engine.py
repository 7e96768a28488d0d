"""
Search engine: outlets within a radius that stock a product matching free text.
"""

from __future__ import annotations

import logging
import math
from typing import Any, List, Optional

from src.exceptions import InvalidArgument
from src.search.geo import GeoPoint
from src.search.results import SearchResult

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50


class SearchEngine:
    """
    Read-only, stateless wrapper over a catalog store.

    The store does the work (text candidates, radius candidates, intersection,
    grouping, ordering); the engine enforces preconditions and logs.
    """

    def __init__(self, store: Any, *, default_limit: int = DEFAULT_LIMIT) -> None:
        self.store = store
        self.default_limit = default_limit

    def search(
        self,
        query_text: str,
        center: GeoPoint,
        radius_m: float,
        limit: Optional[int] = None,
    ) -> List[SearchResult]:
        """
        Args:
            query_text: free-text product name; every term must match the
                product's name or one of its synonyms.
            center: search origin.
            radius_m: inclusive geodesic radius in meters, > 0.
            limit: maximum number of outlets returned.

        Returns:
            Results ordered by (distance_km, outlet_id). Empty when nothing matches.

        Raises:
            InvalidArgument: on empty query, invalid center, non-positive radius or limit.
        """
        query = (query_text or "").strip()
        if not query:
            raise InvalidArgument("Search query must not be empty")
        if not isinstance(center, GeoPoint) or not center.is_valid():
            raise InvalidArgument("Search center is not a valid coordinate", context={"center": center})
        try:
            radius = float(radius_m)
        except (TypeError, ValueError):
            raise InvalidArgument("Radius must be numeric", context={"radius_m": radius_m}) from None
        if not math.isfinite(radius) or radius <= 0:
            raise InvalidArgument("Radius must be positive", context={"radius_m": radius_m})
        k = self.default_limit if limit is None else limit
        if not isinstance(k, int) or k < 1:
            raise InvalidArgument("Limit must be a positive integer", context={"limit": limit})

        logger.info("Searching for %r within %.0fm of (%s, %s)", query, radius, center.lat, center.lng)
        results = self.store.search_by_text_and_radius(query, center, radius, k)
        logger.info("Found %d outlets", len(results))
        return results
