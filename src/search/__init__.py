"""
Read-side of the catalog: location-aware product search and autocomplete.

This package wires together:
- search.text_match (token AND matching over names + synonyms)
- search.geo (WGS-84 geodesic distance)
- a catalog store from src.database (in-memory or Postgres/PostGIS)
"""

from .engine import SearchEngine
from .geo import GeoPoint
from .results import SearchResult
from .suggest import SuggestionEngine

__all__ = ["SearchEngine", "SuggestionEngine", "GeoPoint", "SearchResult"]
