"""
Offline ingestion: products, outlets and stock links from delimited files into a catalog store.
"""

from .pipeline import IngestionPipeline, LoadReport, load_unit, run_ingestion, sources_from_config
from .sources import TabularSource

__all__ = ["IngestionPipeline", "LoadReport", "TabularSource", "load_unit", "run_ingestion", "sources_from_config"]
