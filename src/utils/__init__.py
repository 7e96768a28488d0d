"""
Utility modules for the catalog service
"""
from .catalog_config_loader import CatalogConfig, load_catalog_config, PROJECT_ROOT

__all__ = [
    'CatalogConfig',
    'load_catalog_config',
    'PROJECT_ROOT',
]
