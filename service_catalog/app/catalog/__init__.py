"""
Catalog query layer: cached, region-priced reads over the document store.
"""

from .models import SearchQuery
from .service import CatalogQueries

__all__ = ["CatalogQueries", "SearchQuery"]
