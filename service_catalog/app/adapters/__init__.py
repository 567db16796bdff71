"""
Adapters package for the Catalog Service.

Wraps the document store behind the ``CatalogDataSource`` contract. Adapters
return JSON-safe documents and map driver failures to ``DataSourceError``.
"""

from .data_source import CatalogDataSource, Document
from .mongo_source import MongoCatalogSource

__all__ = ["CatalogDataSource", "Document", "MongoCatalogSource"]
