"""Catalog persistence: repository interface and backends."""

from catalogforge.storage.base import (
    CatalogRepository,
    CategoryRecord,
    ProductRecord,
    ReviewRecord,
)
from catalogforge.storage.factory import create_repository

__all__ = [
    "CatalogRepository",
    "CategoryRecord",
    "ProductRecord",
    "ReviewRecord",
    "create_repository",
]
