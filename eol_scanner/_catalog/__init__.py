"""Persistent EOL catalog: record types and the SQLite store."""

from .models import (
    EOL_UNSET,
    CatalogStats,
    Category,
    Cycle,
    EolDate,
    EolFlag,
    EolInfo,
    EOLProduct,
    EolUnset,
    Identifier,
    Product,
    SyncMetadata,
    compute_content_hash,
)
from .records import IdentifierRecord, ProductRecord, ReleaseRecord
from .store import CatalogStore, default_db_path, utc_timestamp

__all__ = [
    "CatalogStats",
    "CatalogStore",
    "Category",
    "Cycle",
    "EOLProduct",
    "EOL_UNSET",
    "EolDate",
    "EolFlag",
    "EolInfo",
    "EolUnset",
    "Identifier",
    "IdentifierRecord",
    "Product",
    "ProductRecord",
    "ReleaseRecord",
    "SyncMetadata",
    "compute_content_hash",
    "default_db_path",
    "utc_timestamp",
]
