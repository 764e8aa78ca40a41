"""Catalog sync: upstream API client and the hash-gated sync engine."""

from .api import BASE_URL_V1, EndOfLifeAPI
from .engine import DEFAULT_CATEGORIES, SyncEngine, parse_sync_timestamp
from .result import ItemOutcome, OutcomeStatus, SyncResult

__all__ = [
    "BASE_URL_V1",
    "DEFAULT_CATEGORIES",
    "EndOfLifeAPI",
    "ItemOutcome",
    "OutcomeStatus",
    "SyncEngine",
    "SyncResult",
    "parse_sync_timestamp",
]
