"""Full catalog sync from endoflife.date into the local store.

The engine is the catalog's only writer and is not re-entrant: callers must
make sure two syncs never run against the same database at once.
"""

import sqlite3
import threading
import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from eol_scanner._catalog.records import ProductRecord, ReleaseRecord
from eol_scanner._catalog.store import CatalogStore
from eol_scanner.logging_config import logger

from .api import EndOfLifeAPI
from .result import SyncResult

DEFAULT_CATEGORIES = ("framework", "lang", "os", "database", "server-app")

# Failures of a single product or cycle; anything else aborts the sync
ITEM_ERRORS = (sqlite3.Error, ValueError, TypeError)


def parse_sync_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a stored sync timestamp into an aware UTC datetime.

    Accepts ``YYYY-MM-DDTHH:MM:SSZ``, any RFC 3339 offset and SQLite's
    ``YYYY-MM-DD HH:MM:SS``. Returns ``None`` when absent or unparsable.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class SyncEngine:
    """
    Pulls the upstream product list and upserts it into a :class:`CatalogStore`.

    Example:
        with CatalogStore(path) as store:
            engine = SyncEngine(store)
            if engine.needs_refresh(timedelta(days=7)):
                result = engine.full_sync(["lang", "os"])
    """

    def __init__(self, store: CatalogStore, api: Optional[EndOfLifeAPI] = None) -> None:
        self.store = store
        self.api = api or EndOfLifeAPI()

    def needs_refresh(self, max_age: timedelta, now: Optional[datetime] = None) -> bool:
        """
        Decide whether the catalog is stale.

        True when no sync has ever completed, when the stored timestamp
        cannot be parsed, or when the last sync is older than ``max_age``.
        """
        last_sync = parse_sync_timestamp(self.store.get_sync_metadata().last_full_sync)
        if last_sync is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now - last_sync > max_age

    def full_sync(
        self,
        categories: Optional[Iterable[str]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncResult:
        """
        Fetch every product and upsert those in ``categories``.

        Per-product and per-cycle failures are recorded on the result and
        skipped. Cancellation before or during the fetch raises
        :class:`~eol_scanner.exceptions.SyncCancelledError` with no catalog
        writes; after the fetch it stops new products from starting, keeps
        what was already written and leaves the sync timestamp untouched.

        Args:
            categories: Categories to keep; ``None`` means :data:`DEFAULT_CATEGORIES`
            cancel_event: Cancellation signal set by the caller

        Raises:
            APIError: If the product list cannot be fetched
            SyncCancelledError: If cancelled before the fetch completed
            sqlite3.Error: If categories or sync metadata cannot be written
        """
        category_list = list(categories) if categories is not None else list(DEFAULT_CATEGORIES)
        start = time.monotonic()
        result = SyncResult(categories=category_list)

        raw_products = self.api.get_all_products_full(cancel_event=cancel_event)

        wanted = set(category_list)
        filtered: List[Dict[str, Any]] = []
        for raw in raw_products:
            if not isinstance(raw, dict):
                result.skip("product", repr(raw)[:40], "not a JSON object")
                continue
            category = raw.get("category")
            if not isinstance(category, str):
                result.skip("product", str(raw.get("name") or "<unnamed>"), "category is not a string")
            elif category in wanted:
                filtered.append(raw)
        logger.info(f"{len(filtered)} of {len(raw_products)} products in categories: {', '.join(category_list)}")

        for category, count in sorted(Counter(raw["category"] for raw in filtered).items()):
            self.store.upsert_category(category, "", count)

        for raw in filtered:
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.warning("Catalog sync cancelled; remaining products were not processed")
                break
            self._sync_product(raw, result)

        if not result.cancelled:
            self.store.update_sync_metadata(category_list)

        result.duration = time.monotonic() - start
        logger.info(
            f"Sync finished in {result.duration:.1f}s: {result.products_processed} products, "
            f"{result.cycles_processed} changed cycles, {result.identifiers_processed} identifiers, "
            f"{result.errors} errors"
        )
        return result

    def _sync_product(self, raw: Dict[str, Any], result: SyncResult) -> None:
        name = str(raw.get("name") or "")
        if not name:
            result.skip("product", "<unnamed>", "product has no name")
            return

        try:
            product = ProductRecord.from_api(raw, with_releases=False)
            product_id = self.store.upsert_product(product)
        except ITEM_ERRORS as e:
            logger.warning(f"Failed to upsert product {name}: {e}")
            result.fail("product", name, e)
            return
        result.products_processed += 1
        result.succeeded("product", name)

        try:
            result.identifiers_processed += self.store.upsert_identifiers(product_id, product.identifiers)
        except ITEM_ERRORS as e:
            logger.warning(f"Failed to upsert identifiers for {name}: {e}")
            result.fail("identifiers", name, e)

        releases = raw.get("releases") or []
        if not isinstance(releases, list):
            error = ValueError(f"releases must be an array, got {type(releases).__name__}")
            logger.warning(f"Failed to read cycles of {name}: {error}")
            result.fail("cycle", f"{name}/*", error)
            return
        for raw_release in releases:
            self._sync_cycle(name, product_id, raw_release, result)

    def _sync_cycle(self, product_name: str, product_id: int, raw_release: Any, result: SyncResult) -> None:
        release_name = raw_release.get("name") if isinstance(raw_release, dict) else None
        item = f"{product_name}/{release_name or '?'}"

        try:
            release = ReleaseRecord.from_api(raw_release)
            if not release.name:
                result.skip("cycle", item, "release has no name")
                return
            changed = self.store.upsert_cycle(product_id, release)
        except ITEM_ERRORS as e:
            logger.warning(f"Failed to upsert cycle {item}: {e}")
            result.fail("cycle", item, e)
            return

        if changed:
            result.cycles_processed += 1
            result.succeeded("cycle", item)
        else:
            result.skip("cycle", item, "unchanged")
