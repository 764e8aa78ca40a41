"""Tests for the catalog sync engine."""

import threading
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from eol_scanner._catalog.store import CatalogStore
from eol_scanner._sync.api import EndOfLifeAPI
from eol_scanner._sync.engine import DEFAULT_CATEGORIES, SyncEngine, parse_sync_timestamp
from eol_scanner._sync.result import OutcomeStatus
from eol_scanner.exceptions import APIError, SyncCancelledError

from .catalog_builders import make_product, make_release


def _engine(store, products):
    api = Mock(spec=EndOfLifeAPI)
    api.get_all_products_full.return_value = products
    return SyncEngine(store, api), api


def _row_count(store, table):
    return store._scalar(f"SELECT COUNT(*) FROM {table}")


class TestFullSync:
    def test_filters_by_default_categories(self, store, sample_products):
        engine, _ = _engine(store, sample_products)

        result = engine.full_sync()

        assert result.categories == list(DEFAULT_CATEGORIES)
        assert result.products_processed == 4
        assert store.get_product("windows") is None
        assert store.get_product("python").category_name == "lang"
        assert store.get_category("os").total_products == 1
        assert result.errors == 0
        assert not result.cancelled

    def test_custom_categories(self, store, sample_products):
        engine, _ = _engine(store, sample_products)

        result = engine.full_sync(["os"])

        assert result.products_processed == 1
        assert store.get_product("debian") is not None
        assert store.get_product("python") is None
        assert store.get_sync_metadata().categories_synced == ("os",)

    def test_resync_is_idempotent(self, store, sample_products):
        engine, _ = _engine(store, sample_products)

        first = engine.full_sync()
        counts = {table: _row_count(store, table) for table in ("products", "cycles", "identifiers")}
        second = engine.full_sync()

        assert first.cycles_processed == 8
        assert second.cycles_processed == 0
        assert second.products_processed == 4
        assert {table: _row_count(store, table) for table in counts} == counts
        assert all(o.detail == "unchanged" for o in second.skipped if o.kind == "cycle")

    def test_changed_release_is_rewritten(self, store):
        engine, api = _engine(store, [make_product("go", releases=[make_release("1.21", eol="2024-08-13")])])
        engine.full_sync()
        api.get_all_products_full.return_value = [make_product("go", releases=[make_release("1.21", is_eol=True)])]

        result = engine.full_sync()

        assert result.cycles_processed == 1
        assert store.get_cycles_for_product("go")[0].eol_boolean is True

    def test_updates_sync_metadata(self, store, sample_products):
        engine, _ = _engine(store, sample_products)
        engine.full_sync()

        meta = store.get_sync_metadata()
        assert meta.last_full_sync is not None
        assert meta.products_count == 4
        assert parse_sync_timestamp(meta.last_full_sync) is not None

    def test_bad_release_does_not_stop_product(self, store):
        product = make_product("ruby", releases=["not-a-release", {"label": "no name"}, make_release("3.3")])
        engine, _ = _engine(store, [product])

        result = engine.full_sync()

        assert [c.name for c in store.get_cycles_for_product("ruby")] == ["3.3"]
        assert result.errors == 1
        assert result.failures[0].kind == "cycle"
        assert any(o.detail == "release has no name" for o in result.skipped)

    def test_unnamed_and_malformed_products_are_skipped(self, store):
        products = [make_product(""), "garbage", make_product("go")]
        engine, _ = _engine(store, products)

        result = engine.full_sync()

        assert result.products_processed == 1
        assert store.get_product("go") is not None
        assert len(result.skipped) == 2

    def test_non_string_category_is_skipped(self, store):
        odd = make_product("odd")
        odd["category"] = ["lang"]
        engine, _ = _engine(store, [odd, make_product("python", releases=[make_release("3.12")])])

        result = engine.full_sync()

        assert store.get_product("odd") is None
        assert [c.name for c in store.get_cycles_for_product("python")] == ["3.12"]
        assert any(o.detail == "category is not a string" for o in result.skipped)
        assert store.get_sync_metadata().last_full_sync is not None

    def test_non_list_releases_is_recorded_as_failure(self, store):
        broken = make_product("ruby")
        broken["releases"] = 5
        engine, _ = _engine(store, [broken, make_product("go", releases=[make_release("1.22")])])

        result = engine.full_sync()

        assert store.get_product("ruby") is not None
        assert store.get_cycles_for_product("ruby") == []
        assert [c.name for c in store.get_cycles_for_product("go")] == ["1.22"]
        assert result.errors == 1
        assert (result.failures[0].kind, result.failures[0].name) == ("cycle", "ruby/*")
        assert store.get_sync_metadata().last_full_sync is not None

    def test_product_storage_failure_is_recorded(self, store, sample_products):
        engine, _ = _engine(store, sample_products)
        original = store.upsert_product

        def flaky(product):
            if product.name == "nginx":
                raise ValueError("boom")
            return original(product)

        store.upsert_product = flaky

        result = engine.full_sync()

        assert result.products_processed == 3
        assert [(f.kind, f.name) for f in result.failures] == [("product", "nginx")]
        assert result.failures[0].status is OutcomeStatus.FAILED
        assert store.get_sync_metadata().last_full_sync is not None

    def test_fetch_failure_propagates(self, store):
        api = Mock(spec=EndOfLifeAPI)
        api.get_all_products_full.side_effect = APIError("down")

        with pytest.raises(APIError):
            SyncEngine(store, api).full_sync()
        assert store.get_sync_metadata().last_full_sync is None

    def test_identifier_uniqueness_across_syncs(self, store, sample_products):
        engine, _ = _engine(store, sample_products)
        engine.full_sync()
        engine.full_sync()

        duplicates = store._query(
            """
            SELECT product_id, identifier_type, identifier_value, COUNT(*)
            FROM identifiers GROUP BY 1, 2, 3 HAVING COUNT(*) > 1
            """
        )
        assert duplicates == []


class TestCancellation:
    def test_cancel_before_fetch_writes_nothing(self, store, sample_products):
        cancel = threading.Event()
        cancel.set()
        api = Mock(spec=EndOfLifeAPI)
        api.get_all_products_full.side_effect = SyncCancelledError("cancelled")

        with pytest.raises(SyncCancelledError):
            SyncEngine(store, api).full_sync(cancel_event=cancel)

        assert _row_count(store, "products") == 0
        assert store.get_sync_metadata().last_full_sync is None

    def test_cancel_during_products(self, store, sample_products):
        cancel = threading.Event()
        engine, _ = _engine(store, sample_products)
        original = store.upsert_product

        def cancel_after_first(product):
            product_id = original(product)
            cancel.set()
            return product_id

        store.upsert_product = cancel_after_first

        result = engine.full_sync(cancel_event=cancel)

        assert result.cancelled
        assert result.products_processed == 1
        assert store.get_product("python") is not None
        assert store.get_sync_metadata().last_full_sync is None


class TestNeedsRefresh(unittest.TestCase):
    def setUp(self):
        self.store = CatalogStore(":memory:")
        self.engine = SyncEngine(self.store, Mock(spec=EndOfLifeAPI))

    def tearDown(self):
        self.store.close()

    def _set_last_sync(self, value):
        with self.store._write() as conn:
            conn.execute("UPDATE sync_metadata SET last_full_sync = ? WHERE id = 1", (value,))

    def test_never_synced(self):
        self.assertTrue(self.engine.needs_refresh(timedelta(days=7)))

    def test_fresh(self):
        self.store.update_sync_metadata(["lang"])
        self.assertFalse(self.engine.needs_refresh(timedelta(days=7)))

    def test_stale(self):
        self._set_last_sync("2024-01-01T00:00:00Z")
        now = datetime(2024, 1, 9, tzinfo=timezone.utc)
        self.assertTrue(self.engine.needs_refresh(timedelta(days=7), now=now))
        self.assertFalse(self.engine.needs_refresh(timedelta(days=10), now=now))

    def test_sqlite_timestamp_format(self):
        self._set_last_sync("2024-01-01 00:00:00")
        now = datetime(2024, 1, 2, tzinfo=timezone.utc)
        self.assertFalse(self.engine.needs_refresh(timedelta(days=7), now=now))

    def test_unparsable_timestamp_is_stale(self):
        self._set_last_sync("yesterday-ish")
        self.assertTrue(self.engine.needs_refresh(timedelta(days=7)))


class TestParseSyncTimestamp(unittest.TestCase):
    def test_formats(self):
        expected = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(parse_sync_timestamp("2024-03-01T12:00:00Z"), expected)
        self.assertEqual(parse_sync_timestamp("2024-03-01T14:00:00+02:00"), expected)
        self.assertEqual(parse_sync_timestamp("2024-03-01 12:00:00"), expected)

    def test_empty(self):
        self.assertIsNone(parse_sync_timestamp(None))
        self.assertIsNone(parse_sync_timestamp(""))
