"""Pytest configuration and shared fixtures for all tests."""

from typing import Any, Dict, List
from unittest.mock import Mock

import pytest

from eol_scanner._catalog.store import CatalogStore
from eol_scanner._sync.api import EndOfLifeAPI
from eol_scanner._sync.engine import SyncEngine

from .catalog_builders import days_from_today, make_product, make_release


@pytest.fixture(autouse=True)
def disable_sentry_for_tests(monkeypatch):
    """Disable Sentry telemetry for all tests.

    Tests that specifically need to test Sentry functionality (like
    test_sentry_filtering.py) set SENTRY_DSN and TELEMETRY themselves.
    """
    monkeypatch.setenv("TELEMETRY", "false")
    monkeypatch.delenv("SENTRY_DSN", raising=False)


@pytest.fixture
def store(tmp_path):
    """File-backed catalog in a temporary directory."""
    catalog = CatalogStore(tmp_path / "eol.db")
    yield catalog
    catalog.close()


@pytest.fixture
def sample_products() -> List[Dict[str, Any]]:
    """A small catalog with dates relative to today."""
    return [
        make_product(
            "python",
            category="lang",
            aliases=["python3", "cpython"],
            identifiers=[
                {"type": "purl", "id": "pkg:generic/python"},
                {"type": "cpe", "id": "cpe:2.3:a:python:python"},
                {"type": "repology", "id": "python"},
            ],
            releases=[
                make_release("3.12", eol=days_from_today(900), release_date="2023-10-02", latest="3.12.7"),
                make_release("3.9", eol=days_from_today(30), release_date="2020-10-05", latest="3.9.20"),
                make_release("2.7", eol="2020-01-01", release_date="2010-07-03", latest="2.7.18"),
            ],
        ),
        make_product(
            "nginx",
            category="server-app",
            identifiers=[
                {"type": "purl", "id": "pkg:deb/debian/nginx"},
                {"type": "purl", "id": "pkg:generic/nginx"},
            ],
            releases=[
                make_release("1.25", is_eol=False, release_date="2023-05-23", is_maintained=True),
                make_release("1.24", is_eol=True, release_date="2023-04-11"),
            ],
        ),
        make_product(
            "debian",
            category="os",
            releases=[
                make_release("12", eol=days_from_today(600), release_date="2023-06-10"),
                make_release("9", eol="2020-07-18", release_date="2017-06-17"),
            ],
        ),
        make_product(
            "django",
            category="framework",
            identifiers=[{"type": "purl", "id": "pkg:pypi/django"}],
            releases=[make_release("4.2", eol=days_from_today(200), release_date="2023-04-03", is_lts=True)],
        ),
        make_product("windows", category="os-proprietary", releases=[make_release("10", eol="2025-10-14")]),
    ]


@pytest.fixture
def synced_store(store, sample_products):
    """Catalog populated from ``sample_products`` through a real sync."""
    api = Mock(spec=EndOfLifeAPI)
    api.get_all_products_full.return_value = sample_products
    SyncEngine(store, api).full_sync()
    return store
