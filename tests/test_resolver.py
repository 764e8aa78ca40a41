"""Tests for component-to-product resolution."""

from types import MappingProxyType

import pytest

from eol_scanner._catalog.records import IdentifierRecord, ProductRecord, ReleaseRecord
from eol_scanner._resolution.component import Component, OSRelease
from eol_scanner._resolution.resolver import ComponentResolver, strip_purl_version
from eol_scanner._resolution.tables import DEFAULT_TABLES, ResolutionTables

from .catalog_builders import make_product, make_release


def _add(store, name, identifiers=(), aliases=None, releases=(), category="lang"):
    record = ProductRecord.from_api(make_product(name, category=category, aliases=aliases), with_releases=False)
    product_id = store.upsert_product(record)
    store.upsert_identifiers(product_id, [IdentifierRecord(t, v) for t, v in identifiers])
    for release in releases:
        store.upsert_cycle(product_id, ReleaseRecord.from_api(release))
    return product_id


@pytest.fixture
def resolver(store):
    return ComponentResolver(store)


class TestStripPurlVersion:
    def test_strips_version_and_qualifiers(self):
        assert strip_purl_version("pkg:pypi/django@4.2.1?arch=any") == "pkg:pypi/django"

    def test_without_version(self):
        assert strip_purl_version("pkg:pypi/django") == "pkg:pypi/django"

    def test_cuts_at_last_at(self):
        assert strip_purl_version("pkg:npm/%40angular/core@17.0.0") == "pkg:npm/%40angular/core"
        assert strip_purl_version("pkg:npm/@angular/core@17.0.0") == "pkg:npm/@angular/core"


class TestStrategies:
    def test_strategy_order(self, resolver):
        assert resolver.strategy_names == [
            "purl",
            "purl-base",
            "distro-purl",
            "ecosystem-purl",
            "generic-purl",
            "cpe",
            "name",
            "alias",
            "repology",
        ]

    def test_exact_purl(self, store, resolver):
        _add(store, "django", identifiers=[("purl", "pkg:pypi/django@4.2")])
        resolution = resolver.resolve(Component("Django", "4.2", "python", purl="pkg:pypi/django@4.2"))
        assert resolution.product.name == "django"
        assert resolution.strategy == "purl"

    def test_purl_without_version(self, store, resolver):
        _add(store, "django", identifiers=[("purl", "pkg:pypi/django")])
        resolution = resolver.resolve(Component("x", "4.2.7", "python", purl="pkg:pypi/django@4.2.7"))
        assert resolution.strategy == "purl-base"

    def test_distro_purl(self, store, resolver):
        _add(store, "nginx", identifiers=[("purl", "pkg:deb/ubuntu/nginx")])
        resolution = resolver.resolve(Component("nginx", "1.24.0-2", "deb"))
        assert resolution.product.name == "nginx"
        assert resolution.strategy == "distro-purl"

    def test_rpm_distro_order(self, store, resolver):
        _add(store, "redhat-httpd", identifiers=[("purl", "pkg:rpm/redhat/httpd")])
        _add(store, "fedora-httpd", identifiers=[("purl", "pkg:rpm/fedora/httpd")])
        resolution = resolver.resolve(Component("httpd", "2.4", "rpm"))
        assert resolution.product.name == "fedora-httpd"

    def test_ecosystem_purl(self, store, resolver):
        _add(store, "log4j", identifiers=[("purl", "pkg:maven/org.apache.logging.log4j/log4j-core")])
        resolution = resolver.resolve(Component("log4j-core", "2.14.1", "java-archive"))
        assert resolution.product.name == "log4j"
        assert resolution.strategy == "ecosystem-purl"

    def test_ecosystem_purl_from_purl_type(self, store, resolver):
        _add(store, "django", identifiers=[("purl", "pkg:pypi/django")])
        resolution = resolver.resolve(Component("django", "4.2.7", "pypi"))
        assert resolution.product.name == "django"
        assert resolution.strategy == "ecosystem-purl"

    def test_generic_purl(self, store, resolver):
        _add(store, "redis", identifiers=[("purl", "pkg:generic/redis")])
        resolution = resolver.resolve(Component("redis", "7.2.4", "binary"))
        assert resolution.strategy == "generic-purl"

    def test_cpe(self, store, resolver):
        _add(store, "openssl", identifiers=[("cpe", "cpe:2.3:a:openssl:openssl")])
        component = Component(
            "libssl3",
            "3.0.11",
            "deb",
            cpes=("cpe:2.3:a:libssl3:libssl3:3.0.11:*:*:*:*:*:*:*", "cpe:2.3:a:openssl:openssl:3.0.11:*:*:*:*:*:*:*"),
        )
        resolution = resolver.resolve(component)
        assert resolution.product.name == "openssl"
        assert resolution.strategy == "cpe"

    def test_name_with_suffix_stripped(self, store, resolver):
        _add(store, "postgresql")
        resolution = resolver.resolve(Component("postgresql-common", "15", "deb"))
        assert resolution.product.name == "postgresql"
        assert resolution.strategy == "name"

    def test_only_one_suffix_is_stripped(self, store, resolver):
        _add(store, "foo")
        assert resolver.resolve(Component("foo-dev-libs", "1.0", "binary")) is None

    def test_alias(self, store, resolver):
        _add(store, "python", aliases=["cpython"])
        resolution = resolver.resolve(Component("CPython", "3.12.1", "binary"))
        assert resolution.product.name == "python"
        assert resolution.strategy == "alias"

    def test_repology(self, store, resolver):
        _add(store, "nodejs", identifiers=[("repology", "node")])
        resolution = resolver.resolve(Component("node", "20.1.0", "binary"))
        assert resolution.product.name == "nodejs"
        assert resolution.strategy == "repology"

    def test_no_match(self, store, resolver):
        _add(store, "python")
        assert resolver.resolve(Component("left-pad", "1.3.0", "npm")) is None

    def test_component_without_name_or_purl(self, resolver):
        assert resolver.resolve(Component("", "", "")) is None

    def test_resolution_carries_cycles(self, store, resolver):
        _add(
            store,
            "go",
            releases=[make_release("1.21", release_date="2023-08-08"), make_release("1.22", release_date="2024-02-06")],
        )
        resolution = resolver.resolve(Component("go", "1.22.1", "binary"))
        assert [c.name for c in resolution.cycles] == ["1.22", "1.21"]


class TestStrategyPrecedence:
    def test_exact_purl_beats_name_match(self, store, resolver):
        # "openssl" matches by name, "openssl-fips" owns the component's exact PURL
        _add(store, "openssl")
        _add(store, "openssl-fips", identifiers=[("purl", "pkg:deb/debian/openssl@3.0.11")])

        component = Component("openssl", "3.0.11", "deb", purl="pkg:deb/debian/openssl@3.0.11")
        resolution = resolver.resolve(component)

        assert resolution.product.name == "openssl-fips"
        assert resolution.strategy == "purl"

    def test_resolution_is_deterministic(self, store, resolver):
        _add(store, "alpha", identifiers=[("purl", "pkg:generic/tool")])
        _add(store, "beta", identifiers=[("purl", "pkg:generic/tool")])
        component = Component("tool", "1.0", "binary")

        names = {resolver.resolve(component).product.name for _ in range(10)}

        assert names == {"alpha"}


class TestResolveOS:
    def test_mapped_distro(self, store, resolver):
        _add(store, "alpine-linux", category="os")
        resolution = resolver.resolve_os(OSRelease(id="alpine", version_id="3.19.1"))
        assert resolution.product.name == "alpine-linux"
        assert resolution.strategy == "os-name"

    def test_distro_id_is_case_insensitive(self, store, resolver):
        _add(store, "debian", category="os")
        assert resolver.resolve_os(OSRelease(id="Debian")).product.name == "debian"

    def test_unmapped_distro_uses_raw_id(self, store, resolver):
        _add(store, "wolfi", category="os")
        assert resolver.resolve_os(OSRelease(id="wolfi")).product.name == "wolfi"

    def test_distro_alias(self, store, resolver):
        _add(store, "rhel", category="os", aliases=["redhat"])
        tables = ResolutionTables(distro_products=MappingProxyType({"rhel": "redhat"}))
        resolution = ComponentResolver(store, tables).resolve_os(OSRelease(id="rhel"))
        assert resolution.product.name == "rhel"
        assert resolution.strategy == "os-alias"

    def test_empty_id(self, resolver):
        assert resolver.resolve_os(OSRelease(id="")) is None


class TestResolutionTables:
    def test_defaults_are_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_TABLES.purl_types["swift"] = "swift"

    def test_normalize_name(self):
        assert DEFAULT_TABLES.normalize_name("libxml2-dev") == "libxml2"
        assert DEFAULT_TABLES.normalize_name("-dev") == "-dev"
        assert DEFAULT_TABLES.normalize_name("curl") == "curl"

    def test_purl_type_for(self):
        assert DEFAULT_TABLES.purl_type_for("python") == "pypi"
        assert DEFAULT_TABLES.purl_type_for("go-module") == "golang"
        assert DEFAULT_TABLES.purl_type_for("binary") is None

    def test_purl_types_map_to_themselves(self):
        assert DEFAULT_TABLES.purl_type_for("pypi") == "pypi"
        assert DEFAULT_TABLES.purl_type_for("golang") == "golang"
        assert DEFAULT_TABLES.purl_type_for("unknown") is None
