"""Multi-tier matching of SBOM components to catalog products.

Strategies run in a fixed order and the first one that finds a product
wins:

1. ``purl``            exact PURL identifier
2. ``purl-base``       PURL without its version, as a prefix
3. ``distro-purl``     ``pkg:<deb|rpm|apk>/<distro>/<name>`` per known distro
4. ``ecosystem-purl``  ``pkg:<purl type>/<name>`` from the package type
5. ``generic-purl``    ``pkg:generic/<name>``
6. ``cpe``             CPE identifiers, exact then prefix
7. ``name``/``alias``/``repology``  normalized package name

Every strategy is a read-only query, so one resolver can serve many
threads at once.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from eol_scanner._catalog.models import Cycle, Product
from eol_scanner._catalog.store import CatalogStore
from eol_scanner.logging_config import logger

from .component import Component, OSRelease
from .tables import DEFAULT_TABLES, ResolutionTables

Strategy = Callable[[Component], Optional[Product]]


@dataclass(frozen=True)
class Resolution:
    """A matched product, the strategy that found it and its cycles (newest first)."""

    product: Product
    strategy: str
    cycles: Tuple[Cycle, ...] = field(default=())


def strip_purl_version(purl: str) -> str:
    """Drop everything from the last ``@`` on (version, qualifiers, subpath)."""
    at = purl.rfind("@")
    return purl[:at] if at != -1 else purl


class ComponentResolver:
    """
    Maps components to catalog products.

    Example:
        resolver = ComponentResolver(store)
        resolution = resolver.resolve(Component(name="nginx", version="1.24.0", type="deb"))
        if resolution:
            print(resolution.product.name, resolution.strategy)
    """

    def __init__(self, store: CatalogStore, tables: ResolutionTables = DEFAULT_TABLES) -> None:
        self.store = store
        self.tables = tables
        self._strategies: List[Tuple[str, Strategy]] = [
            ("purl", self._by_exact_purl),
            ("purl-base", self._by_purl_base),
            ("distro-purl", self._by_distro_purl),
            ("ecosystem-purl", self._by_ecosystem_purl),
            ("generic-purl", self._by_generic_purl),
            ("cpe", self._by_cpe),
            ("name", self._by_name),
            ("alias", self._by_alias),
            ("repology", self._by_repology),
        ]

    @property
    def strategy_names(self) -> List[str]:
        return [name for name, _ in self._strategies]

    def resolve(self, component: Component) -> Optional[Resolution]:
        """
        Find the catalog product for ``component``.

        Returns:
            The first match in strategy order, or ``None`` if nothing matched

        Raises:
            sqlite3.Error: If the catalog cannot be read
        """
        for strategy_name, strategy in self._strategies:
            product = strategy(component)
            if product is not None:
                logger.debug(f"Resolved {component.name}@{component.version} to {product.name} via {strategy_name}")
                return self._resolution(product, strategy_name)
        logger.debug(f"No catalog product for {component.name}@{component.version}")
        return None

    def resolve_os(self, os_release: OSRelease) -> Optional[Resolution]:
        """Find the ``os`` product for an os-release ID."""
        if not os_release.id:
            return None
        product_name = self.tables.product_for_distro(os_release.id)
        for strategy_name, strategy in (
            ("name", self.store.find_by_name),
            ("alias", self.store.find_by_alias),
            ("repology", self.store.find_by_repology),
        ):
            product = strategy(product_name)
            if product is not None:
                return self._resolution(product, f"os-{strategy_name}")
        logger.debug(f"No catalog product for distribution {os_release.id}")
        return None

    def _resolution(self, product: Product, strategy_name: str) -> Resolution:
        cycles = tuple(self.store.get_cycles_for_product(product.name))
        return Resolution(product=product, strategy=strategy_name, cycles=cycles)

    def _by_exact_purl(self, component: Component) -> Optional[Product]:
        if not component.purl:
            return None
        return self.store.find_by_purl(component.purl)

    def _by_purl_base(self, component: Component) -> Optional[Product]:
        if not component.purl:
            return None
        return self.store.find_by_purl_prefix(strip_purl_version(component.purl))

    def _by_distro_purl(self, component: Component) -> Optional[Product]:
        if not component.name:
            return None
        for distro in self.tables.distro_namespaces.get(component.type, ()):
            product = self.store.find_by_package(f"{component.type}/{distro}", component.name, namespaced=False)
            if product is not None:
                return product
        return None

    def _by_ecosystem_purl(self, component: Component) -> Optional[Product]:
        purl_type = self.tables.purl_type_for(component.type)
        if not purl_type or not component.name:
            return None
        return self.store.find_by_package(purl_type, component.name)

    def _by_generic_purl(self, component: Component) -> Optional[Product]:
        if not component.name:
            return None
        return self.store.find_by_package("generic", component.name)

    def _by_cpe(self, component: Component) -> Optional[Product]:
        for cpe in component.cpes:
            product = self.store.find_by_cpe(cpe)
            if product is not None:
                return product
        return None

    def _normalized_name(self, component: Component) -> str:
        return self.tables.normalize_name(component.name)

    def _by_name(self, component: Component) -> Optional[Product]:
        if not component.name:
            return None
        return self.store.find_by_name(self._normalized_name(component))

    def _by_alias(self, component: Component) -> Optional[Product]:
        if not component.name:
            return None
        return self.store.find_by_alias(self._normalized_name(component))

    def _by_repology(self, component: Component) -> Optional[Product]:
        if not component.name:
            return None
        return self.store.find_by_repology(self._normalized_name(component))
