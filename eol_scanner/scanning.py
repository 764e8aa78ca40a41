"""EOL scanning of SBOM components against the local catalog.

The scanner keeps the catalog fresh (syncing when it was never synced or is
older than ``max_age``), then resolves and evaluates every component. The
OS, when known, is reported first.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

from ._catalog.store import CatalogStore, default_db_path
from ._resolution.component import Component, OSRelease
from ._resolution.evaluator import DEFAULT_FORWARD_LOOKUP_DAYS, MAX_LOOKUP_DAYS, EOLStatus, Evaluation, evaluate
from ._resolution.resolver import ComponentResolver
from ._resolution.tables import DEFAULT_TABLES, ResolutionTables
from ._sync.api import BASE_URL_V1, EndOfLifeAPI
from ._sync.engine import DEFAULT_CATEGORIES, SyncEngine
from ._sync.result import SyncResult
from .exceptions import APIError, ConfigurationError, SyncError
from .logging_config import logger

DEFAULT_DB_MAX_AGE = timedelta(days=7)
DEFAULT_MAX_WORKERS = 8


@dataclass
class ScannerConfig:
    """Configuration settings for a scan."""

    db_path: Optional[str] = None
    max_age: timedelta = DEFAULT_DB_MAX_AGE
    forward_lookup_days: int = DEFAULT_FORWARD_LOOKUP_DAYS
    auto_update: bool = True
    categories: List[str] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    api_base_url: str = BASE_URL_V1
    max_workers: int = DEFAULT_MAX_WORKERS

    def validate(self) -> None:
        """
        Validate configuration settings.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.forward_lookup_days < 0:
            raise ConfigurationError("Forward lookup days cannot be negative")
        if self.forward_lookup_days > MAX_LOOKUP_DAYS:
            raise ConfigurationError(f"Forward lookup days cannot exceed {MAX_LOOKUP_DAYS}")
        if self.max_age <= timedelta(0):
            raise ConfigurationError("Catalog max age must be positive")
        if self.max_age > timedelta(days=MAX_LOOKUP_DAYS):
            raise ConfigurationError(f"Catalog max age cannot exceed {MAX_LOOKUP_DAYS} days")
        if not self.categories:
            raise ConfigurationError("At least one category must be synced")
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")

        parsed = urlparse(self.api_base_url)
        if parsed.scheme not in ("http", "https"):
            raise ConfigurationError("API base URL must start with http:// or https://")
        if not parsed.netloc:
            raise ConfigurationError("API base URL must include a valid hostname")
        if parsed.scheme == "http":
            logger.warning("Using HTTP (not HTTPS) for the catalog API")


@dataclass
class ComponentResult:
    """Scan result for a single component."""

    name: str
    version: str
    type: str
    purl: Optional[str] = None
    status: EOLStatus = EOLStatus.UNKNOWN
    eol_date: Optional[str] = None
    days_until_eol: Optional[int] = None
    matched_product: Optional[str] = None
    matched_cycle: Optional[str] = None
    latest_version: Optional[str] = None
    is_lts: bool = False
    match_strategy: Optional[str] = None

    def apply(self, evaluation: Evaluation) -> None:
        self.status = evaluation.status
        self.eol_date = evaluation.eol_date
        self.days_until_eol = evaluation.days_until_eol
        self.matched_cycle = evaluation.matched_cycle
        self.latest_version = evaluation.latest_version
        self.is_lts = evaluation.is_lts

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return {key: value for key, value in data.items() if value is not None}


@dataclass
class OSInfo:
    """EOL information for the image's operating system."""

    id: str
    name: str = ""
    version: str = ""
    version_id: str = ""
    pretty_name: str = ""
    status: EOLStatus = EOLStatus.UNKNOWN
    eol_date: Optional[str] = None
    days_until_eol: Optional[int] = None
    matched_product: Optional[str] = None
    matched_cycle: Optional[str] = None
    is_lts: bool = False
    match_strategy: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return {key: value for key, value in data.items() if value is not None}

    def as_component(self) -> ComponentResult:
        """The OS as the first row of the component list."""
        return ComponentResult(
            name=self.pretty_name or f"{self.name or self.id} {self.version}".strip(),
            version=self.version_id or self.version,
            type="os",
            status=self.status,
            eol_date=self.eol_date,
            days_until_eol=self.days_until_eol,
            matched_product=self.matched_product,
            matched_cycle=self.matched_cycle,
            is_lts=self.is_lts,
            match_strategy=self.match_strategy,
        )


@dataclass
class ScanSummary:
    """Overall scan results with per-status counts."""

    source: str = ""
    scan_time: str = field(default_factory=lambda: datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"))
    db_last_updated: Optional[str] = None
    forward_lookup_days: int = DEFAULT_FORWARD_LOOKUP_DAYS
    os: Optional[OSInfo] = None
    components: List[ComponentResult] = field(default_factory=list)

    def add(self, result: ComponentResult) -> None:
        self.components.append(result)

    def count(self, status: EOLStatus) -> int:
        return sum(1 for c in self.components if c.status is status)

    @property
    def total_components(self) -> int:
        return len(self.components)

    @property
    def eol_count(self) -> int:
        return self.count(EOLStatus.EOL)

    @property
    def eol_soon_count(self) -> int:
        return self.count(EOLStatus.EOL_SOON)

    @property
    def active_count(self) -> int:
        return self.count(EOLStatus.ACTIVE)

    @property
    def unknown_count(self) -> int:
        return self.count(EOLStatus.UNKNOWN)

    @property
    def has_eol_components(self) -> bool:
        return self.eol_count > 0 or self.eol_soon_count > 0

    def by_status(self, status: EOLStatus) -> List[ComponentResult]:
        return [c for c in self.components if c.status is status]

    def eol_components(self) -> List[ComponentResult]:
        """Components that are EOL or EOL soon."""
        return [c for c in self.components if c.status in (EOLStatus.EOL, EOLStatus.EOL_SOON)]

    def to_dict(self, only_eol: bool = False) -> Dict[str, Any]:
        components = self.eol_components() if only_eol else self.components
        data: Dict[str, Any] = {
            "source": self.source,
            "scan_time": self.scan_time,
            "db_last_updated": self.db_last_updated,
            "forward_lookup_days": self.forward_lookup_days,
            "total_components": self.total_components,
            "eol_components": self.eol_count,
            "eol_soon_components": self.eol_soon_count,
            "active_components": self.active_count,
            "unknown_components": self.unknown_count,
            "components": [c.to_dict() for c in components],
        }
        if self.os is not None:
            data["os"] = self.os.to_dict()
        return data


class Scanner:
    """
    Checks components against the EOL catalog.

    Example:
        with Scanner(ScannerConfig(forward_lookup_days=180)) as scanner:
            scanner.ensure_catalog()
            summary = scanner.scan(components, os_release, source="nginx:latest")
    """

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        store: Optional[CatalogStore] = None,
        api: Optional[EndOfLifeAPI] = None,
        tables: ResolutionTables = DEFAULT_TABLES,
    ) -> None:
        self.config = config or ScannerConfig()
        self.config.validate()
        self._owns_store = store is None
        self.store = store or CatalogStore(self.config.db_path or default_db_path())
        self.api = api or EndOfLifeAPI(base_url=self.config.api_base_url)
        self.engine = SyncEngine(self.store, self.api)
        self.resolver = ComponentResolver(self.store, tables)

    def close(self) -> None:
        self.api.close()
        if self._owns_store:
            self.store.close()

    def __enter__(self) -> "Scanner":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def ensure_catalog(self, cancel_event: Optional[threading.Event] = None) -> Optional[SyncResult]:
        """
        Sync the catalog if it was never synced, or if it is stale and
        auto-update is enabled.

        A failed refresh of an existing catalog is logged and the stale data
        is used; a failed first sync raises.

        Returns:
            The sync result if a sync ran, else ``None``

        Raises:
            SyncError: If the catalog has never been synced and the sync failed
        """
        never_synced = self.store.get_sync_metadata().last_full_sync is None
        stale = self.engine.needs_refresh(self.config.max_age)

        if never_synced:
            logger.info("EOL catalog is empty, performing initial sync")
        elif stale and self.config.auto_update:
            logger.info("EOL catalog is stale, refreshing")
        else:
            if stale:
                logger.warning("EOL catalog is stale and auto-update is disabled")
            else:
                logger.debug("EOL catalog is up to date")
            self.store.touch_update_check()
            return None

        try:
            return self.engine.full_sync(self.config.categories, cancel_event=cancel_event)
        except (APIError, SyncError) as e:
            if never_synced:
                raise SyncError(f"Failed to sync EOL catalog: {e}") from e
            logger.warning(f"Catalog refresh failed, using existing data: {e}")
            return None

    def check_component(self, component: Component) -> ComponentResult:
        """Resolve and evaluate one component."""
        result = ComponentResult(
            name=component.name,
            version=component.version,
            type=component.type,
            purl=component.purl,
        )
        resolution = self.resolver.resolve(component)
        if resolution is None:
            return result

        result.matched_product = resolution.product.name
        result.match_strategy = resolution.strategy
        result.apply(evaluate(resolution.cycles, component.version, self.config.forward_lookup_days))
        return result

    def check_os(self, os_release: OSRelease) -> OSInfo:
        """Resolve and evaluate the image's distribution."""
        info = OSInfo(
            id=os_release.id,
            name=os_release.name,
            version=os_release.version,
            version_id=os_release.version_id,
            pretty_name=os_release.pretty_name,
        )
        resolution = self.resolver.resolve_os(os_release)
        if resolution is None:
            return info

        info.matched_product = resolution.product.name
        info.match_strategy = resolution.strategy
        evaluation = evaluate(resolution.cycles, os_release.match_version, self.config.forward_lookup_days)
        info.status = evaluation.status
        info.eol_date = evaluation.eol_date
        info.days_until_eol = evaluation.days_until_eol
        info.matched_cycle = evaluation.matched_cycle
        info.is_lts = evaluation.is_lts
        return info

    def scan(
        self,
        components: Iterable[Component],
        os_release: Optional[OSRelease] = None,
        source: str = "",
    ) -> ScanSummary:
        """
        Check every component (and the OS, if given) against the catalog.

        Components are checked concurrently; results keep the input order
        with the OS first.
        """
        summary = ScanSummary(
            source=source,
            db_last_updated=self.store.get_sync_metadata().last_full_sync,
            forward_lookup_days=self.config.forward_lookup_days,
        )

        if os_release is not None and os_release.id:
            summary.os = self.check_os(os_release)
            summary.add(summary.os.as_component())

        component_list = list(components)
        logger.info(f"Checking {len(component_list)} components for EOL status")
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            for result in executor.map(self.check_component, component_list):
                summary.add(result)

        logger.info(
            f"Scan complete: {summary.total_components} total, {summary.eol_count} EOL, "
            f"{summary.eol_soon_count} EOL soon"
        )
        return summary
