"""Record types for the EOL catalog.

Rows read from the catalog are returned as frozen dataclasses. EOL and
end-of-active-support information is modelled as a small tagged union
(:class:`EolDate`, :class:`EolFlag`, :data:`EOL_UNSET`) instead of a pair of
nullable columns, so callers cannot observe both a date and a flag at once.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class EolDate:
    """An absolute date (``YYYY-MM-DD`` or RFC 3339) at which the cycle ends."""

    value: str


@dataclass(frozen=True)
class EolFlag:
    """A boolean statement from upstream that the cycle has (or has not) ended."""

    value: bool


@dataclass(frozen=True)
class EolUnset:
    """Upstream published neither a date nor a flag."""


EolInfo = Union[EolDate, EolFlag, EolUnset]

EOL_UNSET = EolUnset()


def eol_info_from_fields(date_value: Any, flag_value: Optional[bool]) -> EolInfo:
    """
    Build an :data:`EolInfo` from an upstream ``xxxFrom`` / ``isXxx`` pair.

    A non-empty date always wins over the flag.
    """
    if date_value:
        return EolDate(str(date_value))
    if flag_value is not None:
        return EolFlag(bool(flag_value))
    return EOL_UNSET


def eol_info_to_columns(info: EolInfo) -> Tuple[Optional[str], Optional[int]]:
    """Split an :data:`EolInfo` into its ``(date, boolean)`` storage columns."""
    if isinstance(info, EolDate):
        return info.value, None
    if isinstance(info, EolFlag):
        return None, int(info.value)
    return None, None


def eol_info_from_columns(date_value: Any, flag_value: Optional[int]) -> EolInfo:
    """Inverse of :func:`eol_info_to_columns`."""
    if date_value:
        return EolDate(str(date_value))
    if flag_value is not None:
        return EolFlag(bool(flag_value))
    return EOL_UNSET


def eol_info_to_json(info: EolInfo) -> Any:
    """JSON form of an :data:`EolInfo`: the date string, the bool, or ``None``."""
    if isinstance(info, (EolDate, EolFlag)):
        return info.value
    return None


def compute_content_hash(payload: Dict[str, Any]) -> str:
    """
    Compute a deterministic digest of a record's semantic fields.

    The payload is serialized as canonical JSON (sorted keys, no whitespace)
    before hashing, so key order in the upstream document does not matter.
    """
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    label: Optional[str]
    total_products: int


@dataclass(frozen=True)
class Product:
    """A product row. ``aliases`` and ``tags`` keep their upstream order."""

    id: int
    name: str
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    label: Optional[str] = None
    link: Optional[str] = None
    version_command: Optional[str] = None
    aliases: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    content_hash: Optional[str] = None


@dataclass(frozen=True)
class Cycle:
    """One release line of a product."""

    id: int
    product_id: int
    name: str
    label: Optional[str] = None
    codename: Optional[str] = None
    release_date: Optional[str] = None
    eol: EolInfo = EOL_UNSET
    is_lts: bool = False
    lts_from: Optional[str] = None
    support: EolInfo = EOL_UNSET
    is_maintained: bool = False
    latest_version: Optional[str] = None
    latest_release_date: Optional[str] = None
    latest_link: Optional[str] = None
    content_hash: Optional[str] = None

    @property
    def eol_date(self) -> Optional[str]:
        return self.eol.value if isinstance(self.eol, EolDate) else None

    @property
    def eol_boolean(self) -> Optional[bool]:
        return self.eol.value if isinstance(self.eol, EolFlag) else None


@dataclass(frozen=True)
class Identifier:
    type: str
    value: str


@dataclass(frozen=True)
class SyncMetadata:
    last_full_sync: Optional[str] = None
    last_update_check: Optional[str] = None
    categories_synced: Tuple[str, ...] = ()
    products_count: int = 0
    cycles_count: int = 0
    identifiers_count: int = 0


@dataclass(frozen=True)
class EOLProduct:
    """A product/cycle pair returned by EOL listing queries."""

    name: str
    category_name: Optional[str]
    cycle: str
    eol_date: Optional[str]
    latest_version: Optional[str]
    is_lts: bool


@dataclass
class CatalogStats:
    """Aggregate counts over the whole catalog."""

    last_full_sync: Optional[str] = None
    last_update_check: Optional[str] = None
    categories_synced: List[str] = field(default_factory=list)
    total_categories: int = 0
    total_products: int = 0
    total_cycles: int = 0
    total_identifiers: int = 0
    eol_cycles: int = 0
    active_cycles: int = 0
    identifiers_by_type: Dict[str, int] = field(default_factory=dict)
    products_by_category: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_full_sync": self.last_full_sync,
            "last_update_check": self.last_update_check,
            "categories_synced": list(self.categories_synced),
            "total_categories": self.total_categories,
            "total_products": self.total_products,
            "total_cycles": self.total_cycles,
            "total_identifiers": self.total_identifiers,
            "eol_cycles": self.eol_cycles,
            "active_cycles": self.active_cycles,
            "identifiers_by_type": dict(self.identifiers_by_type),
            "products_by_category": dict(self.products_by_category),
        }
