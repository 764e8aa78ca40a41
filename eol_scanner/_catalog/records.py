"""Write-side records: upstream products and releases as accepted by the catalog.

These mirror the documents returned by ``/api/v1/products/full`` on
endoflife.date. Parsing is lenient about optional fields (missing lists,
``null`` values) but rejects documents that are not JSON objects.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .models import EOL_UNSET, EolInfo, compute_content_hash, eol_info_from_fields, eol_info_to_json


def _str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    return str(value)


def _str_list(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value if item is not None)


def _opt_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return bool(value)


@dataclass(frozen=True)
class IdentifierRecord:
    type: str
    value: str

    @property
    def is_valid(self) -> bool:
        return bool(self.type) and bool(self.value)


@dataclass(frozen=True)
class ReleaseRecord:
    """One release cycle as published upstream."""

    name: str
    label: str = ""
    codename: str = ""
    release_date: str = ""
    eol: EolInfo = EOL_UNSET
    support: EolInfo = EOL_UNSET
    is_lts: bool = False
    lts_from: str = ""
    latest_version: str = ""
    latest_release_date: str = ""
    latest_link: str = ""
    is_maintained: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ReleaseRecord":
        if not isinstance(data, dict):
            raise ValueError(f"Release entry must be an object, got {type(data).__name__}")

        latest_version = latest_date = latest_link = ""
        latest = data.get("latest")
        if isinstance(latest, str):
            latest_version = latest
        elif isinstance(latest, dict):
            latest_version = _str(latest, "name")
            latest_date = _str(latest, "date")
            latest_link = _str(latest, "link")

        return cls(
            name=_str(data, "name"),
            label=_str(data, "label"),
            codename=_str(data, "codename"),
            release_date=_str(data, "releaseDate"),
            eol=eol_info_from_fields(data.get("eolFrom"), _opt_bool(data.get("isEol"))),
            support=eol_info_from_fields(data.get("eoasFrom"), _opt_bool(data.get("isEoas"))),
            is_lts=bool(data.get("isLts")),
            lts_from=_str(data, "ltsFrom"),
            latest_version=latest_version,
            latest_release_date=latest_date,
            latest_link=latest_link,
            is_maintained=bool(data.get("isMaintained")),
        )

    def to_payload(self) -> Dict[str, Any]:
        """Semantic fields of the release; the input of its content hash."""
        return {
            "name": self.name,
            "label": self.label,
            "codename": self.codename,
            "releaseDate": self.release_date,
            "eol": eol_info_to_json(self.eol),
            "eolKind": type(self.eol).__name__,
            "support": eol_info_to_json(self.support),
            "supportKind": type(self.support).__name__,
            "isLts": self.is_lts,
            "ltsFrom": self.lts_from,
            "latest": {
                "name": self.latest_version,
                "date": self.latest_release_date,
                "link": self.latest_link,
            },
            "isMaintained": self.is_maintained,
        }

    @property
    def content_hash(self) -> str:
        return compute_content_hash(self.to_payload())


@dataclass(frozen=True)
class ProductRecord:
    """One product with its identifiers and release cycles."""

    name: str
    category: str = ""
    label: str = ""
    link: str = ""
    version_command: str = ""
    aliases: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    identifiers: Tuple[IdentifierRecord, ...] = ()
    releases: Tuple[ReleaseRecord, ...] = ()

    @classmethod
    def from_api(cls, data: Dict[str, Any], with_releases: bool = True) -> "ProductRecord":
        """
        Parse one product document.

        With ``with_releases=False`` the ``releases`` array is ignored, so a
        caller can parse and store each release on its own.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Product entry must be an object, got {type(data).__name__}")

        links = data.get("links")
        link = _str(links, "html") if isinstance(links, dict) else ""

        identifiers: List[IdentifierRecord] = []
        for entry in data.get("identifiers") or []:
            if isinstance(entry, dict):
                identifiers.append(IdentifierRecord(type=_str(entry, "type"), value=_str(entry, "id")))

        releases: Tuple[ReleaseRecord, ...] = ()
        if with_releases:
            releases = tuple(ReleaseRecord.from_api(release) for release in data.get("releases") or [])

        return cls(
            name=_str(data, "name"),
            category=_str(data, "category"),
            label=_str(data, "label"),
            link=link,
            version_command=_str(data, "versionCommand"),
            aliases=_str_list(data.get("aliases")),
            tags=_str_list(data.get("tags")),
            identifiers=tuple(identifiers),
            releases=releases,
        )

    def to_payload(self) -> Dict[str, Any]:
        """Semantic product fields, excluding identifiers and releases."""
        return {
            "name": self.name,
            "category": self.category,
            "label": self.label,
            "link": self.link,
            "versionCommand": self.version_command,
            "aliases": list(self.aliases),
            "tags": list(self.tags),
        }

    @property
    def content_hash(self) -> str:
        return compute_content_hash(self.to_payload())
