"""Descriptors handed over by the SBOM generator."""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class Component:
    """
    One package detected in an image.

    Attributes:
        name: Package name as reported by the SBOM generator
        version: Installed version string
        type: Package type (``deb``, ``python``, ``go-module``, ...)
        purl: Package URL, if known
        cpes: CPE strings, most specific first
    """

    name: str
    version: str = ""
    type: str = ""
    purl: Optional[str] = None
    cpes: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Component":
        cpes = data.get("cpes") or ()
        if isinstance(cpes, str):
            cpes = (cpes,)
        return cls(
            name=str(data.get("name") or ""),
            version=str(data.get("version") or ""),
            type=str(data.get("type") or ""),
            purl=data.get("purl") or None,
            cpes=tuple(str(c) for c in cpes if c),
        )


@dataclass(frozen=True)
class OSRelease:
    """Fields of the image's ``/etc/os-release``."""

    id: str
    name: str = ""
    version: str = ""
    version_id: str = ""
    pretty_name: str = ""

    @property
    def match_version(self) -> str:
        """Version used for cycle matching: ``VERSION_ID``, else ``VERSION``."""
        return self.version_id or self.version

    @property
    def display_name(self) -> str:
        return self.pretty_name or f"{self.name or self.id} {self.version}".strip()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OSRelease":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            version=str(data.get("version") or ""),
            version_id=str(data.get("versionID") or data.get("versionId") or data.get("version_id") or ""),
            pretty_name=str(data.get("prettyName") or data.get("pretty_name") or ""),
        )
