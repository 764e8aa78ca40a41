"""Static lookup tables for component resolution.

The tables are immutable and passed to :class:`ComponentResolver` at
construction; a caller wanting different mappings builds its own
:class:`ResolutionTables` instead of mutating module state.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

# Distro namespaces tried, in order, for OS package types
DISTRO_NAMESPACES: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        "deb": ("debian", "ubuntu"),
        "rpm": ("fedora", "redhat", "centos", "amzn"),
        "apk": ("alpine",),
    }
)

# SBOM generator package type -> PURL type
PURL_TYPES: Mapping[str, str] = MappingProxyType(
    {
        "python": "pypi",
        "gem": "gem",
        "npm": "npm",
        "go-module": "golang",
        "cargo": "cargo",
        "pub": "pub",
        "hex": "hex",
        "cocoapods": "cocoapods",
        "hackage": "hackage",
        "java-archive": "maven",
        "jenkins-plugin": "maven",
        "nuget": "nuget",
        "composer": "composer",
        "conan": "conan",
        "apk": "apk",
        "deb": "deb",
        "rpm": "rpm",
    }
)

# os-release ID -> endoflife.date product name
DISTRO_PRODUCTS: Mapping[str, str] = MappingProxyType(
    {
        "debian": "debian",
        "ubuntu": "ubuntu",
        "alpine": "alpine-linux",
        "centos": "centos",
        "rhel": "rhel",
        "fedora": "fedora",
        "amzn": "amazon-linux",
        "amazonlinux": "amazon-linux",
        "almalinux": "almalinux",
        "rocky": "rocky-linux",
        "opensuse": "opensuse",
        "sles": "sles",
        "ol": "oracle-linux",
        "oraclelinux": "oracle-linux",
        "arch": "arch",
        "manjaro": "manjaro",
        "linuxmint": "linuxmint",
        "pop": "pop-os",
        "elementary": "elementary-os",
        "nixos": "nixos",
        "void": "void-linux",
        "gentoo": "gentoo",
        "slackware": "slackware",
        "photon": "photon",
        "clear-linux": "clear-linux",
        "flatcar": "flatcar",
    }
)

# Packaging suffixes stripped (once) before name matching
NAME_SUFFIXES: Tuple[str, ...] = ("-dev", "-devel", "-libs", "-common", "-bin", "-tools", "-utils")


@dataclass(frozen=True)
class ResolutionTables:
    distro_namespaces: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: DISTRO_NAMESPACES)
    purl_types: Mapping[str, str] = field(default_factory=lambda: PURL_TYPES)
    distro_products: Mapping[str, str] = field(default_factory=lambda: DISTRO_PRODUCTS)
    name_suffixes: Tuple[str, ...] = NAME_SUFFIXES

    def purl_type_for(self, package_type: str) -> Optional[str]:
        """PURL type for a generator package type; PURL types map to themselves."""
        if package_type in self.purl_types:
            return self.purl_types[package_type]
        if package_type in self.purl_types.values():
            return package_type
        return None

    def product_for_distro(self, distro_id: str) -> str:
        """Catalog product for an os-release ID; unmapped IDs are returned as-is."""
        return self.distro_products.get(distro_id.lower(), distro_id)

    def normalize_name(self, name: str) -> str:
        """Strip the first matching packaging suffix, never more than one."""
        for suffix in self.name_suffixes:
            if len(name) > len(suffix) and name.endswith(suffix):
                return name[: -len(suffix)]
        return name


DEFAULT_TABLES = ResolutionTables()
