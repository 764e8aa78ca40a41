"""Reading components and OS details from SBOM files.

Three inputs are understood:

* CycloneDX JSON (``bomFormat: CycloneDX``), parsed with cyclonedx-python-lib.
  Syft's ``syft:package:type``, ``syft:cpe23`` and ``syft:distro:*``
  properties are used when present.
* Syft JSON (``artifacts`` and ``distro`` keys).
* A plain component list: ``{"components": [...], "os": {...}}`` or a bare
  JSON array of components.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component as CdxComponent
from cyclonedx.model.component import ComponentType
from packageurl import PackageURL

from ._resolution.component import Component, OSRelease
from .exceptions import SBOMInputError
from .logging_config import logger

SYFT_PACKAGE_TYPE = "syft:package:type"
SYFT_CPE = "syft:cpe23"
SYFT_DISTRO_PREFIX = "syft:distro:"

LoadedSBOM = Tuple[List[Component], Optional[OSRelease]]


def load_components(path: Union[str, Path]) -> LoadedSBOM:
    """
    Read the components and OS release from an SBOM file.

    Args:
        path: Path to a CycloneDX, Syft or plain component-list JSON file

    Returns:
        The components and the OS release, if the file has one. Syft and
        plain lists keep document order; CycloneDX components come in the
        library's sorted order.

    Raises:
        SBOMInputError: If the file cannot be read or has no recognizable shape
    """
    input_path = Path(path)
    try:
        with open(input_path, "r") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise SBOMInputError(f"SBOM file not found: {input_path}")
    except json.JSONDecodeError as e:
        raise SBOMInputError(f"Invalid JSON in SBOM file: {e}")
    except OSError as e:
        raise SBOMInputError(f"Error reading SBOM file {input_path}: {e}")

    return parse_components(data)


def parse_components(data: Any) -> LoadedSBOM:
    """Dispatch on the document shape; see :func:`load_components`."""
    if isinstance(data, list):
        return _from_component_list(data), None
    if not isinstance(data, dict):
        raise SBOMInputError(f"Unsupported SBOM document: expected an object or array, got {type(data).__name__}")

    if data.get("bomFormat") == "CycloneDX":
        logger.info("Reading CycloneDX SBOM")
        return _from_cyclonedx(data)
    if "artifacts" in data:
        logger.info("Reading Syft JSON SBOM")
        return _from_syft(data)
    if "components" in data:
        os_data = data.get("os")
        os_release = OSRelease.from_dict(os_data) if isinstance(os_data, dict) else None
        return _from_component_list(data["components"]), os_release

    raise SBOMInputError("Unsupported SBOM document: expected CycloneDX, Syft JSON or a component list")


def infer_package_type(purl: Optional[str]) -> str:
    """Package type from a PURL's type, or ``""`` if the PURL is missing or invalid."""
    if not purl:
        return ""
    try:
        return PackageURL.from_string(purl).type
    except ValueError:
        logger.debug(f"Invalid PURL {purl}, cannot infer package type")
        return ""


def _from_component_list(entries: Any) -> List[Component]:
    if not isinstance(entries, list):
        raise SBOMInputError("'components' must be a JSON array")

    components: List[Component] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise SBOMInputError(f"Component #{index} must be a JSON object")
        component = Component.from_dict(entry)
        if not component.name:
            logger.warning(f"Skipping component #{index} without a name")
            continue
        if not component.type:
            component = Component(
                name=component.name,
                version=component.version,
                type=infer_package_type(component.purl),
                purl=component.purl,
                cpes=component.cpes,
            )
        components.append(component)
    return components


def _properties(component: CdxComponent) -> Dict[str, List[str]]:
    props: Dict[str, List[str]] = {}
    for prop in component.properties or ():
        if prop.value is not None:
            props.setdefault(prop.name, []).append(prop.value)
    return props


def _walk(components: Iterable[CdxComponent]) -> Iterable[CdxComponent]:
    for component in components:
        yield component
        if component.components:
            yield from _walk(component.components)


def _from_cyclonedx(data: Dict[str, Any]) -> LoadedSBOM:
    try:
        bom = Bom.from_json(data)  # type: ignore[attr-defined]
    except Exception as e:
        raise SBOMInputError(f"Invalid CycloneDX document: {e}") from e

    components: List[Component] = []
    os_release: Optional[OSRelease] = None
    for cdx in _walk(bom.components or ()):
        props = _properties(cdx)
        if cdx.type == ComponentType.OPERATING_SYSTEM:
            if os_release is None:
                os_release = _os_from_cyclonedx(cdx, props)
            continue

        purl = cdx.purl.to_string() if cdx.purl else None
        package_type = (props.get(SYFT_PACKAGE_TYPE) or [""])[0] or (cdx.purl.type if cdx.purl else "")
        cpes: List[str] = []
        if cdx.cpe:
            cpes.append(cdx.cpe)
        cpes.extend(c for c in props.get(SYFT_CPE, []) if c not in cpes)

        components.append(
            Component(
                name=cdx.name,
                version=cdx.version or "",
                type=package_type,
                purl=purl,
                cpes=tuple(cpes),
            )
        )

    logger.info(f"Found {len(components)} components" + (f" on {os_release.display_name}" if os_release else ""))
    return components, os_release


def _os_from_cyclonedx(cdx: CdxComponent, props: Dict[str, List[str]]) -> OSRelease:
    def distro(key: str) -> str:
        values = props.get(SYFT_DISTRO_PREFIX + key)
        return values[0] if values else ""

    return OSRelease(
        id=distro("id") or cdx.name,
        name=cdx.name,
        version=cdx.version or "",
        version_id=distro("versionID") or cdx.version or "",
        pretty_name=distro("prettyName") or (cdx.description or ""),
    )


def _from_syft(data: Dict[str, Any]) -> LoadedSBOM:
    artifacts = data.get("artifacts") or []
    if not isinstance(artifacts, list):
        raise SBOMInputError("'artifacts' must be a JSON array")

    components: List[Component] = []
    for artifact in artifacts:
        if not isinstance(artifact, dict) or not artifact.get("name"):
            continue
        cpes = []
        for cpe in artifact.get("cpes") or []:
            value = cpe.get("cpe") if isinstance(cpe, dict) else cpe
            if value:
                cpes.append(str(value))
        components.append(
            Component(
                name=str(artifact["name"]),
                version=str(artifact.get("version") or ""),
                type=str(artifact.get("type") or ""),
                purl=artifact.get("purl") or None,
                cpes=tuple(cpes),
            )
        )

    os_release = None
    distro = data.get("distro")
    if isinstance(distro, dict) and distro.get("id"):
        os_release = OSRelease.from_dict(distro)
    return components, os_release
