"""EOL status evaluation for a version against a product's release cycles."""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional, Sequence

from eol_scanner._catalog.models import Cycle, EolDate, EolFlag

DEFAULT_FORWARD_LOOKUP_DAYS = 90
# Upper bound for look-ahead windows, roughly a century
MAX_LOOKUP_DAYS = 36500

EOL_DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%d",
)


class EOLStatus(str, Enum):
    ACTIVE = "active"
    EOL = "eol"
    EOL_SOON = "eol_soon"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Evaluation:
    """
    Classification of one version.

    ``eol_date`` is the stored EOL date string when it could be parsed.
    ``days_until_eol`` is only set for future dates. ``is_lts`` and
    ``latest_version`` come from the matched cycle whatever the status.
    """

    status: EOLStatus = EOLStatus.UNKNOWN
    eol_date: Optional[str] = None
    days_until_eol: Optional[int] = None
    matched_cycle: Optional[str] = None
    is_lts: bool = False
    latest_version: Optional[str] = None


def parse_eol_date(value: Any) -> Optional[date]:
    """
    Parse an EOL date into a UTC calendar date.

    Accepts RFC 3339 timestamps, ``YYYY-MM-DDTHH:MM:SSZ`` and ``YYYY-MM-DD``.
    Returns ``None`` for anything else, including non-string values.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    for fmt in EOL_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    # RFC 3339 with an explicit offset
    if "T" in text:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc)
        return parsed.date()
    return None


def matches_version(version: str, cycle: str) -> bool:
    """``3.9.1`` and ``3.9-rc1`` match cycle ``3.9``; ``3.91`` does not."""
    if version == cycle:
        return True
    return version.startswith(cycle + ".") or version.startswith(cycle + "-")


def extract_major_version(version: str) -> str:
    """Leading dot-separated token after stripping one leading ``v``."""
    if version.startswith("v"):
        version = version[1:]
    return version.split(".")[0]


def matches_major_version(version: str, cycle: str) -> bool:
    major = extract_major_version(version)
    return major != "" and major == extract_major_version(cycle)


def select_cycle(cycles: Sequence[Cycle], version: str) -> Optional[Cycle]:
    """
    Pick the cycle governing ``version``.

    Cycles are tried in the given order: first by exact or prefix match,
    then by major version. The first hit wins.
    """
    for cycle in cycles:
        if matches_version(version, cycle.name):
            return cycle
    for cycle in cycles:
        if matches_major_version(version, cycle.name):
            return cycle
    return None


def evaluate(
    cycles: Sequence[Cycle],
    version: str,
    forward_lookup_days: int = DEFAULT_FORWARD_LOOKUP_DAYS,
    today: Optional[date] = None,
) -> Evaluation:
    """
    Classify ``version`` against a product's cycles.

    Args:
        cycles: The product's cycles, in preference order
        version: Installed version
        forward_lookup_days: Window in which an upcoming EOL counts as ``eol_soon``
        today: Reference date, defaults to the current UTC date

    Returns:
        An :class:`Evaluation`; ``unknown`` when no cycle matches
    """
    cycle = select_cycle(cycles, version)
    if cycle is None:
        return Evaluation()

    common = {
        "matched_cycle": cycle.name,
        "is_lts": cycle.is_lts,
        "latest_version": cycle.latest_version,
    }

    if isinstance(cycle.eol, EolFlag) and cycle.eol.value:
        return Evaluation(status=EOLStatus.EOL, **common)

    if isinstance(cycle.eol, EolDate):
        eol_day = parse_eol_date(cycle.eol.value)
        if eol_day is not None:
            today = today or datetime.now(timezone.utc).date()
            if eol_day <= today:
                return Evaluation(status=EOLStatus.EOL, eol_date=cycle.eol.value, **common)
            days = (eol_day - today).days
            if days < forward_lookup_days:
                status = EOLStatus.EOL_SOON
            else:
                status = EOLStatus.ACTIVE
            return Evaluation(status=status, eol_date=cycle.eol.value, days_until_eol=days, **common)

    if cycle.is_maintained:
        return Evaluation(status=EOLStatus.ACTIVE, **common)

    return Evaluation(**common)
