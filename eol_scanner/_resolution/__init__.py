"""Component resolution and EOL status evaluation."""

from .component import Component, OSRelease
from .evaluator import (
    DEFAULT_FORWARD_LOOKUP_DAYS,
    EOLStatus,
    Evaluation,
    evaluate,
    parse_eol_date,
    select_cycle,
)
from .resolver import ComponentResolver, Resolution, strip_purl_version
from .tables import DEFAULT_TABLES, ResolutionTables

__all__ = [
    "Component",
    "ComponentResolver",
    "DEFAULT_FORWARD_LOOKUP_DAYS",
    "DEFAULT_TABLES",
    "EOLStatus",
    "Evaluation",
    "OSRelease",
    "Resolution",
    "ResolutionTables",
    "evaluate",
    "parse_eol_date",
    "select_cycle",
    "strip_purl_version",
]
