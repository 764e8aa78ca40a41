"""SyncResult dataclass for catalog sync output."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ItemOutcome:
    """
    Outcome of one unit of sync work.

    Attributes:
        kind: "product", "identifiers" or "cycle"
        name: Product name, or ``product/cycle`` for cycles
        status: What happened to the item
        detail: Error text for failures, reason for skips
    """

    kind: str
    name: str
    status: OutcomeStatus
    detail: Optional[str] = None


@dataclass
class SyncResult:
    """
    Aggregate result of a full catalog sync.

    Attributes:
        products_processed: Products upserted successfully
        cycles_processed: Cycles whose content actually changed
        identifiers_processed: Identifier rows written
        duration: Wall-clock seconds
        categories: Categories the sync was filtered to
        cancelled: Cancellation stopped the run before all products were visited
        outcomes: Every recorded per-item outcome, in processing order
    """

    products_processed: int = 0
    cycles_processed: int = 0
    identifiers_processed: int = 0
    duration: float = 0.0
    categories: List[str] = field(default_factory=list)
    cancelled: bool = False
    outcomes: List[ItemOutcome] = field(default_factory=list)

    @property
    def errors(self) -> int:
        """Number of items that failed."""
        return len(self.failures)

    @property
    def failures(self) -> List[ItemOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.FAILED]

    @property
    def skipped(self) -> List[ItemOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.SKIPPED]

    def record(self, kind: str, name: str, status: OutcomeStatus, detail: Optional[str] = None) -> None:
        self.outcomes.append(ItemOutcome(kind=kind, name=name, status=status, detail=detail))

    def succeeded(self, kind: str, name: str, detail: Optional[str] = None) -> None:
        self.record(kind, name, OutcomeStatus.SUCCEEDED, detail)

    def skip(self, kind: str, name: str, reason: str) -> None:
        self.record(kind, name, OutcomeStatus.SKIPPED, reason)

    def fail(self, kind: str, name: str, error: BaseException) -> None:
        self.record(kind, name, OutcomeStatus.FAILED, f"{type(error).__name__}: {error}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "products_processed": self.products_processed,
            "cycles_processed": self.cycles_processed,
            "identifiers_processed": self.identifiers_processed,
            "errors": self.errors,
            "duration": round(self.duration, 3),
            "categories": list(self.categories),
            "cancelled": self.cancelled,
            "failures": [
                {"kind": o.kind, "name": o.name, "detail": o.detail} for o in self.failures
            ],
        }
