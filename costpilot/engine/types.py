"""Value types shared by the cost anomaly and waste engine.

These are plain frozen dataclasses so the engine stays independent of the
database layer. Sync jobs convert ORM rows into these before evaluating.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class Confidence(str, Enum):
    """Qualitative confidence in a cost increase attribution."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class FindingType(str, Enum):
    """Tracked waste finding types."""

    UNATTACHED_DISK = "unattached_disk"
    UNUSED_PUBLIC_IP = "unused_public_ip"
    STOPPED_VM = "stopped_vm"


class WasteClassification(str, Enum):
    """Stopped VM classification labels."""

    POSSIBLY_UNUSED = "Possibly unused"
    LIKELY_UNUSED = "Likely unused"


@dataclass(frozen=True)
class CostPoint:
    """One resource's cost on one day."""

    usage_date: date
    resource_id: str
    cost: Decimal


@dataclass(frozen=True)
class ResourceDelta:
    """Day-over-day increase for a single resource."""

    resource_id: str
    increase: Decimal


@dataclass(frozen=True)
class CauseAttribution:
    """The resource that contributed the largest increase."""

    resource_id: str
    resource_name: str
    resource_type: str
    increase_amount: Decimal


@dataclass(frozen=True)
class CostWindow:
    """Totals and baseline around an evaluation date."""

    billing_date: date
    totals_by_date: dict[date, Decimal]
    latest_total: Decimal
    previous_total: Decimal
    baseline: Decimal

    @property
    def difference(self) -> Decimal:
        return self.latest_total - self.previous_total


@dataclass(frozen=True)
class CostEvaluation:
    """Result of evaluating one billing day."""

    event_date: date
    total_yesterday: Decimal
    total_today: Decimal
    difference: Decimal
    baseline: Decimal
    spike_flag: bool
    confidence: Confidence
    cause: CauseAttribution | None
    suggestion_text: str


@dataclass(frozen=True)
class WasteCandidate:
    """An inventory row that may become a waste finding."""

    user_id: str
    subscription_id: str
    finding_type: FindingType
    resource_id: str
    resource_name: str
    heuristic_estimate: Decimal | None


@dataclass(frozen=True)
class PriorVmFinding:
    """Fields carried over from the previous stopped VM finding."""

    resource_id: str
    detected_at: datetime
    last_seen_active_utc: datetime | None = None


@dataclass(frozen=True)
class WasteFindingDraft:
    """A waste finding ready to be persisted."""

    user_id: str
    subscription_id: str
    finding_type: FindingType
    resource_id: str
    resource_name: str
    estimated_monthly_cost: Decimal | None
    detected_at: datetime
    classification: WasteClassification | None = None
    inactive_duration_days: Decimal | None = None
    waste_confidence_level: Confidence | None = None
    last_seen_active_utc: datetime | None = None
    status: str = "Open"


@dataclass(frozen=True)
class DiskRow:
    """Unattached managed disk reported by the inventory provider."""

    resource_id: str
    name: str
    sku: str | None = None
    size_gb: int | None = None


@dataclass(frozen=True)
class PublicIpRow:
    """Public IP without an IP configuration or NAT gateway."""

    resource_id: str
    name: str
    sku: str | None = None
    allocation_method: str | None = None


@dataclass(frozen=True)
class StoppedVmRow:
    """Virtual machine in a stopped or deallocated power state."""

    resource_id: str
    name: str
    power_state: str | None = None
