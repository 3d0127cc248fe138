"""Waste finding classification.

Turns inventory rows (unattached disks, unused public IPs, stopped VMs) into
findings with a monthly cost estimate. Stopped VMs additionally get an
inactivity duration and a classification derived from their cost history,
and are suppressed when they follow a regular stop/start schedule.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_EVEN, Decimal

from costpilot.engine.attribution import normalize_resource_id, parse_resource_name
from costpilot.engine.types import (
    Confidence,
    CostPoint,
    DiskRow,
    FindingType,
    PriorVmFinding,
    PublicIpRow,
    StoppedVmRow,
    WasteCandidate,
    WasteClassification,
    WasteFindingDraft,
)

LOOKBACK_DAYS = 30
ACTIVITY_WINDOW_DAYS = 14
TRAILING_COST_DAYS = 7

# Active on this many of the last 14 days means a stop/start schedule
STOP_START_MIN_ACTIVE_DAYS = 6
MIN_INACTIVE_DAYS = 2
LIKELY_UNUSED_AFTER_DAYS = 7

MAX_RESOURCE_ID_LENGTH = 1024
MAX_RESOURCE_NAME_LENGTH = 256

ESTIMATE_QUANTUM = Decimal("0.01")

DISK_FLAT_ESTIMATE = Decimal("10")
DISK_RATE_PREMIUM = Decimal("0.15")
DISK_RATE_STANDARD_SSD = Decimal("0.08")
DISK_RATE_STANDARD = Decimal("0.05")
DISK_RATE_OTHER = Decimal("0.07")

PUBLIC_IP_STANDARD = Decimal("3.5")
PUBLIC_IP_STATIC = Decimal("2.5")
PUBLIC_IP_BASIC = Decimal("2")

STOPPED_VM_ESTIMATE = Decimal("20")


# =============================================================================
# Heuristic estimates
# =============================================================================

def estimate_unattached_disk(size_gb: int | None, sku: str | None) -> Decimal:
    """Monthly estimate for a disk from its size and SKU tier."""
    if not size_gb or size_gb <= 0:
        return DISK_FLAT_ESTIMATE

    normalized = (sku or "").lower()
    if "premium" in normalized:
        rate = DISK_RATE_PREMIUM
    elif "standardssd" in normalized or "standard_ssd" in normalized:
        rate = DISK_RATE_STANDARD_SSD
    elif "standard" in normalized:
        rate = DISK_RATE_STANDARD
    else:
        rate = DISK_RATE_OTHER

    return Decimal(size_gb) * rate


def estimate_unused_public_ip(sku: str | None, allocation: str | None) -> Decimal:
    if "standard" in (sku or "").lower():
        return PUBLIC_IP_STANDARD
    if "static" in (allocation or "").lower():
        return PUBLIC_IP_STATIC
    return PUBLIC_IP_BASIC


def estimate_stopped_vm() -> Decimal:
    return STOPPED_VM_ESTIMATE


def resolve_estimate(
    trailing_cost: Decimal | None,
    heuristic: Decimal | None,
) -> Decimal | None:
    """Prefer a 30-day projection of real cost, fall back to the heuristic.

    Args:
        trailing_cost: Sum of the resource's cost over the trailing 7 days
        heuristic: Type-specific estimate, if any

    Returns:
        Estimate rounded to 2 places, or None when neither is available
    """
    if trailing_cost is not None and trailing_cost > 0:
        return _round_estimate(trailing_cost * Decimal(30) / Decimal(7))
    if heuristic is None:
        return None
    return _round_estimate(heuristic)


def _round_estimate(value: Decimal) -> Decimal:
    return value.quantize(ESTIMATE_QUANTUM, rounding=ROUND_HALF_EVEN)


# =============================================================================
# Cost activity
# =============================================================================

@dataclass
class ResourceActivity:
    """Daily cost history of one resource over the lookback window."""

    daily_costs: dict[date, Decimal] = field(default_factory=dict)

    def add(self, usage_date: date, cost: Decimal) -> None:
        self.daily_costs[usage_date] = self.daily_costs.get(usage_date, Decimal("0")) + cost

    def last_active_date(self, today: date) -> date | None:
        """Most recent day up to today with cost above zero."""
        active = [d for d, cost in self.daily_costs.items() if cost > 0 and d <= today]
        return max(active) if active else None

    def active_days(self, today: date, days: int = ACTIVITY_WINDOW_DAYS) -> int:
        """Number of days with cost in the window ending at today."""
        start = today - timedelta(days=days - 1)
        return sum(
            1 for d, cost in self.daily_costs.items()
            if cost > 0 and start <= d <= today
        )

    def trailing_cost(self, today: date, days: int = TRAILING_COST_DAYS) -> Decimal:
        start = today - timedelta(days=days - 1)
        return sum(
            (cost for d, cost in self.daily_costs.items() if start <= d <= today),
            Decimal("0"),
        )


def build_activity_profiles(points: Iterable[CostPoint]) -> dict[str, ResourceActivity]:
    """Group cost points into per-resource activity, keyed by normalized id."""
    profiles: dict[str, ResourceActivity] = {}
    for point in points:
        key = normalize_resource_id(point.resource_id)
        profiles.setdefault(key, ResourceActivity()).add(point.usage_date, point.cost)
    return profiles


# =============================================================================
# Stopped VM classification
# =============================================================================

@dataclass(frozen=True)
class StoppedVmAssessment:
    classification: WasteClassification
    confidence: Confidence
    inactive_duration_days: Decimal
    last_seen_active_utc: datetime | None


def classify_stopped_vm(
    activity: ResourceActivity | None,
    prior: PriorVmFinding | None,
    today: date,
) -> StoppedVmAssessment | None:
    """Classify a stopped VM from its cost history and the prior finding.

    Returns None when the VM should not be reported: it follows a stop/start
    schedule, or it has not been inactive for at least two days.
    """
    if activity is not None and activity.active_days(today) >= STOP_START_MIN_ACTIVE_DAYS:
        return None

    last_active = activity.last_active_date(today) if activity is not None else None
    prior_last_seen = prior.last_seen_active_utc if prior is not None else None

    if last_active is not None:
        last_seen = datetime.combine(last_active, time.min)
        inactive_days = (today - last_active).days
    elif prior_last_seen is not None:
        last_seen = prior_last_seen
        inactive_days = (today - prior_last_seen.date()).days
    elif prior is not None:
        last_seen = None
        inactive_days = (today - prior.detected_at.date()).days
    else:
        return None

    if inactive_days < MIN_INACTIVE_DAYS:
        return None

    if last_active is None and prior_last_seen is None:
        classification, confidence = WasteClassification.POSSIBLY_UNUSED, Confidence.LOW
    elif inactive_days > LIKELY_UNUSED_AFTER_DAYS:
        classification, confidence = WasteClassification.LIKELY_UNUSED, Confidence.HIGH
    else:
        classification, confidence = WasteClassification.POSSIBLY_UNUSED, Confidence.MEDIUM

    return StoppedVmAssessment(
        classification=classification,
        confidence=confidence,
        inactive_duration_days=Decimal(inactive_days).quantize(ESTIMATE_QUANTUM),
        last_seen_active_utc=last_seen,
    )


# =============================================================================
# Candidates and findings
# =============================================================================

def _display_name(name: str | None, resource_id: str) -> str:
    if name and name.strip():
        return name.strip()
    return parse_resource_name(resource_id, default="unknown")


def _truncate(value: str, max_length: int) -> str:
    return value.strip()[:max_length]


def unattached_disk_candidate(
    user_id: str, subscription_id: str, row: DiskRow
) -> WasteCandidate | None:
    if not row.resource_id or not row.resource_id.strip():
        return None
    return WasteCandidate(
        user_id=user_id,
        subscription_id=subscription_id,
        finding_type=FindingType.UNATTACHED_DISK,
        resource_id=row.resource_id,
        resource_name=_display_name(row.name, row.resource_id),
        heuristic_estimate=estimate_unattached_disk(row.size_gb, row.sku),
    )


def unused_public_ip_candidate(
    user_id: str, subscription_id: str, row: PublicIpRow
) -> WasteCandidate | None:
    if not row.resource_id or not row.resource_id.strip():
        return None
    return WasteCandidate(
        user_id=user_id,
        subscription_id=subscription_id,
        finding_type=FindingType.UNUSED_PUBLIC_IP,
        resource_id=row.resource_id,
        resource_name=_display_name(row.name, row.resource_id),
        heuristic_estimate=estimate_unused_public_ip(row.sku, row.allocation_method),
    )


def stopped_vm_candidate(
    user_id: str, subscription_id: str, row: StoppedVmRow
) -> WasteCandidate | None:
    if not row.resource_id or not row.resource_id.strip():
        return None
    return WasteCandidate(
        user_id=user_id,
        subscription_id=subscription_id,
        finding_type=FindingType.STOPPED_VM,
        resource_id=row.resource_id,
        resource_name=_display_name(row.name, row.resource_id),
        heuristic_estimate=estimate_stopped_vm(),
    )


def build_waste_findings(
    candidates: Iterable[WasteCandidate],
    activity_by_user: dict[str, dict[str, ResourceActivity]],
    prior_vm_findings: dict[tuple[str, str], PriorVmFinding],
    today: date,
    detected_at: datetime,
) -> list[WasteFindingDraft]:
    """Resolve estimates and VM classifications for a scan's candidates.

    Args:
        candidates: Inventory candidates collected across all targets
        activity_by_user: user id -> normalized resource id -> activity
        prior_vm_findings: (user id, normalized resource id) -> prior finding
        today: Scan date (UTC)
        detected_at: Timestamp stamped on every finding of this scan

    Returns:
        Findings ready to persist; suppressed or too-fresh VMs are left out
    """
    drafts: list[WasteFindingDraft] = []

    for candidate in candidates:
        key = normalize_resource_id(candidate.resource_id)
        activity = activity_by_user.get(candidate.user_id, {}).get(key)
        trailing = activity.trailing_cost(today) if activity is not None else None
        estimate = resolve_estimate(trailing, candidate.heuristic_estimate)

        draft_fields = {
            "user_id": candidate.user_id,
            "subscription_id": candidate.subscription_id,
            "finding_type": candidate.finding_type,
            "resource_id": _truncate(candidate.resource_id, MAX_RESOURCE_ID_LENGTH),
            "resource_name": _truncate(candidate.resource_name, MAX_RESOURCE_NAME_LENGTH),
            "estimated_monthly_cost": estimate,
            "detected_at": detected_at,
        }

        if candidate.finding_type == FindingType.STOPPED_VM:
            prior = prior_vm_findings.get((candidate.user_id, key))
            assessment = classify_stopped_vm(activity, prior, today)
            if assessment is None:
                continue
            draft_fields.update(
                classification=assessment.classification,
                waste_confidence_level=assessment.confidence,
                inactive_duration_days=assessment.inactive_duration_days,
                last_seen_active_utc=assessment.last_seen_active_utc,
            )

        drafts.append(WasteFindingDraft(**draft_fields))

    return drafts
