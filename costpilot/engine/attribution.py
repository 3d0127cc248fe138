"""Per-resource day-over-day deltas and top cause selection.

Resource ids are compared case-insensitively; the first spelling seen is
kept for display.
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from costpilot.engine.types import CauseAttribution, CostPoint, ResourceDelta

UNKNOWN_RESOURCE_NAME = "Unknown Resource"
UNKNOWN_RESOURCE_TYPE = "unknown"


def normalize_resource_id(resource_id: str) -> str:
    return resource_id.strip().lower()


def resource_totals(points: Iterable[CostPoint], day: date) -> dict[str, tuple[str, Decimal]]:
    """Per-resource totals for one day.

    Returns:
        Mapping of normalized id -> (display id, total cost)
    """
    totals: dict[str, tuple[str, Decimal]] = {}
    for point in points:
        if point.usage_date != day:
            continue
        key = normalize_resource_id(point.resource_id)
        display_id, amount = totals.get(key, (point.resource_id, Decimal("0")))
        totals[key] = (display_id, amount + point.cost)
    return totals


def compute_resource_deltas(
    current: dict[str, tuple[str, Decimal]],
    previous: dict[str, tuple[str, Decimal]],
) -> list[ResourceDelta]:
    """Strictly positive deltas for every resource seen on either day.

    A resource missing on one of the days counts as zero cost there.
    Sorted by increase, largest first.
    """
    deltas = []
    for key in list(current) + [k for k in previous if k not in current]:
        display_id, today = current.get(key, (None, Decimal("0")))
        prior_id, yesterday = previous.get(key, (None, Decimal("0")))
        increase = today - yesterday
        if increase > 0:
            deltas.append(ResourceDelta(resource_id=display_id or prior_id, increase=increase))

    deltas.sort(key=lambda d: d.increase, reverse=True)
    return deltas


def select_top_cause(deltas: list[ResourceDelta]) -> CauseAttribution | None:
    """Pick the resource with the largest positive increase."""
    top: ResourceDelta | None = None
    for delta in deltas:
        if delta.increase <= 0:
            continue
        if top is None or delta.increase > top.increase:
            top = delta

    if top is None:
        return None

    return CauseAttribution(
        resource_id=top.resource_id,
        resource_name=parse_resource_name(top.resource_id),
        resource_type=parse_resource_type(top.resource_id),
        increase_amount=top.increase,
    )


def _segments(resource_id: str | None) -> list[str]:
    if not resource_id:
        return []
    return [part.strip() for part in resource_id.split("/") if part.strip()]


def parse_resource_name(resource_id: str | None, default: str = UNKNOWN_RESOURCE_NAME) -> str:
    """Last path segment of an Azure resource id."""
    parts = _segments(resource_id)
    return parts[-1] if parts else default


def parse_resource_type(resource_id: str | None) -> str:
    """Provider namespace and type segments, e.g. Microsoft.Compute/virtualMachines.

    Nested types are joined as well, so a SQL database id yields
    Microsoft.Sql/servers/databases.
    """
    parts = _segments(resource_id)
    marker = next(
        (i for i, part in enumerate(parts) if part.lower() == "providers"),
        None,
    )
    if marker is None or marker + 1 >= len(parts):
        return UNKNOWN_RESOURCE_TYPE

    type_parts = [parts[marker + 1]]
    type_parts.extend(parts[marker + 2::2])
    return "/".join(type_parts)
