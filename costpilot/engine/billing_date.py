"""Latest complete billing date resolution.

Billing providers commit usage with a lag, so the most recent day in the
store is often only partially ingested. The resolver picks the newest day
that looks complete.
"""

import math
from collections.abc import Iterable
from datetime import date, timedelta
from decimal import Decimal

from costpilot.engine.types import CostPoint

# Yesterday is treated as partial when both its total and its resource count
# fall below this share of the day before.
COMPLETENESS_RATIO = Decimal("0.4")


def resolve_latest_complete_billing_date(
    points: Iterable[CostPoint],
    current_date: date,
) -> date | None:
    """Return the most recent complete billing date, or None without data.

    Only dates up to and including ``current_date - 1`` are considered.
    """
    yesterday = current_date - timedelta(days=1)
    totals: dict[date, Decimal] = {}
    resources: dict[date, set[str]] = {}

    for point in points:
        if point.usage_date > yesterday:
            continue
        totals[point.usage_date] = totals.get(point.usage_date, Decimal("0")) + point.cost
        resources.setdefault(point.usage_date, set()).add(point.resource_id.strip().lower())

    if not totals:
        return None

    if yesterday not in totals:
        return max(totals)

    day_before = yesterday - timedelta(days=1)
    if day_before not in totals:
        return yesterday

    yesterday_total = totals[yesterday]
    prior_total = totals[day_before]
    yesterday_count = len(resources[yesterday])
    prior_count = len(resources[day_before])

    totals_incomplete = prior_total > 0 and yesterday_total < prior_total * COMPLETENESS_RATIO
    count_floor = max(1, math.floor(prior_count * COMPLETENESS_RATIO))
    resources_incomplete = prior_count > 0 and yesterday_count < count_floor

    if totals_incomplete and resources_incomplete:
        return day_before
    return yesterday
