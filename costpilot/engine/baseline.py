"""Daily totals and trailing baseline."""

from collections.abc import Iterable
from datetime import date, timedelta
from decimal import Decimal

from costpilot.engine.types import CostPoint, CostWindow

BASELINE_DAYS = 7


def daily_totals(points: Iterable[CostPoint]) -> dict[date, Decimal]:
    """Sum cost across all resources per day."""
    totals: dict[date, Decimal] = {}
    for point in points:
        totals[point.usage_date] = totals.get(point.usage_date, Decimal("0")) + point.cost
    return totals


def compute_baseline(totals: dict[date, Decimal], billing_date: date) -> Decimal:
    """Mean of the daily totals in the 7 days ending at billing_date.

    Days without data are left out of the average rather than counted as
    zero. Returns 0 when the window is empty.
    """
    window_start = billing_date - timedelta(days=BASELINE_DAYS - 1)
    values = [
        total for day, total in totals.items()
        if window_start <= day <= billing_date
    ]
    if not values:
        return Decimal("0")
    return sum(values, Decimal("0")) / len(values)


def compute_cost_window(points: Iterable[CostPoint], billing_date: date) -> CostWindow:
    """Build totals, latest/previous totals and baseline for a billing date."""
    totals = daily_totals(p for p in points if p.usage_date <= billing_date)
    previous_date = billing_date - timedelta(days=1)

    return CostWindow(
        billing_date=billing_date,
        totals_by_date=totals,
        latest_total=totals.get(billing_date, Decimal("0")),
        previous_total=totals.get(previous_date, Decimal("0")),
        baseline=compute_baseline(totals, billing_date),
    )
