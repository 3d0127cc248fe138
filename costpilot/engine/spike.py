"""Spike detection, confidence scoring and suggestion texts.

The rules are fixed multiplicative and additive thresholds so every flag
can be explained from the stored totals.
"""

from collections.abc import Iterable
from dataclasses import replace
from datetime import date, timedelta
from decimal import ROUND_HALF_EVEN, Decimal

from costpilot.engine.attribution import (
    compute_resource_deltas,
    resource_totals,
    select_top_cause,
)
from costpilot.engine.baseline import compute_cost_window
from costpilot.engine.types import (
    Confidence,
    CostEvaluation,
    CostPoint,
    ResourceDelta,
)

DEFAULT_SPIKE_THRESHOLD = Decimal("5")
SPIKE_MULTIPLIER = Decimal("1.5")

HIGH_CONFIDENCE_MIN_INCREASE = Decimal("5")
HIGH_CONFIDENCE_MIN_SHARE = Decimal("0.65")

AMOUNT_QUANTUM = Decimal("0.0001")

NO_SPIKE_TEXT = "No spike detected today."
SPIKE_SUMMARY_TEXT = "Spike detected. Review top cause resource."
GENERIC_SUGGESTION = (
    "Review this resource in Azure Cost Analysis and compare today versus yesterday usage."
)

# Ordered (resource type substrings, suggestion) pairs, matched case-insensitively
SUGGESTIONS_BY_TYPE: list[tuple[tuple[str, ...], str]] = [
    (
        ("microsoft.compute/virtualmachines",),
        "VM cost increased. Check VM size, uptime schedule, and autoscaling settings.",
    ),
    (
        ("microsoft.compute/disks",),
        "Disk cost increased. Check unattached disks and premium tier allocations.",
    ),
    (
        ("microsoft.network/publicipaddresses",),
        "Public IP cost increased. Review unattached or idle public IPs.",
    ),
    (
        ("microsoft.web/serverfarms", "microsoft.web/sites"),
        "App Service cost increased. Verify plan tier changes and scaling activity.",
    ),
]


def round_amount(value: Decimal) -> Decimal:
    """Round a money amount to 4 places using banker's rounding."""
    return value.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_EVEN)


def resolve_threshold(threshold: Decimal | float | int | None) -> Decimal:
    """Return the caller's threshold, or the default when missing or <= 0."""
    if threshold is None:
        return DEFAULT_SPIKE_THRESHOLD
    value = Decimal(str(threshold))
    if value <= 0:
        return DEFAULT_SPIKE_THRESHOLD
    return value


def is_spike(
    latest_total: Decimal,
    baseline: Decimal,
    difference: Decimal,
    threshold: Decimal | None = None,
) -> bool:
    """A spike needs a positive baseline, 1.5x over it, and a difference over threshold."""
    limit = resolve_threshold(threshold)
    return (
        baseline > 0
        and latest_total > baseline * SPIKE_MULTIPLIER
        and difference > limit
    )


def score_confidence(deltas: Iterable[ResourceDelta]) -> Confidence:
    """Score how clearly one resource explains the day's increase.

    High: the top increase is at least 5 and dominates (no runner-up, twice
    the runner-up, or at least 65% of all positive increases).
    Medium: several resources increased without a dominant one.
    Low: nothing increased, or a single increase below 5.
    """
    positive = sorted(
        (d.increase for d in deltas if d.increase > 0),
        reverse=True,
    )
    if not positive:
        return Confidence.LOW

    top = positive[0]
    second = positive[1] if len(positive) > 1 else Decimal("0")
    total_positive = sum(positive, Decimal("0"))
    top_share = top / total_positive if total_positive > 0 else Decimal("0")

    if top >= HIGH_CONFIDENCE_MIN_INCREASE and (
        second <= 0 or top >= second * 2 or top_share >= HIGH_CONFIDENCE_MIN_SHARE
    ):
        return Confidence.HIGH
    if len(positive) >= 2:
        return Confidence.MEDIUM
    return Confidence.LOW


def build_suggestion(resource_type: str | None, spike_flag: bool) -> str:
    """Event suggestion text for the top cause resource type."""
    if not spike_flag:
        return NO_SPIKE_TEXT

    normalized = (resource_type or "").lower()
    for patterns, text in SUGGESTIONS_BY_TYPE:
        if any(pattern in normalized for pattern in patterns):
            return text
    return GENERIC_SUGGESTION


def summary_suggestion(spike_flag: bool) -> str:
    """Short suggestion shown on the summary card."""
    return SPIKE_SUMMARY_TEXT if spike_flag else NO_SPIKE_TEXT


def evaluate_cost_day(
    points: Iterable[CostPoint],
    evaluation_date: date,
    threshold: Decimal | None = None,
) -> CostEvaluation:
    """Evaluate one billing day against the day before and the 7-day baseline.

    Only points up to and including ``evaluation_date`` are used. Amounts are
    rounded to 4 places so re-evaluating the same records gives the same row.
    """
    points = [p for p in points if p.usage_date <= evaluation_date]
    window = compute_cost_window(points, evaluation_date)
    difference = window.difference

    deltas = compute_resource_deltas(
        resource_totals(points, evaluation_date),
        resource_totals(points, evaluation_date - timedelta(days=1)),
    )
    cause = select_top_cause(deltas)
    spike_flag = is_spike(window.latest_total, window.baseline, difference, threshold)

    if cause is not None:
        cause = replace(cause, increase_amount=round_amount(cause.increase_amount))

    return CostEvaluation(
        event_date=evaluation_date,
        total_yesterday=round_amount(window.previous_total),
        total_today=round_amount(window.latest_total),
        difference=round_amount(difference),
        baseline=round_amount(window.baseline),
        spike_flag=spike_flag,
        confidence=score_confidence(deltas),
        cause=cause,
        suggestion_text=build_suggestion(cause.resource_type if cause else None, spike_flag),
    )
