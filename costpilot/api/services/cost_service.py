"""Cost read model service.

Every method returns a well-formed default when the user has no data yet.
"""

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from costpilot.api.services.cost_store import CostRecordStore
from costpilot.core.config import get_settings
from costpilot.engine.billing_date import resolve_latest_complete_billing_date
from costpilot.engine.spike import (
    evaluate_cost_day,
    resolve_threshold,
    round_amount,
    summary_suggestion,
)
from costpilot.engine.types import Confidence
from costpilot.schemas.cost import (
    CauseResource,
    CostSummary,
    DailyTotal,
    HistoryItem,
    Latest7DaysCost,
    ResourceCost,
    ResourceDailyCost,
    WasteFindingRead,
)

logger = logging.getLogger(__name__)

EMPTY_SUMMARY_TEXT = "No cost event yet. Run worker ingestion to generate a daily summary."
WASTE_LIST_LIMIT = 100
LATEST_DAYS = 7
# History days need their own 7-day baseline window
HISTORY_LOAD_PADDING_DAYS = 7


def resolve_currency(currencies) -> str:
    """Single currency when all rows agree, USD without rows, MIXED otherwise."""
    distinct: dict[str, str] = {}
    for currency in currencies:
        if currency and currency.strip():
            distinct.setdefault(currency.strip().lower(), currency.strip())
    if not distinct:
        return "USD"
    if len(distinct) == 1:
        return next(iter(distinct.values()))
    return "MIXED"


class CostService:
    """Service for the cost dashboard read model."""

    def __init__(self, db: Session, today: date | None = None):
        self.db = db
        self.store = CostRecordStore(db)
        self.today = today or datetime.utcnow().date()

    def _resolve_billing_date(self, user_id: str) -> date | None:
        latest = self.store.latest_usage_date(user_id, self.today - timedelta(days=1))
        if latest is None:
            return None
        # Completeness compares the newest day against the one before it
        points = self.store.cost_points(user_id, latest - timedelta(days=1), latest)
        return resolve_latest_complete_billing_date(points, self.today)

    def get_month_to_date_total(self, user_id: str) -> Decimal:
        month_start = self.today.replace(day=1)
        rows = self.store.query_daily_costs(user_id, start=month_start, end=self.today)
        return round_amount(sum((r.cost for r in rows), Decimal("0")))

    def get_summary(self, user_id: str) -> CostSummary:
        """Summary for the latest complete billing day."""
        month_to_date = self.get_month_to_date_total(user_id)
        billing_date = self._resolve_billing_date(user_id)

        if billing_date is None:
            return CostSummary(
                date=self.today,
                latest_data_date=datetime.combine(self.today, time.min),
                month_to_date_total=month_to_date,
                confidence=Confidence.LOW.value,
                suggestion_text=EMPTY_SUMMARY_TEXT,
            )

        points = self.store.cost_points(
            user_id, billing_date - timedelta(days=LATEST_DAYS), billing_date
        )
        evaluation = evaluate_cost_day(points, billing_date, get_settings().spike_threshold)
        cause = evaluation.cause

        return CostSummary(
            date=billing_date,
            latest_data_date=datetime.combine(billing_date, time.min),
            yesterday_total=evaluation.total_yesterday,
            today_total=evaluation.total_today,
            difference=evaluation.difference,
            baseline=evaluation.baseline,
            month_to_date_total=month_to_date,
            spike_flag=evaluation.spike_flag,
            confidence=evaluation.confidence.value,
            top_cause_resource=CauseResource(
                resource_id=cause.resource_id,
                resource_name=cause.resource_name,
                resource_type=cause.resource_type,
                increase_amount=cause.increase_amount,
            ) if cause else None,
            suggestion_text=summary_suggestion(evaluation.spike_flag),
        )

    def get_history(self, user_id: str, threshold: Decimal | None = None) -> list[HistoryItem]:
        """Days of the last week that spiked or whose difference exceeded the threshold.

        Newest day first.
        """
        safe_threshold = resolve_threshold(threshold)
        billing_date = self._resolve_billing_date(user_id)
        if billing_date is None:
            return []

        history_days = get_settings().history_days
        from_date = billing_date - timedelta(days=history_days - 1)
        points = self.store.cost_points(
            user_id, from_date - timedelta(days=HISTORY_LOAD_PADDING_DAYS), billing_date
        )

        history = []
        for offset in range(history_days):
            day = billing_date - timedelta(days=offset)
            evaluation = evaluate_cost_day(points, day, safe_threshold)
            if not evaluation.spike_flag and evaluation.difference <= safe_threshold:
                continue

            cause = evaluation.cause
            history.append(HistoryItem(
                date=day,
                yesterday_total=evaluation.total_yesterday,
                today_total=evaluation.total_today,
                difference=evaluation.difference,
                spike_flag=evaluation.spike_flag,
                top_resource_name=cause.resource_name if cause else None,
                top_increase_amount=cause.increase_amount if cause else None,
            ))

        return history

    def get_waste_findings(self, user_id: str) -> list[WasteFindingRead]:
        """Open findings, most expensive first, then most recent."""
        findings = sorted(
            self.store.list_open_findings(user_id),
            key=lambda f: (f.estimated_monthly_cost or Decimal("0"), f.detected_at),
            reverse=True,
        )
        return [WasteFindingRead.model_validate(f) for f in findings[:WASTE_LIST_LIMIT]]

    def get_latest_7_days(self, user_id: str) -> Latest7DaysCost:
        """Daily totals and per-resource costs for the last 7 days."""
        from_date = self.today - timedelta(days=LATEST_DAYS - 1)
        rows = self.store.query_daily_costs(user_id, start=from_date, end=self.today)
        total_currency = resolve_currency(r.currency for r in rows)

        by_date: dict[date, list] = {}
        by_resource: dict[str, list] = {}
        for row in rows:
            by_date.setdefault(row.usage_date, []).append(row)
            by_resource.setdefault(row.resource_id, []).append(row)

        daily_totals = []
        for offset in range(LATEST_DAYS):
            day = from_date + timedelta(days=offset)
            day_rows = by_date.get(day)
            if day_rows:
                daily_totals.append(DailyTotal(
                    date=day,
                    cost=round_amount(sum((r.cost for r in day_rows), Decimal("0"))),
                    currency=resolve_currency(r.currency for r in day_rows),
                ))
            else:
                daily_totals.append(DailyTotal(date=day, cost=Decimal("0"), currency=total_currency))

        resources = []
        for resource_id, resource_rows in by_resource.items():
            per_day: dict[date, Decimal] = {}
            for row in resource_rows:
                per_day[row.usage_date] = per_day.get(row.usage_date, Decimal("0")) + row.cost
            resources.append(ResourceCost(
                resource_id=resource_id,
                total_cost=round_amount(sum((r.cost for r in resource_rows), Decimal("0"))),
                currency=resolve_currency(r.currency for r in resource_rows),
                daily_costs=[
                    ResourceDailyCost(date=d, cost=round_amount(c))
                    for d, c in sorted(per_day.items())
                ],
            ))
        resources.sort(key=lambda r: r.total_cost, reverse=True)

        return Latest7DaysCost(
            from_date=from_date,
            to_date=self.today,
            total_cost=round_amount(sum((r.cost for r in rows), Decimal("0"))),
            currency=total_currency,
            daily_totals=daily_totals,
            resources=resources,
        )
