"""Cost-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CauseResource(BaseModel):
    """Resource that contributed the largest day-over-day increase."""

    resource_id: str
    resource_name: str
    resource_type: str
    increase_amount: Decimal


class CostSummary(BaseModel):
    """Dashboard summary for the latest complete billing day."""

    date: date
    latest_data_date: datetime
    yesterday_total: Decimal = Decimal("0")
    today_total: Decimal = Decimal("0")
    difference: Decimal = Decimal("0")
    baseline: Decimal = Decimal("0")
    month_to_date_total: Decimal = Decimal("0")
    spike_flag: bool = False
    confidence: str = "Low"
    top_cause_resource: CauseResource | None = None
    suggestion_text: str


class HistoryItem(BaseModel):
    """A recent day that spiked or exceeded the difference threshold."""

    date: date
    yesterday_total: Decimal
    today_total: Decimal
    difference: Decimal
    spike_flag: bool
    top_resource_name: str | None = None
    top_increase_amount: Decimal | None = None


class WasteFindingRead(BaseModel):
    """Waste finding as shown on the dashboard."""

    model_config = ConfigDict(from_attributes=True)

    finding_type: str
    resource_id: str
    resource_name: str
    subscription_id: str
    estimated_monthly_cost: Decimal | None = None
    classification: str | None = None
    inactive_duration_days: Decimal | None = None
    waste_confidence_level: str | None = None
    last_seen_active_utc: datetime | None = None
    detected_at: datetime
    status: str


class DailyTotal(BaseModel):
    """Total cost across resources for one day."""

    date: date
    cost: Decimal
    currency: str


class ResourceDailyCost(BaseModel):
    date: date
    cost: Decimal


class ResourceCost(BaseModel):
    """Cost of one resource over the window, with its daily breakdown."""

    resource_id: str
    total_cost: Decimal
    currency: str
    daily_costs: list[ResourceDailyCost] = Field(default_factory=list)


class Latest7DaysCost(BaseModel):
    """Cost of the last 7 days, today included."""

    from_date: date
    to_date: date
    total_cost: Decimal
    currency: str
    daily_totals: list[DailyTotal] = Field(default_factory=list)
    resources: list[ResourceCost] = Field(default_factory=list)


class ScenarioSeedRequest(BaseModel):
    """Synthetic scenario seeding request."""

    scenario: str = "normal"
    days: int = Field(default=30, description="Window length, clamped to 7-60")
    clear_existing_data: bool = True
    seed: int | None = None


class ScenarioSeedResult(BaseModel):
    """Outcome of seeding a synthetic scenario."""

    scenario: str
    days: int
    daily_cost_rows_inserted: int
    waste_findings_inserted: int
    events_generated: int
    from_date: date
    to_date: date
    note: str
