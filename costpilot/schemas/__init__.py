"""Pydantic schemas for the read model."""

from costpilot.schemas.cost import (
    CauseResource,
    CostSummary,
    DailyTotal,
    HistoryItem,
    Latest7DaysCost,
    ResourceCost,
    ResourceDailyCost,
    ScenarioSeedRequest,
    ScenarioSeedResult,
    WasteFindingRead,
)

__all__ = [
    "CauseResource",
    "CostSummary",
    "DailyTotal",
    "HistoryItem",
    "Latest7DaysCost",
    "ResourceCost",
    "ResourceDailyCost",
    "ScenarioSeedRequest",
    "ScenarioSeedResult",
    "WasteFindingRead",
]
