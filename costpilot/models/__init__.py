"""Database models module."""

from costpilot.models.cost import CostEvent, DailyCostResource
from costpilot.models.sync import SyncJob
from costpilot.models.tenant import AzureConnection, Subscription
from costpilot.models.waste import WasteFinding

__all__ = [
    "AzureConnection",
    "Subscription",
    "DailyCostResource",
    "CostEvent",
    "WasteFinding",
    "SyncJob",
]
