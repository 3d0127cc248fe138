"""Service layer: Azure providers, cost store and read model."""

from costpilot.api.services.azure_client import (
    AzureBillingProvider,
    AzureClientManager,
    AzureInventoryProvider,
    ScanTarget,
    azure_client_manager,
)
from costpilot.api.services.cost_service import CostService
from costpilot.api.services.cost_store import CostRecordStore

__all__ = [
    "AzureBillingProvider",
    "AzureClientManager",
    "AzureInventoryProvider",
    "CostRecordStore",
    "CostService",
    "ScanTarget",
    "azure_client_manager",
]
