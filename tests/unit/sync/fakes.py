"""In-memory stand-ins for the Azure billing and inventory adapters."""

from datetime import datetime, timedelta
from decimal import Decimal

from costpilot.api.services.azure_client import BillingCostRow, ScanTarget
from costpilot.core.exceptions import ProviderError


class FakeBillingProvider:
    """Billing adapter returning canned rows per subscription."""

    def __init__(self, rows_by_subscription=None, failing=None):
        self.rows_by_subscription = rows_by_subscription or {}
        self.failing = failing or {}
        self.calls = []

    async def query_daily_costs(self, target: ScanTarget, start, end):
        self.calls.append((target.subscription_id, start, end))
        if target.subscription_id in self.failing:
            raise self.failing[target.subscription_id]
        return list(self.rows_by_subscription.get(target.subscription_id, []))


class FakeInventoryProvider:
    """Inventory adapter returning canned rows per subscription."""

    def __init__(self, disks=None, public_ips=None, stopped_vms=None, failing=None):
        self.disks = disks or {}
        self.public_ips = public_ips or {}
        self.stopped_vms = stopped_vms or {}
        self.failing = set(failing or [])

    def _check(self, target):
        if target.subscription_id in self.failing:
            raise ProviderError("inventory unavailable", status_code=403)

    async def list_unattached_disks(self, target):
        self._check(target)
        return list(self.disks.get(target.subscription_id, []))

    async def list_unused_public_ips(self, target):
        self._check(target)
        return list(self.public_ips.get(target.subscription_id, []))

    async def list_stopped_vms(self, target):
        self._check(target)
        return list(self.stopped_vms.get(target.subscription_id, []))


def billing_row(days_ago: int, resource_id: str, cost) -> BillingCostRow:
    return BillingCostRow(
        usage_date=datetime.utcnow().date() - timedelta(days=days_ago),
        resource_id=resource_id,
        cost=Decimal(str(cost)),
    )
