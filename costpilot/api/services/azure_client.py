"""Azure SDK client wrapper for per-connection access.

Every user registers one service principal (tenant id, client id and a
reference to the client secret). Credentials are resolved per scan target:

1. ``client_secret_ref`` is handed to the secret resolver (by default the
   reference names an environment variable holding the secret)
2. Otherwise the fallback settings.azure_* credentials are used

Two provider adapters sit on top of the client manager:

- ``AzureBillingProvider``: daily per-resource costs from Cost Management
- ``AzureInventoryProvider``: unattached disks, unused public IPs and
  stopped VMs from the Compute and Network management APIs

SECURITY FEATURES:
- TTL-based credential caching (1 hour default)
- Secrets never logged
"""

import asyncio
import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from azure.core.exceptions import HttpResponseError
from azure.identity import ClientSecretCredential
from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.costmanagement import CostManagementClient
from azure.mgmt.costmanagement.models import (
    QueryAggregation,
    QueryDataset,
    QueryDefinition,
    QueryGrouping,
    QueryTimePeriod,
)
from azure.mgmt.network import NetworkManagementClient

from costpilot.core.config import get_settings
from costpilot.core.exceptions import (
    CostQueryShapeError,
    CredentialResolutionError,
    ProviderError,
)
from costpilot.core.retry import COST_QUERY_POLICY, INVENTORY_POLICY, retry_with_backoff
from costpilot.engine.types import DiskRow, PublicIpRow, StoppedVmRow

logger = logging.getLogger(__name__)

UNASSIGNED_RESOURCE_ID = "[unassigned]"
DEFAULT_CURRENCY = "USD"
MAX_RESOURCE_ID_LENGTH = 1024

COST_COLUMN_CANDIDATES = ("Cost", "PreTaxCost", "CostUSD", "CostInBillingCurrency")
STOPPED_POWER_STATES = ("stopped", "deallocated")

SecretResolver = Callable[[str], str | None]


@dataclass(frozen=True)
class ScanTarget:
    """One subscription reachable through a user's Azure connection."""

    user_id: str
    subscription_id: str
    tenant_id: str
    client_id: str
    client_secret_ref: str | None = None


@dataclass(frozen=True)
class BillingCostRow:
    """Daily cost for one resource as reported by Cost Management."""

    usage_date: date
    resource_id: str
    cost: Decimal
    currency: str = DEFAULT_CURRENCY


@dataclass
class CachedCredential:
    """Cached credential with expiration tracking."""

    credential: ClientSecretCredential
    created_at: float
    expires_at: float

    def is_expired(self) -> bool:
        """Check if credential has expired."""
        return time.time() > self.expires_at


def environment_secret_resolver(secret_ref: str) -> str | None:
    """Resolve a secret reference by reading the environment variable it names."""
    return os.getenv(secret_ref)


class AzureClientManager:
    """Builds Azure SDK clients for scan targets with cached credentials."""

    # Default credential TTL: 1 hour (3600 seconds)
    DEFAULT_CREDENTIAL_TTL_SECONDS: int = 3600

    def __init__(
        self,
        secret_resolver: SecretResolver | None = None,
        credential_ttl_seconds: int | None = None,
    ) -> None:
        self._credentials: dict[tuple[str, str], CachedCredential] = {}
        self._secret_resolver = secret_resolver or environment_secret_resolver
        self._credential_ttl = credential_ttl_seconds or self.DEFAULT_CREDENTIAL_TTL_SECONDS

    def _resolve_credentials(self, target: ScanTarget) -> tuple[str, str]:
        """Resolve client_id and client_secret for a target.

        Raises:
            CredentialResolutionError: If no secret can be found
        """
        if target.client_secret_ref:
            secret = self._secret_resolver(target.client_secret_ref)
            if secret:
                return target.client_id, secret
            logger.warning(
                f"Secret reference for tenant {target.tenant_id} could not be resolved, "
                f"falling back to settings credentials"
            )

        settings = get_settings()
        if settings.azure_client_id and settings.azure_client_secret:
            return str(settings.azure_client_id), str(settings.azure_client_secret)

        raise CredentialResolutionError(
            f"Could not resolve credentials for tenant {target.tenant_id}. "
            f"Tried the connection secret and settings fallback."
        )

    def get_credential(self, target: ScanTarget, force_refresh: bool = False) -> ClientSecretCredential:
        """Get or create credential for a target with TTL-based caching."""
        key = (target.tenant_id, target.client_id)
        cached = self._credentials.get(key)
        if cached and not force_refresh and not cached.is_expired():
            return cached.credential

        client_id, client_secret = self._resolve_credentials(target)
        now = time.time()
        credential = ClientSecretCredential(
            tenant_id=target.tenant_id,
            client_id=client_id,
            client_secret=client_secret,
        )
        self._credentials[key] = CachedCredential(
            credential=credential,
            created_at=now,
            expires_at=now + self._credential_ttl,
        )
        logger.debug(f"Created new credential for tenant {target.tenant_id}, expires in {self._credential_ttl}s")
        return credential

    def get_cost_client(self, target: ScanTarget) -> CostManagementClient:
        """Get cost management client."""
        return CostManagementClient(self.get_credential(target))

    def get_compute_client(self, target: ScanTarget) -> ComputeManagementClient:
        """Get compute management client."""
        return ComputeManagementClient(self.get_credential(target), target.subscription_id)

    def get_network_client(self, target: ScanTarget) -> NetworkManagementClient:
        """Get network management client."""
        return NetworkManagementClient(self.get_credential(target), target.subscription_id)

    def clear_cache(self, tenant_id: str | None = None) -> int:
        """Clear cached credentials, for one tenant or all.

        Returns:
            Number of credentials removed
        """
        if tenant_id is None:
            cleared = len(self._credentials)
            self._credentials.clear()
        else:
            keys = [k for k in self._credentials if k[0] == tenant_id]
            for key in keys:
                del self._credentials[key]
            cleared = len(keys)

        logger.info(f"Cleared {cleared} cached credential(s)")
        return cleared


# =============================================================================
# Cost query parsing
# =============================================================================

def _column_indexes(columns: list[Any]) -> dict[str, int]:
    indexes = {}
    for index, column in enumerate(columns):
        name = column if isinstance(column, str) else getattr(column, "name", None)
        if name:
            indexes.setdefault(name.lower(), index)
    return indexes


def _find_cost_index(indexes: dict[str, int]) -> int:
    for candidate in COST_COLUMN_CANDIDATES:
        if candidate.lower() in indexes:
            return indexes[candidate.lower()]
    raise CostQueryShapeError("Cost query response did not contain a known cost column.")


def parse_usage_date(value: Any) -> date:
    """Parse a UsageDate cell: yyyymmdd number or string, or an ISO date/datetime.

    Raises:
        CostQueryShapeError: If the value cannot be read as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _parse_numeric_date(int(value))

    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            raise CostQueryShapeError("UsageDate column returned an empty value.")
        if raw.isdigit():
            return _parse_numeric_date(int(raw))
        try:
            return date.fromisoformat(raw)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
        except ValueError:
            pass

    raise CostQueryShapeError("UsageDate column returned an unsupported format.")


def _parse_numeric_date(yyyymmdd: int) -> date:
    try:
        return date(yyyymmdd // 10000, (yyyymmdd // 100) % 100, yyyymmdd % 100)
    except ValueError as e:
        raise CostQueryShapeError(f"UsageDate value {yyyymmdd} is not a valid date.") from e


def _parse_text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _parse_decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


def parse_cost_query_result(columns: list[Any], rows: list[list[Any]]) -> list[BillingCostRow]:
    """Turn a Cost Management query result into aggregated daily rows.

    Rows are summed per (date, resource id, currency). A blank resource id is
    stored as ``[unassigned]`` and a missing currency as USD.

    Raises:
        CostQueryShapeError: If UsageDate, ResourceId or a cost column is missing
    """
    if not columns or not rows:
        return []

    indexes = _column_indexes(columns)
    if "usagedate" not in indexes:
        raise CostQueryShapeError("Cost query response did not contain UsageDate column.")
    if "resourceid" not in indexes:
        raise CostQueryShapeError("Cost query response did not contain ResourceId column.")

    date_index = indexes["usagedate"]
    resource_index = indexes["resourceid"]
    cost_index = _find_cost_index(indexes)
    currency_index = indexes.get("currency")
    required = max(date_index, resource_index, cost_index)

    aggregate: dict[tuple[date, str, str], Decimal] = {}
    for row in rows:
        if len(row) <= required:
            continue

        usage_date = parse_usage_date(row[date_index])
        resource_id = _parse_text(row[resource_index], UNASSIGNED_RESOURCE_ID)[:MAX_RESOURCE_ID_LENGTH]
        currency = DEFAULT_CURRENCY
        if currency_index is not None and currency_index < len(row):
            currency = _parse_text(row[currency_index], DEFAULT_CURRENCY)

        key = (usage_date, resource_id, currency)
        aggregate[key] = aggregate.get(key, Decimal("0")) + _parse_decimal(row[cost_index])

    return [
        BillingCostRow(usage_date=d, resource_id=r, cost=cost.quantize(Decimal("0.0001")), currency=c)
        for (d, r, c), cost in sorted(aggregate.items(), key=lambda item: (item[0][0], item[0][1].lower()))
    ]


# =============================================================================
# Provider adapters
# =============================================================================

def _provider_error(action: str, target: ScanTarget, error: HttpResponseError) -> ProviderError:
    if error.status_code == 403:
        message = (
            f"Access denied to {action} for subscription {target.subscription_id}. "
            f"Missing reader role?"
        )
    else:
        message = f"HTTP error during {action} for subscription {target.subscription_id}: {error.message}"
    return ProviderError(message, status_code=error.status_code)


class AzureBillingProvider:
    """Daily per-resource costs from Azure Cost Management."""

    def __init__(self, client_manager: AzureClientManager | None = None):
        self.client_manager = client_manager or azure_client_manager

    @retry_with_backoff(COST_QUERY_POLICY)
    async def query_daily_costs(self, target: ScanTarget, start: date, end: date) -> list[BillingCostRow]:
        """Query actual cost per resource and day for ``start..end`` inclusive."""
        query = QueryDefinition(
            type="ActualCost",
            timeframe="Custom",
            time_period=QueryTimePeriod(
                from_property=datetime.combine(start, dt_time.min),
                to=datetime.combine(end + timedelta(days=1), dt_time.min),
            ),
            dataset=QueryDataset(
                granularity="Daily",
                aggregation={
                    "totalCost": QueryAggregation(name="Cost", function="Sum")
                },
                grouping=[
                    QueryGrouping(type="Dimension", name="ResourceId"),
                ],
            ),
        )

        client = self.client_manager.get_cost_client(target)
        try:
            result = await asyncio.to_thread(
                client.query.usage,
                scope=f"/subscriptions/{target.subscription_id}",
                parameters=query,
            )
        except HttpResponseError as e:
            raise _provider_error("cost data", target, e) from e

        if result is None:
            return []
        return parse_cost_query_result(result.columns or [], result.rows or [])


def _resource_group(resource_id: str) -> str | None:
    parts = [p for p in resource_id.split("/") if p]
    for index, part in enumerate(parts[:-1]):
        if part.lower() == "resourcegroups":
            return parts[index + 1]
    return None


def is_stopped_power_state(statuses: list[Any] | None) -> str | None:
    """Return the power state code when it is stopped or deallocated."""
    for status in statuses or []:
        code = (getattr(status, "code", None) or "").lower()
        if code.startswith("powerstate/") and any(s in code for s in STOPPED_POWER_STATES):
            return code.split("/", 1)[1]
    return None


class AzureInventoryProvider:
    """Idle resource inventory from the Compute and Network APIs."""

    def __init__(self, client_manager: AzureClientManager | None = None):
        self.client_manager = client_manager or azure_client_manager

    @retry_with_backoff(INVENTORY_POLICY)
    async def list_unattached_disks(self, target: ScanTarget) -> list[DiskRow]:
        """Managed disks without a managedBy owner."""
        client = self.client_manager.get_compute_client(target)
        try:
            disks = await asyncio.to_thread(lambda: list(client.disks.list()))
        except HttpResponseError as e:
            raise _provider_error("disk inventory", target, e) from e

        return [
            DiskRow(
                resource_id=disk.id,
                name=disk.name,
                sku=disk.sku.name if disk.sku else None,
                size_gb=disk.disk_size_gb,
            )
            for disk in disks
            if disk.id and not disk.managed_by
        ]

    @retry_with_backoff(INVENTORY_POLICY)
    async def list_unused_public_ips(self, target: ScanTarget) -> list[PublicIpRow]:
        """Public IPs with neither an IP configuration nor a NAT gateway."""
        client = self.client_manager.get_network_client(target)
        try:
            addresses = await asyncio.to_thread(lambda: list(client.public_ip_addresses.list_all()))
        except HttpResponseError as e:
            raise _provider_error("public IP inventory", target, e) from e

        return [
            PublicIpRow(
                resource_id=ip.id,
                name=ip.name,
                sku=ip.sku.name if ip.sku else None,
                allocation_method=ip.public_ip_allocation_method,
            )
            for ip in addresses
            if ip.id and not ip.ip_configuration and not ip.nat_gateway
        ]

    @retry_with_backoff(INVENTORY_POLICY)
    async def list_stopped_vms(self, target: ScanTarget) -> list[StoppedVmRow]:
        """Virtual machines whose power state is stopped or deallocated."""
        client = self.client_manager.get_compute_client(target)

        def _collect() -> list[StoppedVmRow]:
            stopped = []
            for vm in client.virtual_machines.list_all():
                resource_group = _resource_group(vm.id or "")
                if not resource_group:
                    continue
                view = client.virtual_machines.instance_view(resource_group, vm.name)
                power_state = is_stopped_power_state(view.statuses)
                if power_state:
                    stopped.append(StoppedVmRow(resource_id=vm.id, name=vm.name, power_state=power_state))
            return stopped

        try:
            return await asyncio.to_thread(_collect)
        except HttpResponseError as e:
            raise _provider_error("VM inventory", target, e) from e


# Global client manager instance
azure_client_manager = AzureClientManager()
