"""Tests for the Azure client wrapper and provider adapters."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from azure.core.exceptions import HttpResponseError

from costpilot.api.services.azure_client import (
    AzureBillingProvider,
    AzureClientManager,
    AzureInventoryProvider,
    ScanTarget,
    is_stopped_power_state,
    parse_cost_query_result,
    parse_usage_date,
)
from costpilot.core.exceptions import (
    CostQueryShapeError,
    CredentialResolutionError,
    ProviderError,
)

TARGET = ScanTarget(
    user_id="user-1",
    subscription_id="sub-123",
    tenant_id="tenant-123",
    client_id="client-123",
    client_secret_ref="SECRET_REF",
)
VM_ID = "/subscriptions/sub-123/resourceGroups/rg-app/providers/Microsoft.Compute/virtualMachines/vm-01"


class TestParseUsageDate:
    """Tests for UsageDate cell parsing."""

    def test_numeric_date(self):
        assert parse_usage_date(20240115) == date(2024, 1, 15)
        assert parse_usage_date(20240115.0) == date(2024, 1, 15)

    def test_string_dates(self):
        assert parse_usage_date("20240115") == date(2024, 1, 15)
        assert parse_usage_date("2024-01-15") == date(2024, 1, 15)
        assert parse_usage_date("2024-01-15T00:00:00Z") == date(2024, 1, 15)

    def test_invalid_date(self):
        with pytest.raises(CostQueryShapeError):
            parse_usage_date("yesterday")
        with pytest.raises(CostQueryShapeError):
            parse_usage_date(20241340)


class TestParseCostQueryResult:
    """Tests for cost query result parsing."""

    def test_rows_aggregated_and_sorted(self):
        """Test duplicate (date, resource, currency) rows are summed."""
        columns = ["Cost", "UsageDate", "ResourceId", "Currency"]
        rows = [
            [2.5, 20240116, VM_ID, "USD"],
            [1.25, 20240115, VM_ID, "USD"],
            [0.75, 20240115, VM_ID, "USD"],
            [3, 20240115, "", None],
        ]

        parsed = parse_cost_query_result(columns, rows)

        assert [(r.usage_date, r.resource_id, r.cost) for r in parsed] == [
            (date(2024, 1, 15), VM_ID, Decimal("2.0000")),
            (date(2024, 1, 15), "[unassigned]", Decimal("3.0000")),
            (date(2024, 1, 16), VM_ID, Decimal("2.5000")),
        ]
        assert all(r.currency == "USD" for r in parsed)

    def test_column_objects_case_insensitive(self):
        """Test SDK column objects and alternative cost column names."""
        columns = [SimpleNamespace(name="preTaxCost"), SimpleNamespace(name="usagedate"), SimpleNamespace(name="RESOURCEID")]
        parsed = parse_cost_query_result(columns, [[4, "20240115", VM_ID]])
        assert parsed[0].cost == Decimal("4.0000")

    def test_short_rows_skipped(self):
        parsed = parse_cost_query_result(["Cost", "UsageDate", "ResourceId"], [[1, 20240115]])
        assert parsed == []

    def test_missing_columns(self):
        """Test a response without required columns is a shape error."""
        with pytest.raises(CostQueryShapeError):
            parse_cost_query_result(["Cost", "ResourceId"], [[1, VM_ID]])
        with pytest.raises(CostQueryShapeError):
            parse_cost_query_result(["Amount", "UsageDate", "ResourceId"], [[1, 20240115, VM_ID]])

    def test_empty_result(self):
        assert parse_cost_query_result([], []) == []


class TestCredentialResolution:
    """Tests for per-connection credential resolution."""

    @patch("costpilot.api.services.azure_client.ClientSecretCredential")
    def test_secret_ref_resolved(self, mock_credential):
        manager = AzureClientManager(secret_resolver=lambda ref: "s3cret" if ref == "SECRET_REF" else None)

        manager.get_credential(TARGET)

        mock_credential.assert_called_once_with(
            tenant_id="tenant-123", client_id="client-123", client_secret="s3cret"
        )

    @patch("costpilot.api.services.azure_client.ClientSecretCredential")
    def test_credentials_cached(self, mock_credential):
        manager = AzureClientManager(secret_resolver=lambda ref: "s3cret")

        first = manager.get_credential(TARGET)
        second = manager.get_credential(TARGET)

        assert first is second
        assert mock_credential.call_count == 1
        assert manager.clear_cache("tenant-123") == 1

    @patch("costpilot.api.services.azure_client.get_settings")
    def test_no_secret_raises(self, mock_get_settings):
        mock_get_settings.return_value = MagicMock(azure_client_id=None, azure_client_secret=None)
        manager = AzureClientManager(secret_resolver=lambda ref: None)

        with pytest.raises(CredentialResolutionError):
            manager.get_credential(TARGET)

    @patch("costpilot.api.services.azure_client.ClientSecretCredential")
    @patch("costpilot.api.services.azure_client.get_settings")
    def test_settings_fallback(self, mock_get_settings, mock_credential):
        mock_get_settings.return_value = MagicMock(azure_client_id="fallback-id", azure_client_secret="fallback")
        manager = AzureClientManager(secret_resolver=lambda ref: None)

        manager.get_credential(TARGET)

        mock_credential.assert_called_once_with(
            tenant_id="tenant-123", client_id="fallback-id", client_secret="fallback"
        )


class TestBillingProvider:
    """Tests for the Cost Management adapter."""

    async def test_query_daily_costs(self):
        result = SimpleNamespace(
            columns=[SimpleNamespace(name="Cost"), SimpleNamespace(name="UsageDate"), SimpleNamespace(name="ResourceId")],
            rows=[[5.5, 20240115, VM_ID]],
        )
        client = MagicMock()
        client.query.usage.return_value = result
        manager = MagicMock()
        manager.get_cost_client.return_value = client

        rows = await AzureBillingProvider(manager).query_daily_costs(TARGET, date(2024, 1, 9), date(2024, 1, 15))

        assert rows[0].cost == Decimal("5.5000")
        assert client.query.usage.call_args.kwargs["scope"] == "/subscriptions/sub-123"

    async def test_access_denied(self):
        """Test a 403 is raised as ProviderError without retrying."""
        error = HttpResponseError(message="Forbidden")
        error.status_code = 403
        client = MagicMock()
        client.query.usage.side_effect = error
        manager = MagicMock()
        manager.get_cost_client.return_value = client

        with pytest.raises(ProviderError) as exc_info:
            await AzureBillingProvider(manager).query_daily_costs(TARGET, date(2024, 1, 9), date(2024, 1, 15))

        assert exc_info.value.status_code == 403
        assert client.query.usage.call_count == 1


class TestInventoryProvider:
    """Tests for the Compute and Network adapter."""

    def test_power_state(self):
        statuses = [SimpleNamespace(code="ProvisioningState/succeeded"), SimpleNamespace(code="PowerState/deallocated")]
        assert is_stopped_power_state(statuses) == "deallocated"
        assert is_stopped_power_state([SimpleNamespace(code="PowerState/running")]) is None
        assert is_stopped_power_state(None) is None

    async def test_unattached_disks(self):
        attached = SimpleNamespace(id="/d/1", name="d1", managed_by="/vm/1", sku=None, disk_size_gb=64)
        free = SimpleNamespace(id="/d/2", name="d2", managed_by=None, sku=SimpleNamespace(name="Premium_LRS"), disk_size_gb=128)
        client = MagicMock()
        client.disks.list.return_value = [attached, free]
        manager = MagicMock()
        manager.get_compute_client.return_value = client

        disks = await AzureInventoryProvider(manager).list_unattached_disks(TARGET)

        assert [(d.resource_id, d.sku, d.size_gb) for d in disks] == [("/d/2", "Premium_LRS", 128)]

    async def test_unused_public_ips(self):
        used = SimpleNamespace(id="/ip/1", name="ip1", ip_configuration=object(), nat_gateway=None, sku=None, public_ip_allocation_method="Static")
        free = SimpleNamespace(id="/ip/2", name="ip2", ip_configuration=None, nat_gateway=None, sku=SimpleNamespace(name="Standard"), public_ip_allocation_method="Static")
        client = MagicMock()
        client.public_ip_addresses.list_all.return_value = [used, free]
        manager = MagicMock()
        manager.get_network_client.return_value = client

        ips = await AzureInventoryProvider(manager).list_unused_public_ips(TARGET)

        assert [ip.resource_id for ip in ips] == ["/ip/2"]

    async def test_stopped_vms(self):
        vm = SimpleNamespace(id=VM_ID, name="vm-01")
        client = MagicMock()
        client.virtual_machines.list_all.return_value = [vm]
        client.virtual_machines.instance_view.return_value = SimpleNamespace(
            statuses=[SimpleNamespace(code="PowerState/stopped")]
        )
        manager = MagicMock()
        manager.get_compute_client.return_value = client

        vms = await AzureInventoryProvider(manager).list_stopped_vms(TARGET)

        assert vms[0].power_state == "stopped"
        client.virtual_machines.instance_view.assert_called_once_with("rg-app", "vm-01")
