"""Tests for waste finding refresh."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from costpilot.core.sync.waste import refresh_waste_findings
from costpilot.engine.types import DiskRow, PublicIpRow, StoppedVmRow
from costpilot.models.waste import WasteFinding

from tests.factories import DISK_ID, IP_ID, VM_ID
from tests.unit.sync.fakes import FakeInventoryProvider


class TestRefreshWasteFindings:
    """Test suite for the waste scan."""

    @pytest.mark.asyncio
    async def test_findings_created(self, session_factory, db_session, add_subscription, add_costs):
        """Test inventory rows become findings with estimates."""
        add_subscription("user-1", "sub-1")
        add_costs("user-1", "sub-1", [(2, DISK_ID, "0.7"), (3, DISK_ID, "0.7"), (10, VM_ID, "4")])
        provider = FakeInventoryProvider(
            disks={"sub-1": [DiskRow(resource_id=DISK_ID, name="disk-data-01", sku="Premium_LRS", size_gb=128)]},
            public_ips={"sub-1": [PublicIpRow(resource_id=IP_ID, name="pip-01", allocation_method="Static")]},
            stopped_vms={"sub-1": [StoppedVmRow(resource_id=VM_ID, name="vm-web-01", power_state="deallocated")]},
        )

        result = await refresh_waste_findings(inventory_provider=provider)

        assert result["processed"] == 3
        assert result["scanned"] == 1
        assert result["errors"] == 0

        findings = {f.finding_type: f for f in db_session.scalars(select(WasteFinding)).all()}
        assert findings["unattached_disk"].estimated_monthly_cost == Decimal("6.00")
        assert findings["unused_public_ip"].estimated_monthly_cost == Decimal("2.50")
        vm = findings["stopped_vm"]
        assert vm.classification == "Likely unused"
        assert vm.waste_confidence_level == "High"
        assert vm.inactive_duration_days == Decimal("10.00")
        assert all(f.status == "Open" for f in findings.values())

    @pytest.mark.asyncio
    async def test_rescan_replaces_findings(self, session_factory, db_session, add_subscription):
        """Test a resolved resource disappears on the next scan."""
        add_subscription("user-1", "sub-1")
        disks = {"sub-1": [DiskRow(resource_id=DISK_ID, name="disk")]}

        await refresh_waste_findings(inventory_provider=FakeInventoryProvider(disks=disks))
        await refresh_waste_findings(inventory_provider=FakeInventoryProvider())

        assert db_session.scalars(select(WasteFinding)).all() == []

    @pytest.mark.asyncio
    async def test_failed_user_keeps_previous_findings(self, session_factory, db_session, add_subscription):
        """Test a user whose only target failed keeps the last snapshot."""
        add_subscription("user-1", "sub-1")
        add_subscription("user-2", "sub-2")
        disks = {
            "sub-1": [DiskRow(resource_id=DISK_ID, name="disk-1")],
            "sub-2": [DiskRow(resource_id=DISK_ID.replace("sub-123", "sub-2"), name="disk-2")],
        }
        await refresh_waste_findings(inventory_provider=FakeInventoryProvider(disks=disks))

        result = await refresh_waste_findings(
            inventory_provider=FakeInventoryProvider(failing=["sub-1"])
        )

        assert result["scanned"] == 1
        assert result["errors"] == 1
        remaining = db_session.scalars(select(WasteFinding)).all()
        assert [f.user_id for f in remaining] == ["user-1"]

    @pytest.mark.asyncio
    async def test_scheduled_vm_suppressed(self, session_factory, db_session, add_subscription, add_costs):
        """Test a VM with a regular stop/start pattern is not reported."""
        add_subscription("user-1", "sub-1")
        add_costs("user-1", "sub-1", [(days_ago, VM_ID, "3") for days_ago in range(2, 9)])
        provider = FakeInventoryProvider(
            stopped_vms={"sub-1": [StoppedVmRow(resource_id=VM_ID, name="vm", power_state="stopped")]},
        )

        result = await refresh_waste_findings(inventory_provider=provider)

        assert result["processed"] == 0

    @pytest.mark.asyncio
    async def test_prior_finding_keeps_vm_history(self, session_factory, db_session, add_subscription):
        """Test a VM without cost rows reuses the prior finding's last seen time."""
        add_subscription("user-1", "sub-1")
        last_seen = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=12)
        db_session.add(WasteFinding(
            user_id="user-1",
            subscription_id="sub-1",
            finding_type="stopped_vm",
            resource_id=VM_ID,
            resource_name="vm-web-01",
            estimated_monthly_cost=Decimal("20"),
            last_seen_active_utc=last_seen,
            detected_at=datetime.utcnow() - timedelta(days=5),
        ))
        db_session.commit()
        provider = FakeInventoryProvider(
            stopped_vms={"sub-1": [StoppedVmRow(resource_id=VM_ID.upper(), name="vm-web-01")]},
        )

        await refresh_waste_findings(inventory_provider=provider)

        vm = db_session.scalars(select(WasteFinding)).one()
        assert vm.last_seen_active_utc == last_seen
        assert vm.classification == "Likely unused"
