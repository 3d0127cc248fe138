"""Tests for resource deltas and top cause attribution."""

from decimal import Decimal

from costpilot.engine.attribution import (
    compute_resource_deltas,
    parse_resource_name,
    parse_resource_type,
    resource_totals,
    select_top_cause,
)
from costpilot.engine.types import ResourceDelta

from tests.factories import DISK_ID, SQL_ID, VM_ID, point


class TestResourceParsing:
    """Tests for resource id parsing."""

    def test_resource_name_is_last_segment(self):
        """Test the name is taken from the last path segment."""
        assert parse_resource_name(VM_ID) == "vm-web-01"

    def test_resource_name_default(self):
        """Test empty ids fall back to the default name."""
        assert parse_resource_name("") == "Unknown Resource"
        assert parse_resource_name(None, default="unknown") == "unknown"

    def test_resource_type_simple(self):
        """Test provider namespace and type are joined."""
        assert parse_resource_type(VM_ID) == "Microsoft.Compute/virtualMachines"

    def test_resource_type_nested(self):
        """Test nested resource types keep every type segment."""
        assert parse_resource_type(SQL_ID) == "Microsoft.Sql/servers/databases"

    def test_resource_type_without_providers(self):
        """Test ids without a providers segment are unknown."""
        assert parse_resource_type("/subscriptions/sub-123") == "unknown"
        assert parse_resource_type(None) == "unknown"


class TestResourceDeltas:
    """Tests for per-resource deltas."""

    def test_missing_resource_counts_as_zero(self, today):
        """Test a new resource contributes its full cost as increase."""
        current = {"a": ("A", Decimal("5"))}
        deltas = compute_resource_deltas(current, {})
        assert deltas == [ResourceDelta(resource_id="A", increase=Decimal("5"))]

    def test_only_positive_deltas_sorted(self, today):
        """Test decreases are dropped and increases sorted largest first."""
        current = {
            "vm": ("VM", Decimal("12")),
            "sql": ("SQL", Decimal("30")),
            "disk": ("DISK", Decimal("1")),
        }
        previous = {
            "vm": ("VM", Decimal("10")),
            "sql": ("SQL", Decimal("10")),
            "disk": ("DISK", Decimal("4")),
        }

        deltas = compute_resource_deltas(current, previous)

        assert [d.resource_id for d in deltas] == ["SQL", "VM"]
        assert deltas[0].increase == Decimal("20")

    def test_resource_totals_case_insensitive(self, today):
        """Test casing variants are merged under the first spelling."""
        points = [point(today, VM_ID, "1"), point(today, VM_ID.upper(), "2")]
        totals = resource_totals(points, today)
        assert totals == {VM_ID.lower(): (VM_ID, Decimal("3"))}


class TestTopCause:
    """Tests for top cause selection."""

    def test_no_positive_delta(self):
        """Test no cause when nothing increased."""
        assert select_top_cause([]) is None

    def test_top_cause_fields(self):
        """Test the cause carries parsed name and type."""
        cause = select_top_cause([
            ResourceDelta(resource_id=DISK_ID, increase=Decimal("2")),
            ResourceDelta(resource_id=VM_ID, increase=Decimal("9")),
        ])

        assert cause.resource_id == VM_ID
        assert cause.resource_name == "vm-web-01"
        assert cause.resource_type == "Microsoft.Compute/virtualMachines"
        assert cause.increase_amount == Decimal("9")

    def test_tie_picks_a_maximal_delta(self):
        """Test equal increases still yield one of the largest deltas."""
        cause = select_top_cause([
            ResourceDelta(resource_id=DISK_ID, increase=Decimal("4")),
            ResourceDelta(resource_id=VM_ID, increase=Decimal("4")),
        ])
        assert cause.resource_id in (DISK_ID, VM_ID)
        assert cause.increase_amount == Decimal("4")
