"""Sync modules for background data synchronization."""

from costpilot.core.sync.costs import run_backfill, sync_costs
from costpilot.core.sync.events import generate_cost_events
from costpilot.core.sync.waste import refresh_waste_findings

__all__ = ["sync_costs", "run_backfill", "generate_cost_events", "refresh_waste_findings"]
