"""Cost anomaly and waste classification engine.

Pure functions over ``CostPoint`` rows and inventory rows. Nothing in this
package touches the database or Azure.
"""

from costpilot.engine.billing_date import resolve_latest_complete_billing_date
from costpilot.engine.spike import evaluate_cost_day
from costpilot.engine.types import (
    CauseAttribution,
    Confidence,
    CostEvaluation,
    CostPoint,
    FindingType,
)
from costpilot.engine.waste import build_waste_findings

__all__ = [
    "CauseAttribution",
    "Confidence",
    "CostEvaluation",
    "CostPoint",
    "FindingType",
    "build_waste_findings",
    "evaluate_cost_day",
    "resolve_latest_complete_billing_date",
]
