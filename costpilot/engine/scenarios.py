"""Synthetic cost scenarios for development and engine validation.

Each scenario produces a window of daily per-resource costs for six
template resources. A fixed ``seed`` makes the output reproducible.
"""

import random
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_EVEN, Decimal

from costpilot.core.exceptions import ScenarioValidationError
from costpilot.engine.types import FindingType, WasteFindingDraft

DEFAULT_SUBSCRIPTION_ID = "11111111-1111-1111-1111-111111111111"
MIN_DAYS = 7
MAX_DAYS = 60

SCENARIOS = ("normal", "spike", "noisy_increases", "missing_data", "idle_resources")

SCENARIO_ALIASES = {
    "noisy": "noisy_increases",
    "missing": "missing_data",
    "idle": "idle_resources",
}

SCENARIO_NOTES = {
    "normal": "Stable weekday/weekend pattern with normal variance.",
    "spike": "Latest complete billing day has a sharp SQL cost increase to trigger spike detection.",
    "noisy_increases": "Multiple resources increase together, producing a noisy upward trend.",
    "missing_data": "Latest day is intentionally missing to simulate delayed or incomplete ingestion.",
    "idle_resources": "Costs are near-zero and idle resource findings are created for savings tests.",
}

# Monday..Sunday
WEEK_FACTORS = (
    Decimal("1.06"),
    Decimal("1.08"),
    Decimal("1.04"),
    Decimal("1.03"),
    Decimal("0.97"),
    Decimal("0.86"),
    Decimal("0.83"),
)

IDLE_BASE_COSTS = {
    "vm": Decimal("0.09"),
    "sql": Decimal("0.05"),
    "appservice": Decimal("0.04"),
    "storage": Decimal("0.12"),
    "monitor": Decimal("0.03"),
    "publicip": Decimal("0.07"),
}
IDLE_FALLBACK_COST = Decimal("0.02")

COST_QUANTUM = Decimal("0.0001")


@dataclass(frozen=True)
class ResourceTemplate:
    key: str
    base_daily_cost: Decimal
    volatility: Decimal
    resource_id_template: str

    def resource_id(self, subscription_id: str) -> str:
        return self.resource_id_template.format(subscription_id=subscription_id)


RESOURCE_TEMPLATES = (
    ResourceTemplate(
        "vm", Decimal("2.80"), Decimal("0.08"),
        "/subscriptions/{subscription_id}/resourceGroups/azcost-app-rg"
        "/providers/Microsoft.Compute/virtualMachines/app-vm-01",
    ),
    ResourceTemplate(
        "sql", Decimal("3.90"), Decimal("0.07"),
        "/subscriptions/{subscription_id}/resourceGroups/azcost-data-rg"
        "/providers/Microsoft.Sql/servers/sql-prod-01/databases/appdb",
    ),
    ResourceTemplate(
        "appservice", Decimal("1.45"), Decimal("0.10"),
        "/subscriptions/{subscription_id}/resourceGroups/azcost-app-rg"
        "/providers/Microsoft.Web/sites/api-app-01",
    ),
    ResourceTemplate(
        "storage", Decimal("0.95"), Decimal("0.06"),
        "/subscriptions/{subscription_id}/resourceGroups/azcost-storage-rg"
        "/providers/Microsoft.Storage/storageAccounts/appstorage01",
    ),
    ResourceTemplate(
        "monitor", Decimal("0.70"), Decimal("0.12"),
        "/subscriptions/{subscription_id}/resourceGroups/azcost-monitor-rg"
        "/providers/Microsoft.OperationalInsights/workspaces/app-law",
    ),
    ResourceTemplate(
        "publicip", Decimal("0.18"), Decimal("0.15"),
        "/subscriptions/{subscription_id}/resourceGroups/azcost-net-rg"
        "/providers/Microsoft.Network/publicIPAddresses/app-pip-01",
    ),
)

IDLE_RESOURCE_GROUP = "azcost-idle-rg"

# (finding type, provider path, name, estimate, minutes before now)
IDLE_FINDINGS = (
    (FindingType.STOPPED_VM, "Microsoft.Compute/virtualMachines", "stopped-vm-01", Decimal("14.80"), 15),
    (FindingType.UNATTACHED_DISK, "Microsoft.Compute/disks", "orphaned-disk-01", Decimal("8.40"), 12),
    (FindingType.UNUSED_PUBLIC_IP, "Microsoft.Network/publicIPAddresses", "unused-ip-01", Decimal("3.70"), 10),
)


@dataclass(frozen=True)
class SyntheticCostRow:
    subscription_id: str
    usage_date: date
    resource_id: str
    cost: Decimal
    currency: str = "USD"


@dataclass
class ScenarioDataset:
    """Generated rows and findings for one scenario run."""

    scenario: str
    days: int
    from_date: date
    to_date: date
    note: str
    rows: list[SyntheticCostRow] = field(default_factory=list)
    findings: list[WasteFindingDraft] = field(default_factory=list)


def normalize_scenario(scenario: str) -> str:
    """Normalize a scenario name or alias.

    Raises:
        ScenarioValidationError: If the name is not a known scenario
    """
    normalized = (scenario or "").strip().lower().replace("-", "_").replace(" ", "_")
    normalized = SCENARIO_ALIASES.get(normalized, normalized)
    if normalized not in SCENARIOS:
        raise ScenarioValidationError(
            "Scenario must be one of: normal, spike, noisy_increases, missing_data, idle_resources."
        )
    return normalized


def clamp_days(days: int) -> int:
    return max(MIN_DAYS, min(MAX_DAYS, days))


def _uniform(rng: random.Random) -> Decimal:
    return Decimal(str(rng.random()))


def _noise_factor(rng: random.Random, volatility: Decimal) -> Decimal:
    signed = _uniform(rng) * 2 - 1
    return 1 + signed * volatility


def _spike_cost(base: Decimal, day: date, to_date: date, template: ResourceTemplate,
                rng: random.Random) -> Decimal:
    latest_complete = to_date - timedelta(days=1)
    secondary = to_date - timedelta(days=4)
    if day not in (latest_complete, secondary):
        return base

    is_latest = day == latest_complete
    if template.key == "sql":
        if is_latest:
            return base * Decimal("4.8") + 15
        return base * Decimal("3.1") + 7
    if template.key == "monitor":
        return base * (Decimal("1.7") if is_latest else Decimal("1.35"))
    return base * (Decimal("1.05") + _uniform(rng) * Decimal("0.08"))


def _noisy_increase_cost(base: Decimal, day: date, to_date: date, rng: random.Random) -> Decimal:
    if day == to_date:
        return base * (Decimal("1.55") + _uniform(rng) * Decimal("0.2"))
    if day == to_date - timedelta(days=1):
        return base * (Decimal("1.25") + _uniform(rng) * Decimal("0.15"))
    if day >= to_date - timedelta(days=3):
        return base * (Decimal("1.08") + _uniform(rng) * Decimal("0.1"))
    return base


def _missing_data_cost(base: Decimal, day: date, to_date: date, offset: int) -> Decimal:
    if day == to_date:
        return Decimal("0")
    if offset % 11 == 0:
        return base * Decimal("0.85")
    return base


def _skip_for_missing_data(day: date, to_date: date, key: str) -> bool:
    if day == to_date:
        return True
    if key == "appservice" and day == to_date - timedelta(days=3):
        return True
    return key == "storage" and day == to_date - timedelta(days=8)


def _idle_cost(template: ResourceTemplate, rng: random.Random) -> Decimal:
    idle_base = IDLE_BASE_COSTS.get(template.key, IDLE_FALLBACK_COST)
    return idle_base * (Decimal("0.8") + _uniform(rng) * Decimal("0.25"))


def _scenario_cost(scenario: str, day: date, to_date: date, offset: int,
                   template: ResourceTemplate, rng: random.Random) -> Decimal:
    week_factor = WEEK_FACTORS[day.weekday()]
    base = template.base_daily_cost * week_factor * _noise_factor(rng, template.volatility)

    if scenario == "spike":
        return _spike_cost(base, day, to_date, template, rng)
    if scenario == "noisy_increases":
        return _noisy_increase_cost(base, day, to_date, rng)
    if scenario == "missing_data":
        return _missing_data_cost(base, day, to_date, offset)
    if scenario == "idle_resources":
        return _idle_cost(template, rng)
    return base


def build_idle_findings(user_id: str, subscription_id: str, now: datetime) -> list[WasteFindingDraft]:
    """The three fixed findings created by the idle_resources scenario."""
    findings = []
    for finding_type, provider_path, name, estimate, minutes_ago in IDLE_FINDINGS:
        resource_id = (
            f"/subscriptions/{subscription_id}/resourceGroups/{IDLE_RESOURCE_GROUP}"
            f"/providers/{provider_path}/{name}"
        )
        findings.append(WasteFindingDraft(
            user_id=user_id,
            subscription_id=subscription_id,
            finding_type=finding_type,
            resource_id=resource_id,
            resource_name=name,
            estimated_monthly_cost=estimate,
            detected_at=now - timedelta(minutes=minutes_ago),
        ))
    return findings


def generate_scenario(
    scenario: str,
    days: int,
    user_id: str,
    subscription_id: str = DEFAULT_SUBSCRIPTION_ID,
    to_date: date | None = None,
    seed: int | None = None,
    now: datetime | None = None,
) -> ScenarioDataset:
    """Generate synthetic daily costs for a scenario.

    Args:
        scenario: Scenario name or alias (normal, spike, noisy, missing, idle)
        days: Window length, clamped to 7-60
        user_id: Owner of the generated findings
        subscription_id: Subscription embedded in resource ids
        to_date: Last day of the window (default: today UTC)
        seed: Optional seed for reproducible output
        now: Timestamp base for generated findings

    Raises:
        ScenarioValidationError: If the scenario name is unknown
    """
    normalized = normalize_scenario(scenario)
    safe_days = clamp_days(days)
    now = now or datetime.utcnow()
    to_date = to_date or now.date()
    from_date = to_date - timedelta(days=safe_days - 1)
    rng = random.Random(seed)

    dataset = ScenarioDataset(
        scenario=normalized,
        days=safe_days,
        from_date=from_date,
        to_date=to_date,
        note=SCENARIO_NOTES[normalized],
    )

    for offset in range(safe_days):
        day = from_date + timedelta(days=offset)
        for template in RESOURCE_TEMPLATES:
            if normalized == "missing_data" and _skip_for_missing_data(day, to_date, template.key):
                continue

            cost = _scenario_cost(normalized, day, to_date, offset, template, rng)
            if cost <= 0:
                continue

            dataset.rows.append(SyntheticCostRow(
                subscription_id=subscription_id,
                usage_date=day,
                resource_id=template.resource_id(subscription_id),
                cost=cost.quantize(COST_QUANTUM, rounding=ROUND_HALF_EVEN),
            ))

    if normalized == "idle_resources":
        dataset.findings = build_idle_findings(user_id, subscription_id, now)

    return dataset
