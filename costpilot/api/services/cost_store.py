"""Cost record store.

Thin query layer over the SQLAlchemy session used by sync jobs, the read
model and the scenario seeder. Nothing here commits; callers own the
transaction (see ``get_db_context``).
"""

import logging
from collections.abc import Iterable
from datetime import date
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from costpilot.api.services.azure_client import ScanTarget
from costpilot.core.database import bulk_insert_chunks
from costpilot.engine.attribution import normalize_resource_id
from costpilot.engine.types import (
    CostEvaluation,
    CostPoint,
    FindingType,
    PriorVmFinding,
    WasteFindingDraft,
)
from costpilot.models.cost import CostEvent, DailyCostResource
from costpilot.models.tenant import AzureConnection, Subscription
from costpilot.models.waste import WasteFinding

logger = logging.getLogger(__name__)

TRACKED_FINDING_TYPES = [t.value for t in FindingType]


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


class CostRecordStore:
    """Reads and writes cost rows, cost events and waste findings."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Targets
    # =========================================================================

    def list_scan_targets(self, user_id: str | None = None) -> list[ScanTarget]:
        """Subscriptions joined with their connection credentials."""
        query = (
            select(Subscription, AzureConnection)
            .join(AzureConnection, Subscription.connection_id == AzureConnection.id)
            .order_by(Subscription.user_id, Subscription.subscription_id)
        )
        if user_id is not None:
            query = query.where(Subscription.user_id == user_id)

        return [
            ScanTarget(
                user_id=subscription.user_id,
                subscription_id=subscription.subscription_id,
                tenant_id=connection.tenant_id,
                client_id=connection.client_id,
                client_secret_ref=connection.client_secret_ref,
            )
            for subscription, connection in self.db.execute(query).all()
        ]

    def latest_subscription_id(self, user_id: str) -> str | None:
        """Most recently registered subscription for a user."""
        return self.db.scalars(
            select(Subscription.subscription_id)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
            .limit(1)
        ).first()

    # =========================================================================
    # Daily costs
    # =========================================================================

    def query_daily_costs(
        self,
        user_id: str,
        subscription_id: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[DailyCostResource]:
        """Daily cost rows for a user, optionally narrowed to a subscription and window."""
        query = select(DailyCostResource).where(DailyCostResource.user_id == user_id)
        if subscription_id is not None:
            query = query.where(DailyCostResource.subscription_id == subscription_id)
        if start is not None:
            query = query.where(DailyCostResource.usage_date >= start)
        if end is not None:
            query = query.where(DailyCostResource.usage_date <= end)
        query = query.order_by(DailyCostResource.usage_date, DailyCostResource.resource_id)
        return list(self.db.scalars(query).all())

    def cost_points(self, user_id: str, start: date, end: date) -> list[CostPoint]:
        """Daily cost rows converted to engine points."""
        return [
            CostPoint(usage_date=row.usage_date, resource_id=row.resource_id, cost=row.cost)
            for row in self.query_daily_costs(user_id, start=start, end=end)
        ]

    def latest_usage_date(self, user_id: str, end: date) -> date | None:
        """Newest usage date with cost rows for a user, on or before ``end``."""
        return self.db.scalar(
            select(func.max(DailyCostResource.usage_date))
            .where(DailyCostResource.user_id == user_id)
            .where(DailyCostResource.usage_date <= end)
        )

    def users_with_costs(self, start: date, end: date, user_id: str | None = None) -> list[str]:
        """Distinct users that have cost rows in the window."""
        query = (
            select(DailyCostResource.user_id)
            .where(DailyCostResource.usage_date >= start)
            .where(DailyCostResource.usage_date <= end)
            .distinct()
        )
        if user_id is not None:
            query = query.where(DailyCostResource.user_id == user_id)
        return sorted(self.db.scalars(query).all())

    def upsert_daily_costs(self, rows: Iterable[dict[str, Any]]) -> int:
        """Insert rows or update cost and currency of existing natural keys."""
        count = 0
        for row in rows:
            existing = self.db.scalars(
                select(DailyCostResource)
                .where(DailyCostResource.user_id == row["user_id"])
                .where(DailyCostResource.subscription_id == row["subscription_id"])
                .where(DailyCostResource.usage_date == row["usage_date"])
                .where(DailyCostResource.resource_id == row["resource_id"])
            ).first()
            if existing is None:
                self.db.add(DailyCostResource(**row))
            else:
                existing.cost = row["cost"]
                existing.currency = row.get("currency", existing.currency)
            count += 1
        self.db.flush()
        return count

    def replace_daily_costs(
        self,
        user_id: str,
        subscription_id: str,
        start: date,
        end: date,
        rows: list[dict[str, Any]],
    ) -> int:
        """Delete the (user, subscription) window and insert the fresh rows."""
        self.db.execute(
            delete(DailyCostResource)
            .where(DailyCostResource.user_id == user_id)
            .where(DailyCostResource.subscription_id == subscription_id)
            .where(DailyCostResource.usage_date >= start)
            .where(DailyCostResource.usage_date <= end)
        )
        return bulk_insert_chunks(self.db, DailyCostResource, rows)

    def delete_user_costs(self, user_id: str, from_date: date | None = None) -> None:
        """Delete a user's cost rows and events, from a date or entirely."""
        cost_query = delete(DailyCostResource).where(DailyCostResource.user_id == user_id)
        event_query = delete(CostEvent).where(CostEvent.user_id == user_id)
        if from_date is not None:
            cost_query = cost_query.where(DailyCostResource.usage_date >= from_date)
            event_query = event_query.where(CostEvent.event_date >= from_date)
        self.db.execute(cost_query)
        self.db.execute(event_query)

    # =========================================================================
    # Cost events
    # =========================================================================

    def replace_cost_event(self, user_id: str, evaluation: CostEvaluation) -> CostEvent:
        """Replace the user's event for the evaluated date."""
        self.db.execute(
            delete(CostEvent)
            .where(CostEvent.user_id == user_id)
            .where(CostEvent.event_date == evaluation.event_date)
        )

        cause = evaluation.cause
        event = CostEvent(
            user_id=user_id,
            event_date=evaluation.event_date,
            total_yesterday=evaluation.total_yesterday,
            total_today=evaluation.total_today,
            difference=evaluation.difference,
            baseline=evaluation.baseline,
            spike_flag=evaluation.spike_flag,
            confidence=_enum_value(evaluation.confidence),
            top_resource_id=cause.resource_id if cause else None,
            top_resource_name=cause.resource_name if cause else None,
            top_resource_type=cause.resource_type if cause else None,
            top_increase_amount=cause.increase_amount if cause else None,
            suggestion_text=evaluation.suggestion_text,
        )
        self.db.add(event)
        self.db.flush()
        return event

    def latest_cost_event(self, user_id: str) -> CostEvent | None:
        return self.db.scalars(
            select(CostEvent)
            .where(CostEvent.user_id == user_id)
            .order_by(CostEvent.event_date.desc(), CostEvent.created_at.desc())
            .limit(1)
        ).first()

    def spike_events_for_date(self, event_date: date) -> list[CostEvent]:
        return list(self.db.scalars(
            select(CostEvent)
            .where(CostEvent.event_date == event_date)
            .where(CostEvent.spike_flag.is_(True))
            .order_by(CostEvent.user_id)
        ).all())

    # =========================================================================
    # Waste findings
    # =========================================================================

    def prior_vm_findings(self, user_ids: Iterable[str]) -> dict[tuple[str, str], PriorVmFinding]:
        """Current stopped VM findings keyed by (user id, normalized resource id)."""
        user_ids = list(user_ids)
        if not user_ids:
            return {}

        findings = self.db.scalars(
            select(WasteFinding)
            .where(WasteFinding.user_id.in_(user_ids))
            .where(WasteFinding.finding_type == FindingType.STOPPED_VM.value)
        ).all()

        return {
            (finding.user_id, normalize_resource_id(finding.resource_id)): PriorVmFinding(
                resource_id=finding.resource_id,
                detected_at=finding.detected_at,
                last_seen_active_utc=finding.last_seen_active_utc,
            )
            for finding in findings
        }

    def replace_waste_findings(
        self,
        user_ids: Iterable[str],
        findings: Iterable[WasteFindingDraft],
    ) -> int:
        """Delete tracked findings of the given users and insert the new snapshot."""
        user_ids = list(user_ids)
        if user_ids:
            self.db.execute(
                delete(WasteFinding)
                .where(WasteFinding.user_id.in_(user_ids))
                .where(WasteFinding.finding_type.in_(TRACKED_FINDING_TYPES))
            )
        return self.add_waste_findings(findings)

    def add_waste_findings(self, findings: Iterable[WasteFindingDraft]) -> int:
        count = 0
        for draft in findings:
            self.db.add(WasteFinding(
                user_id=draft.user_id,
                subscription_id=draft.subscription_id,
                finding_type=_enum_value(draft.finding_type),
                resource_id=draft.resource_id,
                resource_name=draft.resource_name,
                estimated_monthly_cost=draft.estimated_monthly_cost,
                classification=_enum_value(draft.classification),
                inactive_duration_days=draft.inactive_duration_days,
                waste_confidence_level=_enum_value(draft.waste_confidence_level),
                last_seen_active_utc=draft.last_seen_active_utc,
                status=draft.status,
                detected_at=draft.detected_at,
            ))
            count += 1
        self.db.flush()
        return count

    def delete_user_findings(self, user_id: str) -> None:
        self.db.execute(delete(WasteFinding).where(WasteFinding.user_id == user_id))

    def list_open_findings(self, user_id: str) -> list[WasteFinding]:
        return list(self.db.scalars(
            select(WasteFinding)
            .where(WasteFinding.user_id == user_id)
            .where(WasteFinding.status.ilike("open"))
        ).all())
