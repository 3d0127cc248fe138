"""Cost-related database models."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from costpilot.core.database import Base


class DailyCostResource(Base):
    """Daily cost per user, subscription and Azure resource."""

    __tablename__ = "daily_cost_resources"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "subscription_id", "usage_date", "resource_id",
            name="uq_daily_cost_resource",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    subscription_id: Mapped[str] = mapped_column(String(64), nullable=False)
    usage_date: Mapped[date] = mapped_column(Date, nullable=False)
    resource_id: Mapped[str] = mapped_column(String(1024), nullable=False)
    cost: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), default="USD")

    def __repr__(self) -> str:
        return f"<DailyCostResource {self.usage_date} {self.resource_id}: {self.cost}>"


class CostEvent(Base):
    """Evaluated day-over-day cost summary, one row per user and date."""

    __tablename__ = "cost_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_yesterday: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    total_today: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    difference: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    baseline: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    spike_flag: Mapped[bool] = mapped_column(Boolean, default=False)
    confidence: Mapped[str] = mapped_column(String(16), default="Low")
    # top_* columns are written together or not at all
    top_resource_id: Mapped[str | None] = mapped_column(String(1024))
    top_resource_name: Mapped[str | None] = mapped_column(String(256))
    top_resource_type: Mapped[str | None] = mapped_column(String(256))
    top_increase_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 4))
    suggestion_text: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<CostEvent {self.event_date}: spike={self.spike_flag}>"
