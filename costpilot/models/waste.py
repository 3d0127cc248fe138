"""Waste finding database model."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from costpilot.core.database import Base


class WasteFinding(Base):
    """Point-in-time idle resource finding, replaced on every scan."""

    __tablename__ = "waste_findings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    subscription_id: Mapped[str] = mapped_column(String(64), nullable=False)
    finding_type: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(1024), nullable=False)
    resource_name: Mapped[str] = mapped_column(String(256), nullable=False)
    estimated_monthly_cost: Mapped[Decimal | None] = mapped_column(Numeric(18, 2))
    # Stopped VM classification
    classification: Mapped[str | None] = mapped_column(String(64))
    inactive_duration_days: Mapped[Decimal | None] = mapped_column(Numeric(8, 2))
    waste_confidence_level: Mapped[str | None] = mapped_column(String(16))
    last_seen_active_utc: Mapped[datetime | None] = mapped_column(DateTime)
    status: Mapped[str] = mapped_column(String(32), default="Open")
    detected_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<WasteFinding {self.finding_type}: {self.resource_name}>"
