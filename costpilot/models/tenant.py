"""Azure connection and subscription models."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from costpilot.core.database import Base


class AzureConnection(Base):
    """Service principal registered by a user."""

    __tablename__ = "azure_connections"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    client_id: Mapped[str] = mapped_column(String(36), nullable=False)
    # Reference to the stored secret; decryption happens outside the worker
    client_secret_ref: Mapped[str | None] = mapped_column(String(512))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    subscriptions: Mapped[list["Subscription"]] = relationship(
        back_populates="connection",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<AzureConnection {self.tenant_id} ({self.client_id[:8]}...)>"


class Subscription(Base):
    """Azure subscription discovered through a connection."""

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    connection_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("azure_connections.id"), nullable=False
    )
    subscription_id: Mapped[str] = mapped_column(String(64), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    connection: Mapped[AzureConnection] = relationship(back_populates="subscriptions")

    def __repr__(self) -> str:
        return f"<Subscription {self.display_name} ({self.subscription_id[:8]}...)>"
