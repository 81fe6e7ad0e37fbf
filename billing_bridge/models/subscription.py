"""Subscription model — one row per (user, plan) grant mirrored from Stripe."""

from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_bridge.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

# Owner foreign key column, current and pre-migration names
OWNER_COLUMN = "supabase_user_id"
LEGACY_OWNER_COLUMN = "user_id"


class Subscription(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Tracks one user's Stripe purchase of one plan."""

    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint(OWNER_COLUMN, "plan", name="uq_subscriptions_owner_plan"),
    )

    # Supabase auth user id; users live in the identity provider, not here
    owner_id: Mapped[str] = mapped_column(OWNER_COLUMN, String(255), nullable=False, index=True)

    # Plan & status
    plan: Mapped[str] = mapped_column(String(50), nullable=False)
    billing: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, server_default="active")

    # Billing period; NULL for lifetime grants
    current_period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Stripe identifiers
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True
    )
    stripe_checkout_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, owner_id={self.owner_id}, plan={self.plan}, "
            f"billing={self.billing}, status={self.status})>"
        )
