"""Entitlement resolution — reduce subscription rows to capability flags.

Pure functions: given the rows for one user and an evaluation instant, the
result is fully determined. A bundle grant implies both individual packs.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from billing_bridge.billing.plans import Billing, Plan

# Recurring grants that are paid up; still bounded by current_period_end
ACTIVE_STATUSES: frozenset[str] = frozenset({"active"})

# One-time purchases that never expire
LIFETIME_STATUSES: frozenset[str] = frozenset({"lifetime", "paid"})

VALID_STATUSES: frozenset[str] = ACTIVE_STATUSES | LIFETIME_STATUSES

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class SubscriptionRecord:
    """One stored (user, plan) grant as read from the subscriptions table."""

    plan: str
    billing: str | None
    status: str
    current_period_end: datetime | None = None
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Entitlements:
    """Capability flags derived from a user's subscription rows."""

    talent: bool
    networking: bool
    bundle: bool


@dataclass(frozen=True)
class EntitlementResult:
    entitlements: Entitlements
    subscriptions: list[SubscriptionRecord]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def is_lifetime(row: SubscriptionRecord) -> bool:
    return row.billing == Billing.LIFETIME.value or row.status in LIFETIME_STATUSES


def is_row_valid(row: SubscriptionRecord, now: datetime) -> bool:
    """A row grants access if its status is valid and it has not expired.

    Lifetime rows never expire. Recurring rows need a current_period_end
    strictly after ``now``.
    """
    if row.status not in VALID_STATUSES:
        return False
    if row.billing == Billing.LIFETIME.value:
        return True
    period_end = as_utc(row.current_period_end)
    return period_end is not None and period_end > now


def display_sort_key(row: SubscriptionRecord, now: datetime) -> tuple:
    """Order rows best-first within a plan.

    Valid before invalid, lifetime before recurring, later period end, then
    most recently updated.
    """
    return (
        row.plan,
        not is_row_valid(row, now),
        not is_lifetime(row),
        -(as_utc(row.current_period_end) or _EPOCH).timestamp(),
        -(as_utc(row.updated_at) or _EPOCH).timestamp(),
    )


def resolve_entitlements(
    rows: list[SubscriptionRecord], now: datetime | None = None
) -> EntitlementResult:
    """Reduce a user's subscription rows to (talent, networking, bundle) flags."""
    now = as_utc(now) if now is not None else utcnow()
    valid_plans = {row.plan for row in rows if is_row_valid(row, now)}

    bundle = Plan.BUNDLE.value in valid_plans
    talent = bundle or Plan.TALENT.value in valid_plans
    networking = bundle or Plan.NETWORKING.value in valid_plans

    return EntitlementResult(
        entitlements=Entitlements(talent=talent, networking=networking, bundle=bundle),
        subscriptions=sorted(rows, key=lambda r: display_sort_key(r, now)),
    )
