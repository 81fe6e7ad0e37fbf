"""Typed views of the Stripe webhook events the reconciler acts on.

Stripe delivers loosely-typed JSON objects. ``parse_event`` maps each event
onto one of a closed set of variants; anything not listed becomes
``UnhandledEvent``.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Union

import stripe

from billing_bridge.billing.plans import Billing, Plan, parse_billing, parse_plan

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"


@dataclass(frozen=True)
class PurchaseMetadata:
    """Attribution written into checkout metadata when the session was created."""

    user_id: str
    plan: Plan
    billing: Billing


@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: str
    session_id: str
    mode: str | None
    customer_id: str | None
    subscription_id: str | None
    metadata: PurchaseMetadata | None
    raw_metadata: dict[str, Any]


@dataclass(frozen=True)
class SubscriptionChanged:
    """customer.subscription.created / customer.subscription.updated"""

    event_id: str
    event_type: str
    subscription_id: str
    customer_id: str | None
    status: str
    current_period_end: datetime | None
    metadata: PurchaseMetadata | None


@dataclass(frozen=True)
class SubscriptionDeleted:
    event_id: str
    subscription_id: str
    current_period_end: datetime | None


@dataclass(frozen=True)
class UnhandledEvent:
    event_id: str
    event_type: str


WebhookEvent = Union[CheckoutCompleted, SubscriptionChanged, SubscriptionDeleted, UnhandledEvent]


def ts_to_datetime(ts: int | None) -> datetime | None:
    """Convert a Stripe Unix timestamp to an aware UTC datetime."""
    if not ts:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def _get(obj: Any, key: str) -> Any:
    """Bracket access that tolerates missing keys on dicts and StripeObjects."""
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


def object_id(value: Any) -> str | None:
    """Stripe references are either an ID string or an expanded object."""
    if value is None or isinstance(value, str):
        return value
    return _get(value, "id")


def _first_item(stripe_sub: Any) -> Any:
    data = _get(_get(stripe_sub, "items"), "data")
    if data:
        return data[0]
    return None


def subscription_period_end(stripe_sub: Any) -> datetime | None:
    """Read current_period_end from the subscription, else from its first item.

    In Stripe API 2025-08-27 (basil), current_period_start/end moved
    from the subscription object to the subscription item.
    """
    ts = _get(stripe_sub, "current_period_end")
    if ts is None:
        ts = _get(_first_item(stripe_sub), "current_period_end")
    return ts_to_datetime(ts)


def metadata_dict(raw: Any) -> dict[str, Any]:
    """Plain copy of a metadata mapping. StripeObjects are not Mappings."""
    if raw is None:
        return {}
    if isinstance(raw, stripe.StripeObject):
        return raw.to_dict()
    return dict(raw)


def parse_metadata(raw: Any) -> PurchaseMetadata | None:
    """Extract {user id, plan, billing}; None if any piece is missing or invalid."""
    user_id = _get(raw, "supabase_user_id") or _get(raw, "user_id")
    plan = parse_plan(_get(raw, "plan"))
    billing = parse_billing(_get(raw, "billing"))
    if not user_id or plan is None or billing is None:
        return None
    return PurchaseMetadata(user_id=user_id, plan=plan, billing=billing)


def parse_event(event: stripe.Event) -> WebhookEvent:
    """Map a verified Stripe event onto its typed variant."""
    event_type = event["type"]
    event_id = event["id"]
    obj = event["data"]["object"]

    if event_type == CHECKOUT_SESSION_COMPLETED:
        raw_metadata = metadata_dict(_get(obj, "metadata"))
        metadata = parse_metadata(raw_metadata)
        if metadata is None:
            client_reference_id = _get(obj, "client_reference_id")
            if client_reference_id:
                metadata = parse_metadata({**raw_metadata, "user_id": client_reference_id})
        return CheckoutCompleted(
            event_id=event_id,
            session_id=obj["id"],
            mode=_get(obj, "mode"),
            customer_id=object_id(_get(obj, "customer")),
            subscription_id=object_id(_get(obj, "subscription")),
            metadata=metadata,
            raw_metadata=raw_metadata,
        )

    if event_type in (SUBSCRIPTION_CREATED, SUBSCRIPTION_UPDATED):
        return SubscriptionChanged(
            event_id=event_id,
            event_type=event_type,
            subscription_id=obj["id"],
            customer_id=object_id(_get(obj, "customer")),
            status=_get(obj, "status") or "active",
            current_period_end=subscription_period_end(obj),
            metadata=parse_metadata(_get(obj, "metadata")),
        )

    if event_type == SUBSCRIPTION_DELETED:
        return SubscriptionDeleted(
            event_id=event_id,
            subscription_id=obj["id"],
            current_period_end=subscription_period_end(obj),
        )

    return UnhandledEvent(event_id=event_id, event_type=event_type)
