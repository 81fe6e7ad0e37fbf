"""Stripe webhook event handlers — keep the subscriptions table in step with Stripe.

Every handler is idempotent: re-delivery of the same event converges on the
same row state. Store errors propagate so that the endpoint answers 5xx and
Stripe re-delivers; nothing is retried locally.
"""

import logging

from stripe import StripeClient

from billing_bridge.billing.entitlements import LIFETIME_STATUSES
from billing_bridge.billing.events import (
    CheckoutCompleted,
    SubscriptionChanged,
    SubscriptionDeleted,
    UnhandledEvent,
    WebhookEvent,
    subscription_period_end,
)
from billing_bridge.billing.plans import Billing
from billing_bridge.billing.stripe_client import get_subscription
from billing_bridge.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

# Status written for one-time (lifetime) purchases
LIFETIME_STATUS = "lifetime"
CANCELED_STATUS = "canceled"


async def handle_checkout_session_completed(
    store: SubscriptionStore, stripe_client: StripeClient, event: CheckoutCompleted
) -> None:
    """Handle checkout.session.completed — record the purchased grant."""
    metadata = event.metadata
    if metadata is None:
        # Acknowledge anyway: re-delivery cannot fix a payload without attribution
        logger.warning(
            "Checkout session %s has missing/invalid metadata %s, skipping",
            event.session_id,
            event.raw_metadata,
        )
        return

    billing = metadata.billing
    if event.mode == "payment":
        billing = Billing.LIFETIME

    if billing is not Billing.LIFETIME:
        existing = await store.get_grant(metadata.user_id, metadata.plan.value)
        if existing is not None and existing.status in LIFETIME_STATUSES:
            logger.info(
                "Ignoring checkout %s for user %s: plan %s is held for lifetime",
                event.session_id,
                metadata.user_id,
                metadata.plan.value,
            )
            return

    status = "active"
    current_period_end = None
    if billing is Billing.LIFETIME:
        status = LIFETIME_STATUS
    elif event.subscription_id:
        # Fetch the live subscription for its status and period
        stripe_sub = await get_subscription(stripe_client, event.subscription_id)
        status = stripe_sub["status"] or "active"
        current_period_end = subscription_period_end(stripe_sub)

    await store.upsert_grant(
        owner_id=metadata.user_id,
        plan=metadata.plan.value,
        billing=billing.value,
        status=status,
        current_period_end=current_period_end,
        stripe_customer_id=event.customer_id,
        stripe_subscription_id=None if billing is Billing.LIFETIME else event.subscription_id,
        stripe_checkout_session_id=event.session_id,
    )
    logger.info(
        "Checkout completed: user %s granted %s (%s), status=%s",
        metadata.user_id,
        metadata.plan.value,
        billing.value,
        status,
    )


async def handle_subscription_changed(
    store: SubscriptionStore, event: SubscriptionChanged
) -> None:
    """Handle customer.subscription.created/updated — sync status and period."""
    changes = {
        "status": event.status,
        "current_period_end": event.current_period_end,
        "stripe_customer_id": event.customer_id,
    }
    if event.metadata is not None:
        changes["plan"] = event.metadata.plan.value
        changes["billing"] = event.metadata.billing.value

    matched = await store.update_by_subscription_id(event.subscription_id, **changes)
    if matched:
        logger.info(
            "Subscription %s synced: status=%s",
            event.subscription_id,
            event.status,
        )
        return

    if event.metadata is None:
        logger.warning(
            "No local row for Stripe subscription %s (%s) and no metadata to create one",
            event.subscription_id,
            event.event_type,
        )
        return

    existing = await store.get_grant(event.metadata.user_id, event.metadata.plan.value)
    if existing is not None and existing.status in LIFETIME_STATUSES:
        logger.info(
            "Ignoring subscription %s for user %s: plan %s is held for lifetime",
            event.subscription_id,
            event.metadata.user_id,
            event.metadata.plan.value,
        )
        return

    await store.upsert_grant(
        owner_id=event.metadata.user_id,
        plan=event.metadata.plan.value,
        billing=event.metadata.billing.value,
        status=event.status,
        current_period_end=event.current_period_end,
        stripe_customer_id=event.customer_id,
        stripe_subscription_id=event.subscription_id,
        stripe_checkout_session_id=None,
    )
    logger.info(
        "Subscription %s recorded for user %s on plan %s",
        event.subscription_id,
        event.metadata.user_id,
        event.metadata.plan.value,
    )


async def handle_subscription_deleted(
    store: SubscriptionStore, event: SubscriptionDeleted
) -> None:
    """Handle customer.subscription.deleted — mark the row canceled."""
    changes = {"status": CANCELED_STATUS}
    if event.current_period_end is not None:
        changes["current_period_end"] = event.current_period_end

    matched = await store.update_by_subscription_id(event.subscription_id, **changes)
    if not matched:
        logger.warning(
            "No local row for Stripe subscription %s (delete event)",
            event.subscription_id,
        )
        return
    logger.info("Subscription deleted: %s marked canceled", event.subscription_id)


async def reconcile_event(
    store: SubscriptionStore, stripe_client: StripeClient, event: WebhookEvent
) -> bool:
    """Apply one typed webhook event. Returns False if the event type is ignored."""
    if isinstance(event, CheckoutCompleted):
        await handle_checkout_session_completed(store, stripe_client, event)
    elif isinstance(event, SubscriptionChanged):
        await handle_subscription_changed(store, event)
    elif isinstance(event, SubscriptionDeleted):
        await handle_subscription_deleted(store, event)
    elif isinstance(event, UnhandledEvent):
        logger.debug("Unhandled webhook event type: %s", event.event_type)
        return False
    else:
        raise TypeError(f"Unknown webhook event variant: {type(event).__name__}")
    return True
