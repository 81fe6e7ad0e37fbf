"""Stripe webhook endpoint — receives and processes Stripe events."""

import logging

import stripe
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from stripe import StripeClient

from billing_bridge.api.deps import get_stripe_client, get_subscription_store
from billing_bridge.billing.events import parse_event
from billing_bridge.billing.stripe_client import construct_webhook_event
from billing_bridge.billing.webhooks import reconcile_event
from billing_bridge.errors import UpstreamFailure, ValidationFailure
from billing_bridge.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/webhook", response_class=PlainTextResponse)
async def stripe_webhook(
    request: Request,
    store: SubscriptionStore = Depends(get_subscription_store),
    stripe_client: StripeClient = Depends(get_stripe_client),
) -> PlainTextResponse:
    """Receive and process Stripe webhook events."""
    # 1. Read raw body (MUST be raw bytes for signature verification)
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        raise ValidationFailure("Missing stripe-signature")

    # 2. Verify signature
    try:
        event = construct_webhook_event(stripe_client, payload, sig_header)
    except stripe.SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed")
        raise ValidationFailure("Webhook signature verification failed", details=str(e)) from e
    except ValueError as e:
        logger.warning("Invalid webhook payload")
        raise ValidationFailure("Invalid payload") from e

    # 3. Map onto a typed variant; a signed but malformed event is a 400
    try:
        typed_event = parse_event(event)
    except (KeyError, TypeError) as e:
        logger.warning("Malformed webhook event: %s", e)
        raise ValidationFailure("Invalid payload", details=f"missing field {e}") from e

    # 4. Apply to the store; a failed write answers 500 so Stripe re-delivers
    logger.info("Processing webhook event: %s (id=%s)", event["type"], event["id"])
    db = store.db
    try:
        await reconcile_event(store, stripe_client, typed_event)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Error processing webhook event %s", event["id"])
        raise UpstreamFailure("Webhook processing failed", details=str(e)) from e
    except stripe.StripeError as e:
        await db.rollback()
        logger.exception("Stripe lookup failed for webhook event %s", event["id"])
        raise UpstreamFailure("Webhook processing failed", details=str(e)) from e

    return PlainTextResponse("ok")
