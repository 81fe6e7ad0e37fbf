"""Async Stripe API wrapper for the billing bridge."""

import logging

import stripe
from fastapi import Request
from stripe import StripeClient

from billing_bridge.config import Settings, settings
from billing_bridge.errors import ConfigurationFailure

logger = logging.getLogger(__name__)


def build_stripe_client(config: Settings = settings) -> StripeClient:
    """Create a StripeClient instance with async HTTP support."""
    if not config.stripe_secret_key:
        raise ConfigurationFailure("Missing env: STRIPE_SECRET_KEY")
    return StripeClient(
        config.stripe_secret_key,
        http_client=stripe.HTTPXClient(),
    )


def get_stripe_client(request: Request) -> StripeClient:
    """FastAPI dependency: the process-wide client built in the app lifespan."""
    client = getattr(request.app.state, "stripe_client", None)
    if client is None:
        client = build_stripe_client()
        request.app.state.stripe_client = client
    return client


async def create_checkout_session(
    client: StripeClient,
    *,
    price_id: str,
    mode: str,
    success_url: str,
    cancel_url: str,
    metadata: dict[str, str],
    client_reference_id: str,
    customer_email: str | None = None,
) -> stripe.checkout.Session:
    """Create a hosted Stripe Checkout Session for one price, quantity 1."""
    params: dict = {
        "mode": mode,
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": success_url,
        "cancel_url": cancel_url,
        "client_reference_id": client_reference_id,
        "metadata": metadata,
    }
    if mode == "payment":
        params["customer_creation"] = "always"
    else:
        # Lifecycle events for the subscription carry the same attribution
        params["subscription_data"] = {"metadata": metadata}
    if customer_email:
        params["customer_email"] = customer_email

    logger.info(
        "Creating %s checkout session for user %s, price %s",
        mode,
        client_reference_id,
        price_id,
    )
    return await client.v1.checkout.sessions.create_async(params=params)


async def create_portal_session(
    client: StripeClient, customer_id: str, return_url: str
) -> stripe.billing_portal.Session:
    """Create a Stripe Customer Portal session for subscription management."""
    logger.info("Creating portal session for customer %s", customer_id)
    return await client.v1.billing_portal.sessions.create_async(
        params={
            "customer": customer_id,
            "return_url": return_url,
        }
    )


async def get_subscription(client: StripeClient, subscription_id: str) -> stripe.Subscription:
    """Retrieve a Stripe subscription by ID."""
    return await client.v1.subscriptions.retrieve_async(subscription_id)


async def get_price(client: StripeClient, price_id: str) -> stripe.Price:
    """Retrieve a Stripe price by ID."""
    return await client.v1.prices.retrieve_async(price_id)


def construct_webhook_event(
    client: StripeClient, payload: bytes, sig_header: str, config: Settings = settings
) -> stripe.Event:
    """Verify and construct a Stripe webhook event (synchronous)."""
    if not config.stripe_webhook_secret:
        raise ConfigurationFailure("Missing env: STRIPE_WEBHOOK_SECRET")
    return client.construct_event(payload, sig_header, config.stripe_webhook_secret)
