"""Billing API endpoints — Stripe Checkout, Customer Portal and the price list."""

import logging

import stripe
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from stripe import StripeClient

from billing_bridge.api.deps import (
    get_bearer_user,
    get_current_user,
    get_stripe_client,
    get_subscription_store,
)
from billing_bridge.auth.supabase import AuthUser
from billing_bridge.billing.plans import (
    EXPECTED_CHECKOUT_VALUES,
    checkout_mode,
    configured_prices,
    get_price_id,
    parse_billing,
    parse_plan,
)
from billing_bridge.billing.stripe_client import (
    create_checkout_session,
    create_portal_session,
    get_price,
)
from billing_bridge.config import settings
from billing_bridge.errors import UpstreamFailure, ValidationFailure
from billing_bridge.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    ErrorResponse,
    PortalResponse,
    PriceResponse,
    PricesListResponse,
)
from billing_bridge.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing"])

_ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.get("/prices", response_model=PricesListResponse, responses={500: {"model": ErrorResponse}})
async def list_prices(
    stripe_client: StripeClient = Depends(get_stripe_client),
) -> PricesListResponse:
    """List purchasable options with live Stripe amounts (public — no auth required)."""
    prices: list[PriceResponse] = []
    for option in configured_prices():
        try:
            price = await get_price(stripe_client, option.price_id)
        except stripe.StripeError as e:
            logger.error("Stripe price lookup failed for %s: %s", option.price_id, e)
            raise UpstreamFailure("Failed to load Stripe prices", details=str(e)) from e

        prices.append(
            PriceResponse(
                plan=option.plan.value,
                billing=option.billing.value,
                amount=price.unit_amount or 0,
                currency=price.currency or "usd",
                price_id=price.id,
                label=option.label,
            )
        )
    return PricesListResponse(prices=prices)


@router.post("/checkout", response_model=CheckoutResponse, responses=_ERRORS)
async def create_checkout(
    body: CheckoutRequest,
    current_user: AuthUser = Depends(get_bearer_user),
    stripe_client: StripeClient = Depends(get_stripe_client),
) -> CheckoutResponse:
    """Create a Stripe Checkout session for a (plan, billing) purchase."""
    plan = parse_plan(body.plan)
    billing = parse_billing(body.billing)
    if plan is None or billing is None:
        raise ValidationFailure(
            "Invalid payload",
            details={"expected": EXPECTED_CHECKOUT_VALUES},
        )

    price_id = get_price_id(plan, billing)
    mode = checkout_mode(billing)

    success_url = (
        f"{settings.app_url}/success?plan={plan.value}&billing={billing.value}"
        "&session_id={CHECKOUT_SESSION_ID}"
    )
    cancel_url = f"{settings.app_url}/upgrade?plan={plan.value}"

    try:
        session = await create_checkout_session(
            stripe_client,
            price_id=price_id,
            mode=mode,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={
                "supabase_user_id": current_user.id,
                "plan": plan.value,
                "billing": billing.value,
            },
            client_reference_id=current_user.id,
            customer_email=current_user.email,
        )
    except stripe.StripeError as e:
        logger.error("Stripe checkout error: %s", e)
        raise UpstreamFailure("Stripe checkout failed", details=str(e)) from e

    return CheckoutResponse(url=session.url)


@router.post("/billing-portal", response_model=PortalResponse, responses=_ERRORS)
async def create_portal(
    current_user: AuthUser = Depends(get_current_user),
    store: SubscriptionStore = Depends(get_subscription_store),
    stripe_client: StripeClient = Depends(get_stripe_client),
) -> PortalResponse:
    """Create a Stripe Customer Portal session for subscription management."""
    try:
        customer_id = await store.latest_customer_id(current_user.id)
    except SQLAlchemyError as e:
        logger.exception("Customer lookup failed for user %s", current_user.id)
        raise UpstreamFailure("DB query failed", details=str(e)) from e

    if not customer_id:
        raise ValidationFailure("Missing stripe_customer_id on subscriptions for this user")

    try:
        session = await create_portal_session(
            stripe_client,
            customer_id=customer_id,
            return_url=f"{settings.app_url}/",
        )
    except stripe.StripeError as e:
        logger.error("Stripe portal error: %s", e)
        raise UpstreamFailure("Stripe portal failed", details=str(e)) from e

    return PortalResponse(url=session.url)
