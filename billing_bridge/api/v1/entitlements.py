"""Entitlements endpoint — which feature packs the caller has unlocked."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from billing_bridge.api.deps import get_current_user, get_subscription_store
from billing_bridge.auth.supabase import AuthUser
from billing_bridge.billing.entitlements import resolve_entitlements
from billing_bridge.errors import UpstreamFailure
from billing_bridge.schemas.billing import ErrorResponse
from billing_bridge.schemas.entitlements import (
    EntitlementFlags,
    EntitlementsResponse,
    SubscriptionOut,
)
from billing_bridge.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["entitlements"])


@router.get(
    "/entitlements",
    response_model=EntitlementsResponse,
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_entitlements(
    current_user: AuthUser = Depends(get_current_user),
    store: SubscriptionStore = Depends(get_subscription_store),
) -> EntitlementsResponse:
    """Resolve the caller's entitlements from their subscription rows."""
    try:
        rows = await store.list_for_owner(current_user.id)
    except SQLAlchemyError as e:
        logger.exception("Subscription query failed for user %s", current_user.id)
        raise UpstreamFailure("DB query failed", details=str(e)) from e

    result = resolve_entitlements(rows)
    flags = result.entitlements
    return EntitlementsResponse(
        user_id=current_user.id,
        entitlements=EntitlementFlags(
            networking=flags.networking,
            talent=flags.talent,
            bundle=flags.bundle,
        ),
        subscriptions=[
            SubscriptionOut(
                plan=row.plan,
                billing=row.billing,
                status=row.status,
                current_period_end=row.current_period_end,
            )
            for row in result.subscriptions
        ],
    )
