"""Shared API dependencies — single import point for all routers.

Re-exports database session, client and authentication dependencies so that
router modules can import everything they need from one place::

    from billing_bridge.api.deps import get_current_user, get_subscription_store
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from billing_bridge.auth.dependencies import get_bearer_user, get_current_user
from billing_bridge.auth.supabase import get_auth_client
from billing_bridge.billing.stripe_client import get_stripe_client
from billing_bridge.database import get_db
from billing_bridge.services.subscription_store import SubscriptionStore


async def get_subscription_store(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> SubscriptionStore:
    """Store bound to the request's DB session, using the owner column probed at startup."""
    return SubscriptionStore(db, owner_column=getattr(request.app.state, "owner_column", None))


__all__ = [
    "get_db",
    "get_auth_client",
    "get_stripe_client",
    "get_current_user",
    "get_bearer_user",
    "get_subscription_store",
]
