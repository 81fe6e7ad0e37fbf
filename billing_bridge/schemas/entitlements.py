"""Pydantic v2 response schemas for the entitlements endpoint."""

from datetime import datetime

from pydantic import BaseModel


class EntitlementFlags(BaseModel):
    networking: bool
    talent: bool
    bundle: bool


class SubscriptionOut(BaseModel):
    """Stored subscription row as shown to the client."""

    plan: str
    billing: str | None
    status: str
    current_period_end: datetime | None


class EntitlementsResponse(BaseModel):
    """Derived entitlements plus the rows they were derived from."""

    user_id: str
    entitlements: EntitlementFlags
    subscriptions: list[SubscriptionOut]
