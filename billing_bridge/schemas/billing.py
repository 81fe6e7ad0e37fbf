"""Pydantic v2 request/response schemas for billing endpoints."""

from pydantic import BaseModel

# --- Request schemas ---


class CheckoutRequest(BaseModel):
    """Request to create a Stripe Checkout session.

    Values are validated by the endpoint so a bad enumeration answers 400
    with the expected values rather than a generic 422.
    """

    plan: str | None = None  # "talent", "networking" or "bundle"
    billing: str | None = None  # "monthly", "yearly" or "lifetime"


# --- Response schemas ---


class CheckoutResponse(BaseModel):
    """Stripe Checkout session URL returned to the client."""

    url: str


class PortalResponse(BaseModel):
    """Stripe Customer Portal URL returned to the client."""

    url: str


class PriceResponse(BaseModel):
    """One purchasable (plan, billing) option with its live Stripe amount."""

    plan: str
    billing: str
    amount: int  # in cents
    currency: str
    price_id: str
    label: str


class PricesListResponse(BaseModel):
    """All configured prices."""

    prices: list[PriceResponse]


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str
    details: object | None = None
