"""Error taxonomy shared by routers, dependencies and services.

Each error carries the HTTP status it maps to; ``main.py`` renders them as
``{"error": <message>, "details": <optional>}``.
"""

from typing import Any


class BillingBridgeError(Exception):
    """Base class for errors that map to a JSON error response."""

    status_code: int = 500

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class AuthenticationFailure(BillingBridgeError):
    """Missing, invalid or expired credential. Never retried."""

    status_code = 401


class ValidationFailure(BillingBridgeError):
    """Malformed request body or value outside an enumeration."""

    status_code = 400


class ConfigurationFailure(BillingBridgeError):
    """Missing environment value or unmapped price. Operator-fixable."""

    status_code = 500


class UpstreamFailure(BillingBridgeError):
    """Identity provider, Stripe or store call failed."""

    status_code = 500
