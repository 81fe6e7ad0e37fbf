"""Supabase Auth client — verifies access tokens against the identity provider."""

import logging
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx
from fastapi import Request
from jose import JWTError, jwt

from billing_bridge.config import Settings, settings
from billing_bridge.errors import AuthenticationFailure, ConfigurationFailure, UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    """Verified identity returned by the identity provider."""

    id: str
    email: str | None = None


def check_token_project(token: str, supabase_url: str) -> None:
    """Reject tokens issued by a different Supabase project than the configured one.

    Only the unverified ``iss`` claim is read; the signature is checked by
    the provider. Tokens that cannot be decoded are left to the provider.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return

    issuer = claims.get("iss")
    expected_host = urlparse(supabase_url).hostname
    if not isinstance(issuer, str) or not expected_host:
        return
    if expected_host not in issuer:
        raise AuthenticationFailure(
            "Invalid access token (project mismatch)",
            details={"token_iss": issuer, "env_supabase_url_host": expected_host},
        )


class SupabaseAuthClient:
    """Thin async wrapper over ``GET /auth/v1/user``."""

    def __init__(self, base_url: str, anon_key: str, http_client: httpx.AsyncClient) -> None:
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.http_client = http_client

    async def get_user(self, access_token: str) -> AuthUser:
        """Verify an access token and return the user it belongs to.

        Raises:
            AuthenticationFailure: If the provider rejects the token.
            UpstreamFailure: If the provider cannot be reached or misbehaves.
        """
        check_token_project(access_token, self.base_url)

        try:
            response = await self.http_client.get(
                f"{self.base_url}/auth/v1/user",
                headers={
                    "apikey": self.anon_key,
                    "Authorization": f"Bearer {access_token}",
                },
            )
        except httpx.HTTPError as e:
            logger.error("Supabase auth request failed: %s", e)
            raise UpstreamFailure("Identity provider unavailable", details=str(e)) from e

        if response.status_code in (400, 401, 403, 404):
            raise AuthenticationFailure(
                "Invalid access token",
                details=_error_message(response),
            )
        if response.is_error:
            logger.error("Supabase auth returned HTTP %s", response.status_code)
            raise UpstreamFailure(
                "Identity provider error",
                details=f"HTTP {response.status_code}",
            )

        data = response.json()
        user_id = data.get("id")
        if not user_id:
            raise AuthenticationFailure("Invalid access token", details="No user returned")
        return AuthUser(id=user_id, email=data.get("email"))


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return response.text or f"HTTP {response.status_code}"
    return (
        body.get("msg")
        or body.get("message")
        or body.get("error_description")
        or body.get("error")
        or f"HTTP {response.status_code}"
    )


def build_auth_client(http_client: httpx.AsyncClient, config: Settings = settings) -> SupabaseAuthClient:
    if not config.supabase_url or not config.supabase_anon_key:
        raise ConfigurationFailure("Missing env: SUPABASE_URL / SUPABASE_ANON_KEY")
    return SupabaseAuthClient(config.supabase_url, config.supabase_anon_key, http_client)


def get_auth_client(request: Request) -> SupabaseAuthClient:
    """FastAPI dependency: auth client sharing the app's HTTP connection pool."""
    client = getattr(request.app.state, "auth_client", None)
    if client is None:
        http_client = getattr(request.app.state, "http_client", None)
        if http_client is None:
            # Owned and closed by the app lifespan
            raise ConfigurationFailure("HTTP client not initialised; start the app with its lifespan")
        client = build_auth_client(http_client)
        request.app.state.auth_client = client
    return client
