"""FastAPI authentication dependencies for route protection."""

import re

from fastapi import Depends, Request

from billing_bridge.auth.session_cookies import extract_access_token
from billing_bridge.auth.supabase import AuthUser, SupabaseAuthClient, get_auth_client
from billing_bridge.config import settings
from billing_bridge.errors import AuthenticationFailure

_BEARER_RE = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def get_bearer_token(request: Request) -> str | None:
    """Return the token from ``Authorization: Bearer <token>``, if present."""
    match = _BEARER_RE.match(request.headers.get("authorization", ""))
    if match is None:
        return None
    return match.group(1).strip() or None


async def get_current_user(
    request: Request,
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> AuthUser:
    """Resolve the caller from a Bearer token, falling back to session cookies.

    The browser extension sends a Bearer token; the web app relies on the
    Supabase session cookies. A Bearer token wins when both are present.

    Raises:
        AuthenticationFailure: If neither channel yields a valid user.
    """
    token = get_bearer_token(request)
    if token is not None:
        return await auth_client.get_user(token)

    cookie_token = extract_access_token(request.cookies, settings.supabase_project_ref)
    if cookie_token is None:
        raise AuthenticationFailure(
            "Not authenticated (no Bearer token and/or no valid auth cookies)",
            details="Auth session missing!",
        )
    return await auth_client.get_user(cookie_token)


async def get_bearer_user(
    request: Request,
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> AuthUser:
    """Resolve the caller strictly from a Bearer token.

    Raises:
        AuthenticationFailure: If the header is missing or the token is invalid.
    """
    token = get_bearer_token(request)
    if token is None:
        raise AuthenticationFailure("Missing Authorization: Bearer <access_token>")
    return await auth_client.get_user(token)
