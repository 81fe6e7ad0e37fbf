"""Read the access token out of Supabase SSR session cookies.

The web app stores its session in ``sb-<project-ref>-auth-token``. Large
sessions are split into ``.0``, ``.1``, ... chunks that are concatenated in
order. The value is JSON, optionally prefixed with ``base64-`` and encoded
as base64url. Older clients stored a JSON array whose first element is the
access token.
"""

import base64
import binascii
import json
import logging
import re
from collections.abc import Mapping
from urllib.parse import unquote

logger = logging.getLogger(__name__)

_BASE64_PREFIX = "base64-"
_COOKIE_RE = re.compile(r"^sb-(?P<ref>[^.]+)-auth-token(?:\.(?P<chunk>\d+))?$")


def _collect_cookie_value(cookies: Mapping[str, str], project_ref: str | None) -> str | None:
    chunks: dict[str, dict[int, str]] = {}
    whole: dict[str, str] = {}
    for name, value in cookies.items():
        match = _COOKIE_RE.match(name)
        if match is None:
            continue
        ref = match.group("ref")
        if project_ref and ref != project_ref:
            continue
        if match.group("chunk") is None:
            whole[ref] = value
        else:
            chunks.setdefault(ref, {})[int(match.group("chunk"))] = value

    for ref in sorted(set(whole) | set(chunks)):
        if ref in whole:
            return whole[ref]
        parts = chunks[ref]
        return "".join(parts[i] for i in sorted(parts))
    return None


def _decode(raw: str) -> object:
    if raw.startswith(_BASE64_PREFIX):
        encoded = raw[len(_BASE64_PREFIX):]
        encoded += "=" * (-len(encoded) % 4)
        raw = base64.urlsafe_b64decode(encoded).decode("utf-8")
    elif raw.startswith("%"):
        raw = unquote(raw)
    return json.loads(raw)


def extract_access_token(cookies: Mapping[str, str], project_ref: str | None = None) -> str | None:
    """Return the access token from the session cookies, or None if absent/unreadable."""
    raw = _collect_cookie_value(cookies, project_ref)
    if not raw:
        return None

    try:
        session = _decode(raw)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.info("Unreadable Supabase session cookie")
        return None

    if isinstance(session, dict):
        token = session.get("access_token")
    elif isinstance(session, list) and session:
        token = session[0]
    else:
        token = None
    return token if isinstance(token, str) and token else None
