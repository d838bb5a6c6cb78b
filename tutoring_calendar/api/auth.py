"""Who is calling: Google ID token verification and calendar role lookup.

Production requests carry ``Authorization: Bearer <google id token>``; the
token's email claim names the user and ``users/{email}.role`` decides the
calendar role. With ``TCAL_DEV_AUTH_BYPASS=1`` the ``X-User-Email`` header
(and optionally ``X-User-Role``) stand in for both.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Dict

from fastapi import Header, HTTPException, status
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from ..calendar.types import Actor, Role
from ..store.base import DocumentStore

logger = logging.getLogger(__name__)

DEV_BYPASS_ENV = "TCAL_DEV_AUTH_BYPASS"
CLIENT_ID_ENV = "GOOGLE_OAUTH_CLIENT_ID"
ALLOWED_AUDIENCE_ENV = "GOOGLE_OAUTH_AUDIENCE"


class AuthError(HTTPException):
    def __init__(self, detail: str, code: int = status.HTTP_401_UNAUTHORIZED) -> None:
        super().__init__(status_code=code, detail=detail)


@lru_cache
def _audiences() -> tuple[str, ...]:
    raw = os.getenv(ALLOWED_AUDIENCE_ENV) or os.getenv(CLIENT_ID_ENV) or ""
    return tuple(aud.strip() for aud in raw.split(",") if aud.strip())


def dev_bypass_enabled() -> bool:
    return os.getenv(DEV_BYPASS_ENV) == "1"


def verify_bearer_token(token: str) -> Dict[str, Any]:
    """Verify a Google ID token against each configured audience.

    Raises:
        AuthError: when no audience is configured or none accepts the token.
    """
    audiences = _audiences()
    if not audiences:
        raise AuthError(f"Set {CLIENT_ID_ENV} or {ALLOWED_AUDIENCE_ENV} to accept Google sign-in.")

    transport = google_requests.Request()
    last_error: ValueError | None = None
    for audience in audiences:
        try:
            return id_token.verify_oauth2_token(token, transport, audience)
        except ValueError as exc:
            last_error = exc
    logger.info("Rejected ID token: %s", last_error)
    raise AuthError(f"Invalid token: {last_error}")


def get_current_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
    dev_user: str | None = Header(default=None, alias="X-User-Email"),
) -> str:
    """FastAPI dependency returning the caller's email."""

    if dev_bypass_enabled():
        if not dev_user:
            raise AuthError(f"{DEV_BYPASS_ENV}=1 requires an X-User-Email header.")
        return dev_user

    scheme, _, token = (authorization or "").partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise AuthError("Missing Bearer token.")

    claims = verify_bearer_token(token.strip())
    email = claims.get("email")
    if not email:
        raise AuthError("Token missing email claim.")
    return email


async def resolve_actor(
    store: DocumentStore,
    users_collection: str,
    email: str,
    dev_role: str | None = None,
) -> Actor:
    """Build the Actor for ``email`` from its ``users/{email}`` document.

    With the dev bypass on, an ``X-User-Role`` header value wins over the
    stored role so tests can act as any role without seeding users.
    """

    raw_role = dev_role if dev_bypass_enabled() and dev_role else None
    if raw_role is None:
        user = await store.get(users_collection, email)
        raw_role = (user or {}).get("role")
    if not raw_role:
        raise AuthError(f"No calendar role assigned to {email}.", status.HTTP_403_FORBIDDEN)

    try:
        role = Role(raw_role)
    except ValueError as exc:
        raise AuthError(f"Unknown role '{raw_role}' for {email}.", status.HTTP_403_FORBIDDEN) from exc
    return Actor(role=role, email=email)
