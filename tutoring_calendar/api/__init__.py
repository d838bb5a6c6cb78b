"""Authentication helpers for the HTTP layer."""
from __future__ import annotations

from .auth import AuthError, get_current_user, resolve_actor, verify_bearer_token

__all__ = ["AuthError", "get_current_user", "resolve_actor", "verify_bearer_token"]
