"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. Authorization: Bearer <token> header.
  2. X-Access-Token header -- kept for clients of the first API version.

Both converge on a verified TokenClaim. The TokenCodec comes from
app.state.token_codec, which the lifespan builds once from Settings.

get_current_claim() raises AuthError(unauthorized) when no token is sent and
lets TokenCodec.verify() raise its own AuthError for bad tokens.
require_user() and require_admin() add the permission check on top, so a
route that declares one of them never runs for a rejected request.

Layer rule: no imports from catalog/ or query/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.gate import require_permission
from auth.models import PermissionLevel, TokenClaim
from auth.tokens import TokenCodec
from core.errors import AuthError


def extract_token(request: Request) -> str | None:
    """Return the raw token sent with the request, or None."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.headers.get("X-Access-Token") or None


def get_current_claim(request: Request) -> TokenClaim:
    """Require a valid token. Raises AuthError (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(claim: TokenClaim = Depends(get_current_claim)): ...
    """
    token = extract_token(request)
    if token is None:
        raise AuthError(AuthError.UNAUTHORIZED, "Authentication required.")
    codec: TokenCodec = request.app.state.token_codec
    return codec.verify(token)


def require_user(claim: TokenClaim = Depends(get_current_claim)) -> TokenClaim:
    return require_permission(claim, PermissionLevel.REGULAR_USER)


def require_admin(claim: TokenClaim = Depends(get_current_claim)) -> TokenClaim:
    """Require admin permission. 401 if unauthenticated, 403 if not admin."""
    return require_permission(claim, PermissionLevel.ADMIN)
