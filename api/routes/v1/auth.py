"""
api/routes/v1/auth.py -- Token issuance endpoints.

Routes:
  POST /api/v1/auth       -- username-or-email + password; returns a 5 minute token
  GET  /api/v1/auth/me    -- claim carried by the presented token (requires auth)

Security:
  POST /auth is rate-limited per IP (Settings.login_rate_limit, registered
      on the app's own limiter by api.limiter.build_limiter).
  authenticate() provides timing equalization -- use it, never inline the
      lookup and digest comparison.
  Unknown login and wrong password produce the same 401 body.
  Cache-Control: no-store on every token response.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import AuthResponse, LoginRequest
from auth.credentials import authenticate
from auth.dependencies import get_current_claim
from auth.models import TokenClaim
from auth.store import UserStore
from auth.tokens import TokenCodec

logger = logging.getLogger("catalog.api.auth")

# Auth policy:
# - POST /api/v1/auth:     public -- the login endpoint must be unauthenticated
# - GET  /api/v1/auth/me:  requires a valid token (get_current_claim)
router = APIRouter()


@router.post("/auth", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Check credentials and return a signed token valid for 5 minutes."""
    user_store: UserStore = request.app.state.user_store
    credential = authenticate(user_store, body.username, body.password)
    if credential is None:
        resp = JSONResponse(
            status_code=401,
            content=AuthResponse(success=False, message="Invalid username or password.").model_dump(
                exclude_none=True
            ),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    codec: TokenCodec = request.app.state.token_codec
    token = codec.issue(credential.id, credential.permission_level)
    logger.info("Token issued for user_id=%s", credential.id)
    resp = JSONResponse(
        status_code=200,
        content=AuthResponse(success=True, token=token, message="Token valid 5 minutes").model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/me")
async def me(claim: TokenClaim = Depends(get_current_claim)) -> dict:
    """Return the claim embedded in the presented token."""
    return {
        "user_id": claim.subject_id,
        "permissions": claim.permission_level.value,
        "issued_at": claim.issued_at.isoformat(),
        "expires_at": claim.expires_at.isoformat(),
    }
