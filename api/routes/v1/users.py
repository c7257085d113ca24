"""
api/routes/v1/users.py -- User management REST endpoints.

Routes:
  POST /api/v1/user              -- create a regularUser (admin only)
  PUT  /api/v1/user              -- partial update of the caller's own record
  PUT  /api/v1/user/{user_id}    -- same, addressed by id; must be the caller's id
  GET  /api/v1/users             -- paginated, filterable user listing (admin only)

Password changes rotate the salt (auth.credentials.apply_update). A
username/email-only update keeps the stored salt and digest.

Conflicts on the UNIQUE username/email columns surface as 409.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.exc import IntegrityError

from api.models import ErrorDetail, ListingResponse, ResultResponse, UserCreate, UserUpdate
from auth.credentials import apply_update, new_credential
from auth.dependencies import require_admin, require_user
from auth.gate import require_self
from auth.models import TokenClaim
from auth.store import UserStore
from query.entities import USERS
from query.options import MAX_LIMIT, QueryOptionsBuilder, split_fields

logger = logging.getLogger("catalog.api.users")

router = APIRouter()

_CONFLICT = ErrorDetail(code="conflict", message="A user with that username or email already exists.")


@router.post("/user", response_model=ResultResponse, status_code=201)
async def create_user(
    request: Request,
    body: UserCreate,
    claim: TokenClaim = Depends(require_admin),
) -> ResultResponse:
    """Create a new regularUser account. Admin only."""
    user_store: UserStore = request.app.state.user_store
    credential = new_credential(body.username, body.email, body.password)
    try:
        user_id = user_store.create_user(credential)
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail=_CONFLICT.model_dump()) from exc
    logger.info("User %s created by admin user_id=%s", user_id, claim.subject_id)
    return ResultResponse(message="User added successfully.", id=user_id)


@router.put("/user", response_model=ResultResponse)
async def update_own_user(
    request: Request,
    body: UserUpdate,
    claim: TokenClaim = Depends(require_user),
) -> ResultResponse:
    """Update the caller's username, email and/or password."""
    return _update_user(request.app.state.user_store, claim.subject_id, body)


@router.put("/user/{user_id}", response_model=ResultResponse)
async def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    claim: TokenClaim = Depends(require_user),
) -> ResultResponse:
    """Update a user by id. The id must be the caller's own."""
    require_self(claim, user_id)
    return _update_user(request.app.state.user_store, user_id, body)


@router.get("/users", response_model=ListingResponse)
def list_users(
    request: Request,
    fields: str = Query(..., description="Comma-separated columns, or * for all."),
    count: int = Query(MAX_LIMIT, description="Max records in response (1-200)."),
    offset: int = Query(0, description="Records to skip."),
    where: Optional[str] = Query(None, description="Filter expression, e.g. permissions = 'admin'."),
    claim: TokenClaim = Depends(require_admin),
) -> ListingResponse:
    """List users through the Users allow-list. Admin only."""
    options = QueryOptionsBuilder(USERS).build(count, offset, split_fields(fields), where)
    user_store: UserStore = request.app.state.user_store
    rows, total = user_store.list_users(options)
    return ListingResponse(count=len(rows), offset=options.offset, total=total, data=rows)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _update_user(user_store: UserStore, user_id: int, body: UserUpdate) -> ResultResponse:
    current = user_store.get_by_id(user_id)
    if current is None:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(code="not_found", message="User not found.").model_dump(),
        )
    updated = apply_update(
        current,
        username=body.username,
        email=str(body.email) if body.email is not None else None,
        password=body.password,
    )
    try:
        user_store.update_credential(updated)
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail=_CONFLICT.model_dump()) from exc
    logger.info("User %s updated (password_changed=%s)", user_id, body.password is not None)
    return ResultResponse(message="Data updated successfully.", id=user_id)
