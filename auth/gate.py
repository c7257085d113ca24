"""
auth/gate.py -- Permission decisions over a verified TokenClaim.

Pure functions: no I/O, no request object. Each returns the claim unchanged
when access is allowed so calls compose, and raises AuthError(forbidden)
otherwise. auth/dependencies.py wraps them as FastAPI dependencies.

Layer rule: no imports from api/, catalog/, or query/.
"""

from __future__ import annotations

from auth.models import PermissionLevel, TokenClaim
from core.errors import AuthError


def has_permission(granted: PermissionLevel, required: PermissionLevel) -> bool:
    """Admin satisfies every requirement; regularUser satisfies only regularUser."""
    if granted == PermissionLevel.ADMIN:
        return True
    return required == PermissionLevel.REGULAR_USER


def require_permission(claim: TokenClaim, required: PermissionLevel) -> TokenClaim:
    if not has_permission(claim.permission_level, required):
        raise AuthError(AuthError.FORBIDDEN, f"{PermissionLevel(required).value} permission required.")
    return claim


def require_self(claim: TokenClaim, target_subject_id: int) -> TokenClaim:
    """Allow only when the operation targets the token's own subject."""
    if claim.subject_id != target_subject_id:
        raise AuthError(AuthError.FORBIDDEN, "Operation is limited to your own account.")
    return claim
