"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in catalog/models.py -- dataclasses own domain shape; factories in
auth/credentials.py and the stores do the work.

Both classes are frozen. A UserCredential is never mutated in place: a
password change produces a new value with a new salt and digest (see
auth.credentials.apply_update).

Layer rule: no imports from api/, catalog/, or query/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class PermissionLevel(str, Enum):
    """Permission levels. Values are the strings stored in the users table."""

    REGULAR_USER = "regularUser"
    ADMIN = "admin"


@dataclass(frozen=True)
class UserCredential:
    """A user record as held transiently during one verification or update.

    password_hash is always base64(SHA-256(password + salt)). The salt is
    drawn fresh whenever a password is set, so two users (or two successive
    passwords of one user) never share one.

    id is None before the record is written to the database.
    """

    username: str
    email: str
    password_hash: str
    salt: str
    permission_level: PermissionLevel = PermissionLevel.REGULAR_USER
    id: int | None = None


@dataclass(frozen=True)
class TokenClaim:
    """The assertion embedded in an access token.

    expires_at is exactly TOKEN_TTL after issued_at. Both are timezone-aware
    UTC datetimes truncated to whole seconds (JWT NumericDate resolution).
    """

    subject_id: int
    permission_level: PermissionLevel
    issued_at: datetime
    expires_at: datetime
