"""
auth/credentials.py -- Salted password digests and credential factories.

Security design decisions:
  Digest: base64(SHA-256(password + salt)). The stored users table and every
       existing client depend on this exact format, so the digest is fixed
       rather than pluggable.

  Salt: secrets.token_hex(16) gives 128 bits from the OS CSPRNG. A new salt
       is drawn every time a password is set -- on registration and on every
       password change -- and never otherwise. The users table also carries a
       UNIQUE constraint on the salt column.

  Comparison: hmac.compare_digest runs in time proportional to the digest
       length, not to the position of the first differing byte.

  Timing equalization: authenticate() always computes one digest, even when
       the login does not match any user, so response time does not reveal
       whether a username or email exists.

Factories replace constructor side effects: new_credential() and
apply_update() derive the digest first and return a fully formed, frozen
UserCredential. Nothing computes a digest as a hidden field mutation.

Layer rule: no imports from api/, catalog/, or query/.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from dataclasses import replace
from typing import TYPE_CHECKING, Optional

from auth.models import PermissionLevel, UserCredential

if TYPE_CHECKING:
    from auth.store import UserStore

logger = logging.getLogger("catalog.auth")


# ---------------------------------------------------------------------------
# Digest primitives
# ---------------------------------------------------------------------------


def generate_salt() -> str:
    """Return a fresh random salt (32 hex chars)."""
    return secrets.token_hex(16)


def hash_secret(secret: str, salt: str) -> str:
    """Return base64(SHA-256(secret + salt)). Deterministic for equal inputs."""
    digest = hashlib.sha256((secret + salt).encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_secret(secret: str, salt: str, expected_digest: str) -> bool:
    """Recompute the digest and compare it to expected_digest in constant time."""
    actual = hash_secret(secret, salt)
    return hmac.compare_digest(actual.encode("ascii"), expected_digest.encode("utf-8"))


# Timing equalization dummy [computed once at module load].
_DUMMY_SALT = generate_salt()
_DUMMY_HASH = hash_secret("catalog_timing_dummy", _DUMMY_SALT)


# ---------------------------------------------------------------------------
# Credential factories
# ---------------------------------------------------------------------------


def new_credential(
    username: str,
    email: str,
    password: str,
    permission_level: PermissionLevel = PermissionLevel.REGULAR_USER,
) -> UserCredential:
    """Build a credential for a new user with a freshly salted digest."""
    salt = generate_salt()
    return UserCredential(
        username=username,
        email=email,
        password_hash=hash_secret(password, salt),
        salt=salt,
        permission_level=permission_level,
    )


def apply_update(
    credential: UserCredential,
    username: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
) -> UserCredential:
    """Return a copy of credential with the supplied fields changed.

    The salt rotates only when a new password is supplied. A username or
    email change keeps the previous salt and digest untouched.
    """
    changes: dict = {}
    if username is not None:
        changes["username"] = username
    if email is not None:
        changes["email"] = email
    if password is not None:
        salt = generate_salt()
        changes["salt"] = salt
        changes["password_hash"] = hash_secret(password, salt)
    return replace(credential, **changes)


# ---------------------------------------------------------------------------
# Login check
# ---------------------------------------------------------------------------


def authenticate(store: UserStore, login: str, password: str) -> UserCredential | None:
    """Check a username-or-email plus password against the store.

    Returns the stored credential on success, None on any failure. The
    caller turns None into one generic "bad credentials" response for both
    unknown logins and wrong passwords.
    """
    credential = store.get_by_login(login)
    if credential is None:
        # Equalize timing -- do NOT return before computing a digest.
        verify_secret(password, _DUMMY_SALT, _DUMMY_HASH)
        logger.info("Login failed: unknown login")
        return None
    if not verify_secret(password, credential.salt, credential.password_hash):
        logger.info("Login failed: wrong password for user_id=%s", credential.id)
        return None
    return credential
