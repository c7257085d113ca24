"""
auth/tokens.py -- Signed, short-lived access tokens.

Security design decisions:
  JWT: python-jose with HS256. The payload carries exactly four claims:
       sub (user id as a string), permissions, iat and exp. Verification
       rejects a token whose payload has any other shape, even when the
       signature is correct.

  TTL: fixed at five minutes. There is no refresh and no revocation list --
       a token simply stops verifying once exp has passed.

  Failure kinds: verify() raises AuthError with a distinct code for each
       terminal state -- malformed (cannot be parsed or wrong shape),
       invalid_signature (signed with another key or tampered), expired
       (now > exp). The route layer turns all three into a 401.

  SECRET_KEY: passed in by the caller. api/main.py builds one TokenCodec in
       the lifespan from core.config.get_settings() and keeps it on
       app.state; this module never reads configuration itself.

  Clock: injectable so expiry is testable without sleeping. Expiry is
       checked here against the injected clock rather than inside
       jwt.decode().

Layer rule: no imports from api/, catalog/, or query/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import PermissionLevel, TokenClaim
from core.errors import AuthError

logger = logging.getLogger("catalog.auth")

_ALGORITHM = "HS256"

TOKEN_TTL = timedelta(minutes=5)

_CLAIM_KEYS = frozenset({"sub", "permissions", "iat", "exp"})

# ASCII digits only; str.isdigit() also accepts characters int() rejects.
_SUBJECT_RE = re.compile(r"[0-9]+")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Issues and verifies access tokens for one signing key.

    Usage:
        codec = TokenCodec(settings.secret_key)
        token = codec.issue(user.id, user.permission_level)
        claim = codec.verify(token)      # raises AuthError on failure
    """

    def __init__(self, secret_key: str, clock: Callable[[], datetime] = _utc_now) -> None:
        self._secret_key = secret_key
        self._clock = clock

    def _now(self) -> datetime:
        return self._clock().astimezone(timezone.utc).replace(microsecond=0)

    def issue(self, subject_id: int, permission_level: PermissionLevel) -> str:
        """Encode a signed token valid for TOKEN_TTL from now."""
        issued_at = self._now()
        expires_at = issued_at + TOKEN_TTL
        payload = {
            "sub": str(subject_id),
            "permissions": PermissionLevel(permission_level).value,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaim:
        """Return the embedded claim, or raise AuthError.

        Checks run in a fixed order: parse, signature, shape, expiry.
        """
        try:
            header = jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise AuthError(AuthError.MALFORMED, "Token could not be parsed.") from exc
        if header.get("alg") != _ALGORITHM:
            raise AuthError(AuthError.MALFORMED, "Token uses an unsupported algorithm.")

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False, "verify_iat": False, "verify_nbf": False},
            )
        except JWTError as exc:
            logger.warning("Token rejected: signature verification failed")
            raise AuthError(AuthError.INVALID_SIGNATURE, "Token signature is invalid.") from exc

        claim = _claim_from_payload(payload)
        if self._now() > claim.expires_at:
            raise AuthError(AuthError.EXPIRED, "Token has expired.")
        return claim


def _claim_from_payload(payload: dict) -> TokenClaim:
    """Map a signature-checked payload onto a TokenClaim, rejecting any other shape."""
    malformed = AuthError(AuthError.MALFORMED, "Token payload is malformed.")
    if set(payload) != _CLAIM_KEYS:
        raise malformed
    sub, iat, exp = payload["sub"], payload["iat"], payload["exp"]
    if not isinstance(sub, str) or _SUBJECT_RE.fullmatch(sub) is None:
        raise malformed
    if type(iat) is not int or type(exp) is not int:
        raise malformed
    try:
        permission_level = PermissionLevel(payload["permissions"])
    except ValueError:
        raise malformed from None
    issued_at = datetime.fromtimestamp(iat, tz=timezone.utc)
    expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    if expires_at - issued_at != TOKEN_TTL:
        raise malformed
    return TokenClaim(
        subject_id=int(sub),
        permission_level=permission_level,
        issued_at=issued_at,
        expires_at=expires_at,
    )
