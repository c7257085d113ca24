"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Expiry is driven by an injected clock; nothing sleeps.

Covers:
  - issue/verify: claim carries subject id, permission level, 5 minute window
  - expiry boundary: valid at exactly exp, expired one second later
  - invalid_signature: other key, tampered payload
  - malformed: garbage, extra claims, wrong types, unknown permission
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import PermissionLevel
from auth.tokens import TOKEN_TTL, TokenCodec
from core.errors import AuthError

SECRET = "unit-test-secret-key-0123456789abcdef"
OTHER_SECRET = "another-secret-key-0123456789abcdef00"
T0 = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _b64(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


def _signed(payload: dict, key: str = SECRET) -> str:
    return jwt.encode(payload, key, algorithm="HS256")


def _payload(**overrides) -> dict:
    iat = int(T0.timestamp())
    payload = {"sub": "7", "permissions": "regularUser", "iat": iat, "exp": iat + 300}
    payload.update(overrides)
    return payload


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture
def codec(clock: FakeClock) -> TokenCodec:
    return TokenCodec(SECRET, clock=clock)


class TestIssueAndVerify:
    def test_round_trip_claim(self, codec: TokenCodec) -> None:
        claim = codec.verify(codec.issue(42, PermissionLevel.ADMIN))
        assert claim.subject_id == 42
        assert claim.permission_level == PermissionLevel.ADMIN
        assert claim.issued_at == T0
        assert claim.expires_at == T0 + TOKEN_TTL

    def test_payload_has_exactly_four_claims(self, codec: TokenCodec) -> None:
        payload = jwt.get_unverified_claims(codec.issue(3, PermissionLevel.REGULAR_USER))
        assert payload == {
            "sub": "3",
            "permissions": "regularUser",
            "iat": int(T0.timestamp()),
            "exp": int(T0.timestamp()) + 300,
        }

    def test_ttl_is_five_minutes(self) -> None:
        assert TOKEN_TTL == timedelta(minutes=5)


class TestExpiry:
    def test_valid_at_exact_expiry(self, codec: TokenCodec, clock: FakeClock) -> None:
        token = codec.issue(1, PermissionLevel.REGULAR_USER)
        clock.now = T0 + TOKEN_TTL
        assert codec.verify(token).subject_id == 1

    def test_expired_one_second_after(self, codec: TokenCodec, clock: FakeClock) -> None:
        token = codec.issue(1, PermissionLevel.REGULAR_USER)
        clock.now = T0 + TOKEN_TTL + timedelta(seconds=1)
        with pytest.raises(AuthError) as exc_info:
            codec.verify(token)
        assert exc_info.value.code == AuthError.EXPIRED
        assert exc_info.value.status_code == 401


class TestSignature:
    def test_token_from_other_key_rejected(self, codec: TokenCodec) -> None:
        foreign = TokenCodec(OTHER_SECRET, clock=lambda: T0).issue(1, PermissionLevel.ADMIN)
        with pytest.raises(AuthError) as exc_info:
            codec.verify(foreign)
        assert exc_info.value.code == AuthError.INVALID_SIGNATURE

    def test_tampered_payload_rejected(self, codec: TokenCodec) -> None:
        header, _payload_part, signature = codec.issue(1, PermissionLevel.REGULAR_USER).split(".")
        forged = ".".join([header, _b64(_payload(sub="1", permissions="admin")), signature])
        with pytest.raises(AuthError) as exc_info:
            codec.verify(forged)
        assert exc_info.value.code == AuthError.INVALID_SIGNATURE

    def test_expired_and_forged_reports_signature(self, codec: TokenCodec, clock: FakeClock) -> None:
        """Signature is checked before expiry."""
        foreign = TokenCodec(OTHER_SECRET, clock=lambda: T0).issue(1, PermissionLevel.ADMIN)
        clock.now = T0 + timedelta(hours=1)
        with pytest.raises(AuthError) as exc_info:
            codec.verify(foreign)
        assert exc_info.value.code == AuthError.INVALID_SIGNATURE


class TestMalformed:
    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "not.a.jwt.at.all"])
    def test_unparseable(self, codec: TokenCodec, token: str) -> None:
        with pytest.raises(AuthError) as exc_info:
            codec.verify(token)
        assert exc_info.value.code == AuthError.MALFORMED

    def test_extra_claim_rejected(self, codec: TokenCodec) -> None:
        with pytest.raises(AuthError) as exc_info:
            codec.verify(_signed(_payload(role="root")))
        assert exc_info.value.code == AuthError.MALFORMED

    def test_missing_claim_rejected(self, codec: TokenCodec) -> None:
        payload = _payload()
        del payload["permissions"]
        with pytest.raises(AuthError) as exc_info:
            codec.verify(_signed(payload))
        assert exc_info.value.code == AuthError.MALFORMED

    @pytest.mark.parametrize("sub", ["alice", "", "-1", "1.0", "²", "٣"])
    def test_non_numeric_subject_rejected(self, codec: TokenCodec, sub: str) -> None:
        with pytest.raises(AuthError) as exc_info:
            codec.verify(_signed(_payload(sub=sub)))
        assert exc_info.value.code == AuthError.MALFORMED

    def test_unknown_permission_rejected(self, codec: TokenCodec) -> None:
        with pytest.raises(AuthError) as exc_info:
            codec.verify(_signed(_payload(permissions="superuser")))
        assert exc_info.value.code == AuthError.MALFORMED

    def test_wrong_lifetime_rejected(self, codec: TokenCodec) -> None:
        iat = int(T0.timestamp())
        with pytest.raises(AuthError) as exc_info:
            codec.verify(_signed(_payload(exp=iat + 3600)))
        assert exc_info.value.code == AuthError.MALFORMED

    def test_correctly_shaped_foreign_payload_is_accepted(self, codec: TokenCodec) -> None:
        """A hand-signed token with the right shape and key verifies like an issued one."""
        claim = codec.verify(_signed(_payload()))
        assert claim.subject_id == 7
        assert claim.permission_level == PermissionLevel.REGULAR_USER
