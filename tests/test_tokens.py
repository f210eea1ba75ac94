"""Token codec: round trips, expiry, tampering and key separation."""
from datetime import timedelta

import jwt
import pytest

from utils.tokens import (
    AccessTokenClaims,
    InvalidSignature,
    MalformedToken,
    TokenCodec,
    TokenError,
    TokenExpired,
)

from .conftest import ACCESS_SECRET, REFRESH_SECRET


def test_access_round_trip(codec):
    token = codec.issue_access("user-1", "a@x.com")
    claims = codec.verify_access(token)

    assert isinstance(claims, AccessTokenClaims)
    assert claims.user_id == "user-1"
    assert claims.email == "a@x.com"
    assert claims.expires_at > claims.issued_at


def test_refresh_round_trip(codec):
    claims = codec.verify_refresh(codec.issue_refresh("user-1"))
    assert claims.user_id == "user-1"
    assert (claims.expires_at - claims.issued_at) == timedelta(days=7)


def test_tokens_issued_together_differ(codec):
    assert codec.issue_refresh("user-1") != codec.issue_refresh("user-1")
    assert codec.issue_access("user-1", "a@x.com") != codec.issue_access("user-1", "a@x.com")


def test_expired_access_token():
    codec = TokenCodec(ACCESS_SECRET, REFRESH_SECRET, access_ttl=timedelta(seconds=-10))
    token = codec.issue_access("user-1", "a@x.com")
    with pytest.raises(TokenExpired):
        codec.verify_access(token)


def test_expired_refresh_token():
    codec = TokenCodec(ACCESS_SECRET, REFRESH_SECRET, refresh_ttl=timedelta(seconds=-10))
    with pytest.raises(TokenExpired):
        codec.verify_refresh(codec.issue_refresh("user-1"))


def test_tampered_payload_fails_signature(codec):
    header, _, signature = codec.issue_access("user-1", "a@x.com").split(".")
    _, other_payload, _ = codec.issue_access("user-2", "b@x.com").split(".")

    with pytest.raises(InvalidSignature):
        codec.verify_access(f"{header}.{other_payload}.{signature}")


def test_token_signed_with_foreign_key(codec):
    forged = jwt.encode(
        {"sub": "user-1", "email": "a@x.com", "iat": 0, "exp": 9999999999, "jti": "x",
         "type": "access", "iss": codec.issuer},
        "attacker-secret-0123456789abcdef",
        algorithm="HS256",
    )
    with pytest.raises(InvalidSignature):
        codec.verify_access(forged)


def test_access_and_refresh_keys_are_independent(codec):
    with pytest.raises(InvalidSignature):
        codec.verify_access(codec.issue_refresh("user-1"))
    with pytest.raises(InvalidSignature):
        codec.verify_refresh(codec.issue_access("user-1", "a@x.com"))


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
def test_malformed_tokens(codec, token):
    with pytest.raises(MalformedToken):
        codec.verify_access(token)


def test_all_failures_share_a_base_class(codec):
    with pytest.raises(TokenError):
        codec.verify_refresh("garbage")


def test_decode_unverified_reads_expired_token():
    codec = TokenCodec(ACCESS_SECRET, REFRESH_SECRET, refresh_ttl=timedelta(seconds=-10))
    payload = codec.decode_unverified(codec.issue_refresh("user-9"))
    assert payload["sub"] == "user-9"
    assert payload["type"] == "refresh"


def test_codec_requires_two_distinct_secrets():
    with pytest.raises(ValueError):
        TokenCodec("", REFRESH_SECRET)
    with pytest.raises(ValueError):
        TokenCodec(ACCESS_SECRET, ACCESS_SECRET)
