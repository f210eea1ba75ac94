"""
Token codec: signed, expiring access and refresh tokens (PyJWT, HS256).

Access and refresh tokens are signed with independent secrets and carry
independent lifetimes. Verification is stateless; whether a refresh token is
still live is decided by the credential store, not here.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from utils.security import generate_jti

ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    """Base class for codec verification failures."""


class InvalidSignature(TokenError):
    pass


class TokenExpired(TokenError):
    pass


class MalformedToken(TokenError):
    pass


@dataclass(frozen=True)
class AccessTokenClaims:
    user_id: str
    email: str
    jti: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class RefreshTokenClaims:
    user_id: str
    jti: str
    issued_at: datetime
    expires_at: datetime


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _from_ts(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


class TokenCodec:
    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
        issuer: str = "token-auth-api",
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("JWT secrets are required")
        if access_secret == refresh_secret:
            raise ValueError("access and refresh secrets must differ")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.algorithm = algorithm
        self.issuer = issuer

    def _encode(self, payload: Dict[str, Any], secret: str, ttl: timedelta, token_type: str) -> str:
        now = _now()
        payload.update(
            {
                "iss": self.issuer,
                "iat": int(now.timestamp()),
                "exp": int((now + ttl).timestamp()),
                "jti": generate_jti(),
                "type": token_type,
            }
        )
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def _decode(self, token: str, secret: str, token_type: str) -> Dict[str, Any]:
        if not isinstance(token, str) or not token:
            raise MalformedToken("Token is empty")
        try:
            decoded = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["sub", "iat", "exp", "jti"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired("Token expired") from exc
        except jwt.InvalidSignatureError as exc:
            raise InvalidSignature("Token signature is invalid") from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedToken(f"Invalid token: {exc}") from exc

        if decoded.get("type") != token_type:
            raise MalformedToken("Wrong token type")
        return decoded

    def issue_access(self, user_id: str, email: str) -> str:
        return self._encode({"sub": str(user_id), "email": email}, self._access_secret, self.access_ttl, ACCESS)

    def issue_refresh(self, user_id: str) -> str:
        return self._encode({"sub": str(user_id)}, self._refresh_secret, self.refresh_ttl, REFRESH)

    def verify_access(self, token: str) -> AccessTokenClaims:
        decoded = self._decode(token, self._access_secret, ACCESS)
        if "email" not in decoded:
            raise MalformedToken("Token is missing the email claim")
        return AccessTokenClaims(
            user_id=decoded["sub"],
            email=decoded["email"],
            jti=decoded["jti"],
            issued_at=_from_ts(decoded["iat"]),
            expires_at=_from_ts(decoded["exp"]),
        )

    def verify_refresh(self, token: str) -> RefreshTokenClaims:
        decoded = self._decode(token, self._refresh_secret, REFRESH)
        return RefreshTokenClaims(
            user_id=decoded["sub"],
            jti=decoded["jti"],
            issued_at=_from_ts(decoded["iat"]),
            expires_at=_from_ts(decoded["exp"]),
        )

    def decode_unverified(self, token: str) -> Dict[str, Any]:
        """
        Read claims without checking signature or expiry.
        Never grants access: sign-out uses ``sub`` only to locate a stored row,
        which must still match the exact token string.
        """
        try:
            return jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as exc:
            raise MalformedToken(f"Invalid token: {exc}") from exc
