from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from functools import wraps
from typing import Optional

from flask import current_app, g, request

from services.errors import Forbidden, Unauthenticated
from utils.tokens import TokenCodec, TokenError

ACCESS_COOKIE = "access_token"


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str
    token_id: str
    expires_at: datetime


class AccessGuard:
    """
    Stateless request gate. Only access tokens are accepted and the store is
    never consulted, so an access token outlives the refresh token it came
    with until its own (short) expiry.
    """

    def __init__(self, codec: TokenCodec):
        self.codec = codec

    def authenticate(self, token: Optional[str]) -> Identity:
        if not token or not token.strip():
            raise Unauthenticated()
        try:
            claims = self.codec.verify_access(token.strip())
        except TokenError as exc:
            raise Forbidden() from exc
        return Identity(
            user_id=claims.user_id,
            email=claims.email,
            token_id=claims.jti,
            expires_at=claims.expires_at,
        )

    def optional_authenticate(self, token: Optional[str]) -> Optional[Identity]:
        try:
            return self.authenticate(token)
        except (Unauthenticated, Forbidden):
            return None


def token_from_request(req=None) -> Optional[str]:
    """Bearer Authorization header first, then the access token cookie."""
    req = req or request
    auth = req.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        token = auth.split(" ", 1)[1].strip()
        if token:
            return token
    return req.cookies.get(ACCESS_COOKIE) or None


def _guard() -> AccessGuard:
    return current_app.extensions["auth"].guard


def jwt_required():
    """401 when no token is presented, 403 when it is invalid or expired."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            g.identity = _guard().authenticate(token_from_request())
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def optional_jwt():
    """Attach g.identity when a valid token is present, otherwise None."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            g.identity = _guard().optional_authenticate(token_from_request())
            return fn(*args, **kwargs)

        return wrapper

    return decorator
