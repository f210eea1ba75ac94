"""
SessionManager: sign-up, sign-in, refresh rotation and sign-out.

Session states per client:
    anonymous     --sign_up/sign_in-->        authenticated (access + refresh issued)
    authenticated --refresh(live token)-->    authenticated (new pair, old refresh dead)
    authenticated --refresh(dead token)-->    anonymous (InvalidRefreshToken, clear tokens)
    authenticated --sign_out-->               anonymous (refresh row removed)

The codec only proves a refresh token was issued by us and has not expired;
the store row is the authority on whether it is still live.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.base_model import as_utc
from models.credential_store import CredentialStore, ProfileUpdate
from models.user import User
from services.errors import InvalidCredentials, InvalidRefreshToken, NotFound
from utils.security import generate_reset_token
from utils.tokens import TokenCodec, TokenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserView:
    """Outward representation of a user. Never carries the password digest."""
    id: str
    email: str
    display_name: str
    is_verified: bool
    created_at: Optional[datetime]

    @classmethod
    def from_user(cls, user: User) -> "UserView":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            is_verified=bool(user.is_verified),
            created_at=as_utc(user.created_at),
        )


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = 0


@dataclass(frozen=True)
class AuthResult:
    user: UserView
    tokens: TokenPair


class SessionManager:
    def __init__(self, store: CredentialStore, codec: TokenCodec):
        self.store = store
        self.codec = codec
        # unknown emails are verified against this so both failures cost one argon2 check
        self._dummy_hash = store.hasher.hash(generate_reset_token())

    def _issue_pair(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self.codec.issue_access(user.id, user.email),
            refresh_token=self.codec.issue_refresh(user.id),
            expires_in=int(self.codec.access_ttl.total_seconds()),
        )

    def _start_session(self, user: User) -> AuthResult:
        pair = self._issue_pair(user)
        self.store.store_refresh_token(user.id, pair.refresh_token)
        return AuthResult(user=UserView.from_user(user), tokens=pair)

    def sign_up(self, email: str, password: str, display_name: str) -> AuthResult:
        user = self.store.create_user(email, password, display_name)
        return self._start_session(user)

    def sign_in(self, email: str, password: str) -> AuthResult:
        user = self.store.find_by_email(email)
        digest = user.password_hash if user is not None else self._dummy_hash
        # same error for unknown email and wrong password
        if not self.store.hasher.verify(password, digest) or user is None:
            logger.info("Sign-in rejected")
            raise InvalidCredentials()
        return self._start_session(user)

    def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        if not refresh_token:
            raise InvalidRefreshToken("Refresh token required")
        try:
            claims = self.codec.verify_refresh(refresh_token)
        except TokenError as exc:
            logger.info("Refresh denied: %s", exc.__class__.__name__)
            raise InvalidRefreshToken() from exc

        user = self.store.find_by_refresh_token(claims.user_id, refresh_token)
        if user is None:
            logger.info("Refresh denied for user %s: token not live", claims.user_id)
            raise InvalidRefreshToken()

        pair = self._issue_pair(user)
        # raises InvalidRefreshToken if a concurrent request rotated it first
        self.store.rotate_refresh_token(user.id, refresh_token, pair.refresh_token)
        return pair

    def sign_out(self, refresh_token: Optional[str]) -> None:
        """Idempotent: an unknown, undecodable or missing token is not an error."""
        if not refresh_token:
            return
        try:
            claims = self.codec.verify_refresh(refresh_token)
        except TokenError:
            # expired tokens are still worth removing; read the owner unverified
            try:
                user_id = self.codec.decode_unverified(refresh_token).get("sub")
            except TokenError:
                return
        else:
            user_id = claims.user_id
        if user_id:
            self.store.remove_refresh_token(user_id, refresh_token)

    def current_user(self, user_id: str) -> UserView:
        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFound()
        return UserView.from_user(user)

    def revoke_all(self, user_id: str) -> int:
        revoked = self.store.clear_all_refresh_tokens(user_id)
        logger.info("Revoked %d refresh token(s) for user %s", revoked, user_id)
        return revoked

    def update_profile(self, user_id: str, update: ProfileUpdate) -> UserView:
        return UserView.from_user(self.store.update_profile(user_id, update))
