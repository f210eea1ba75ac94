"""
CredentialStore: durable, transactional home for users, refresh tokens and
password reset tokens.

Every multi-statement mutation runs as one DBStorage transaction, so a
concurrent reader never observes a half applied change:
- create_user            uniqueness check + insert (unique index as backstop)
- rotate_refresh_token   delete old row + insert replacement
- issue_reset_token      invalidate prior rows + insert new row
- update_password        new hash + drop all sessions + invalidate resets

Lookups never raise for absence; they return None. Expired rows are filtered
at query time with ``expires_at > now``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError

from models.base_model import Base, utcnow
from models.db_storage import DBStorage
from models.password_reset_token import PasswordResetToken
from models.refresh_token import RefreshToken
from models.user import User
from services.errors import DuplicateEmail, InvalidOrExpiredToken, InvalidRefreshToken, NotFound
from utils.security import CredentialHasher

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower() if isinstance(email, str) else email


@dataclass(frozen=True)
class ProfileUpdate:
    """
    The profile fields a user may change. Anything else, password included,
    has its own dedicated operation.
    """
    display_name: Optional[str] = None

    def changes(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


class CredentialStore:
    def __init__(
        self,
        storage: DBStorage,
        hasher: CredentialHasher,
        refresh_ttl: timedelta = timedelta(days=7),
        reset_ttl: timedelta = timedelta(hours=1),
    ):
        self.storage = storage
        self.hasher = hasher
        self.refresh_ttl = refresh_ttl
        self.reset_ttl = reset_ttl

    # ---- schema -------------------------------------------------------

    def init_schema(self) -> None:
        """Create the three tables and their indexes; safe on every start."""
        self.storage.reload()
        logger.info("Credential schema ready: %s", ", ".join(sorted(Base.metadata.tables)))

    # ---- users --------------------------------------------------------

    def find_by_email(self, email: str) -> Optional[User]:
        with self.storage.transaction() as session:
            return (
                session.query(User)
                .filter(User.email == normalize_email(email), User.is_active.is_(True))
                .first()
            )

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self.storage.transaction() as session:
            return (
                session.query(User)
                .filter(User.id == str(user_id), User.is_active.is_(True))
                .first()
            )

    def create_user(self, email: str, password: str, display_name: str) -> User:
        """
        Insert a new, unverified user. The pre-check narrows the race window;
        the unique index on users.email is what actually decides a tie.
        """
        email = normalize_email(email)
        pw_hash = self.hasher.hash(password)
        try:
            with self.storage.transaction() as session:
                if session.query(User.id).filter(User.email == email, User.is_active.is_(True)).first():
                    raise DuplicateEmail()
                user = User(
                    email=email,
                    password_hash=pw_hash,
                    display_name=display_name,
                    is_active=True,
                    is_verified=False,
                )
                session.add(user)
        except IntegrityError as exc:
            logger.info("Sign-up lost a uniqueness race")
            raise DuplicateEmail() from exc
        logger.info("User created: %s", user.id)
        return user

    def update_profile(self, user_id: str, update: ProfileUpdate) -> User:
        changes = update.changes()
        if not changes:
            raise ValueError("No valid fields to update")
        with self.storage.transaction() as session:
            user = (
                session.query(User)
                .filter(User.id == str(user_id), User.is_active.is_(True))
                .with_for_update()
                .first()
            )
            if user is None:
                raise NotFound()
            for key, value in changes.items():
                setattr(user, key, value)
            user.updated_at = utcnow()
        return user

    def update_password(self, user_id: str, new_password: str, reset_token: Optional[str] = None) -> None:
        """
        Atomically set the new hash, end every session of the user and
        invalidate every pending reset request.

        With ``reset_token`` the matching reset row is claimed first, inside
        the same transaction; if another request already used it the whole
        change is rolled back with InvalidOrExpiredToken.
        """
        pw_hash = self.hasher.hash(new_password)
        with self.storage.transaction() as session:
            if reset_token is not None:
                claimed = (
                    session.query(PasswordResetToken)
                    .filter(
                        PasswordResetToken.user_id == str(user_id),
                        PasswordResetToken.token_digest == self.hasher.hash_deterministic(reset_token),
                        PasswordResetToken.is_valid.is_(True),
                        PasswordResetToken.expires_at > utcnow(),
                    )
                    .update({PasswordResetToken.is_valid: False}, synchronize_session=False)
                )
                if claimed != 1:
                    raise InvalidOrExpiredToken()
            updated = (
                session.query(User)
                .filter(User.id == str(user_id), User.is_active.is_(True))
                .update({User.password_hash: pw_hash, User.updated_at: utcnow()}, synchronize_session=False)
            )
            if updated == 0:
                raise NotFound("User not found or not active")
            revoked = (
                session.query(RefreshToken)
                .filter(RefreshToken.user_id == str(user_id))
                .delete(synchronize_session=False)
            )
            (
                session.query(PasswordResetToken)
                .filter(PasswordResetToken.user_id == str(user_id))
                .update({PasswordResetToken.is_valid: False}, synchronize_session=False)
            )
        logger.info("Password changed for user %s; %d session(s) revoked", user_id, revoked)

    # ---- refresh tokens -----------------------------------------------

    def _new_refresh_row(self, user_id: str, token: str) -> RefreshToken:
        return RefreshToken(user_id=str(user_id), token=token, expires_at=utcnow() + self.refresh_ttl)

    def store_refresh_token(self, user_id: str, token: str) -> None:
        with self.storage.transaction() as session:
            session.add(self._new_refresh_row(user_id, token))

    def find_by_refresh_token(self, user_id: str, token: str) -> Optional[User]:
        """Owner of a live refresh token, or None if revoked, rotated or expired."""
        with self.storage.transaction() as session:
            return (
                session.query(User)
                .join(RefreshToken, RefreshToken.user_id == User.id)
                .filter(
                    RefreshToken.user_id == str(user_id),
                    RefreshToken.token == token,
                    RefreshToken.expires_at > utcnow(),
                    User.is_active.is_(True),
                )
                .first()
            )

    def rotate_refresh_token(self, user_id: str, old_token: str, new_token: str) -> None:
        """
        Replace ``old_token`` with ``new_token`` in one transaction.
        If the old row is already gone (rotated by a concurrent request,
        revoked, or expired) nothing is written and InvalidRefreshToken is raised.
        """
        with self.storage.transaction() as session:
            deleted = (
                session.query(RefreshToken)
                .filter(
                    RefreshToken.user_id == str(user_id),
                    RefreshToken.token == old_token,
                    RefreshToken.expires_at > utcnow(),
                )
                .delete(synchronize_session=False)
            )
            if deleted != 1:
                raise InvalidRefreshToken()
            session.add(self._new_refresh_row(user_id, new_token))

    def remove_refresh_token(self, user_id: str, token: str) -> bool:
        with self.storage.transaction() as session:
            deleted = (
                session.query(RefreshToken)
                .filter(RefreshToken.user_id == str(user_id), RefreshToken.token == token)
                .delete(synchronize_session=False)
            )
        return deleted > 0

    def clear_all_refresh_tokens(self, user_id: str) -> int:
        with self.storage.transaction() as session:
            return (
                session.query(RefreshToken)
                .filter(RefreshToken.user_id == str(user_id))
                .delete(synchronize_session=False)
            )

    def count_refresh_tokens(self, user_id: str) -> int:
        with self.storage.transaction() as session:
            return (
                session.query(RefreshToken)
                .filter(RefreshToken.user_id == str(user_id), RefreshToken.expires_at > utcnow())
                .count()
            )

    # ---- password reset tokens ----------------------------------------

    def issue_reset_token(self, user_id: str, token_digest: str) -> None:
        """Invalidate prior reset rows and insert the new one, atomically."""
        with self.storage.transaction() as session:
            (
                session.query(PasswordResetToken)
                .filter(PasswordResetToken.user_id == str(user_id))
                .update({PasswordResetToken.is_valid: False}, synchronize_session=False)
            )
            session.add(
                PasswordResetToken(
                    user_id=str(user_id),
                    token_digest=token_digest,
                    is_valid=True,
                    expires_at=utcnow() + self.reset_ttl,
                )
            )

    def consume_reset_token(self, user_id: str, raw_token: str) -> Optional[User]:
        """
        Match a raw reset token against the valid, unexpired row of an active
        user. Lookup only: the row is invalidated by update_password.
        """
        digest = self.hasher.hash_deterministic(raw_token)
        with self.storage.transaction() as session:
            return (
                session.query(User)
                .join(PasswordResetToken, PasswordResetToken.user_id == User.id)
                .filter(
                    PasswordResetToken.user_id == str(user_id),
                    PasswordResetToken.token_digest == digest,
                    PasswordResetToken.is_valid.is_(True),
                    PasswordResetToken.expires_at > utcnow(),
                    User.is_active.is_(True),
                )
                .first()
            )

    # ---- housekeeping -------------------------------------------------

    def purge_expired(self) -> dict:
        """
        Delete expired refresh rows and dead reset rows. Not required for
        correctness; queries already ignore them.
        """
        now = utcnow()
        with self.storage.transaction() as session:
            refresh = (
                session.query(RefreshToken)
                .filter(RefreshToken.expires_at <= now)
                .delete(synchronize_session=False)
            )
            resets = (
                session.query(PasswordResetToken)
                .filter((PasswordResetToken.expires_at <= now) | (PasswordResetToken.is_valid.is_(False)))
                .delete(synchronize_session=False)
            )
        logger.info("Purged %d refresh token(s) and %d reset token(s)", refresh, resets)
        return {"refresh_tokens": refresh, "password_resets": resets}

    def delete_user(self, user_id: str) -> bool:
        """Hard delete; refresh and reset rows go with it (ON DELETE CASCADE)."""
        with self.storage.transaction() as session:
            deleted = session.query(User).filter(User.id == str(user_id)).delete(synchronize_session=False)
        return deleted > 0
