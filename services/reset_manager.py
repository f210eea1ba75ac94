"""
ResetManager: forgot-password / reset-password.

Reset tokens are random one-time secrets, independent of the JWT codec.
Only their digest is stored; the raw value goes out by email and is never
persisted or logged.
"""
from __future__ import annotations

import logging

from models.credential_store import CredentialStore
from services.email import EmailSender
from services.errors import InvalidOrExpiredToken
from utils.security import CredentialHasher, generate_reset_token

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If the email exists, a reset link will be sent"
RESET_DONE_MESSAGE = "Password reset successfully"


class ResetManager:
    def __init__(self, store: CredentialStore, hasher: CredentialHasher, email_sender: EmailSender):
        self.store = store
        self.hasher = hasher
        self.email_sender = email_sender

    def forgot_password(self, email: str) -> dict:
        """Same response whether or not the address belongs to a user."""
        user = self.store.find_by_email(email)
        if user is not None:
            raw_token = generate_reset_token()
            self.store.issue_reset_token(user.id, self.hasher.hash_deterministic(raw_token))
            logger.info("Password reset issued for user %s", user.id)
            self.email_sender.send(user.email, raw_token, user.id)
        return {"message": FORGOT_PASSWORD_MESSAGE}

    def verify_reset_token(self, user_id: str, raw_token: str) -> bool:
        """Check a reset link (e.g. before showing the form) without using it up."""
        if not user_id or not raw_token:
            return False
        return self.store.consume_reset_token(user_id, raw_token) is not None

    def reset_password(self, user_id: str, raw_token: str, new_password: str) -> dict:
        if not self.verify_reset_token(user_id, raw_token):
            raise InvalidOrExpiredToken()
        # also drops every session and every reset row of the user
        self.store.update_password(user_id, new_password, reset_token=raw_token)
        return {"message": RESET_DONE_MESSAGE}
