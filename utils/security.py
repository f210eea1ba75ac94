"""
security helpers:
- Argon2 password hashing via argon2-cffi
- Reset token generation and deterministic digests for lookup
- JTI generation for token identifiers
"""
from __future__ import annotations

import hashlib
import secrets
import uuid

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

RESET_TOKEN_BYTES = 32


class CredentialHasher:
    """
    One-way password hashing (argon2) plus the non-salted digest used to
    look up reset tokens.
    """

    def __init__(self, password_hasher: PasswordHasher | None = None):
        self._ph = password_hasher or PasswordHasher()

    def hash(self, plaintext: str) -> str:
        """Hash a plaintext password using Argon2
        """
        return self._ph.hash(plaintext)

    def verify(self, plaintext: str, digest: str) -> bool:
        """ Verify a plaintext password using argon2
        """
        try:
            return self._ph.verify(digest, plaintext)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    def hash_deterministic(self, token: str) -> str:
        return hash_reset_token(token)


def generate_reset_token() -> str:
    """High entropy raw reset token, sent to the user and never stored."""
    return secrets.token_hex(RESET_TOKEN_BYTES)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())
