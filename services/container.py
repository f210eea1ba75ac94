"""
Explicit wiring of the credential components.

Nothing here is a module-level singleton: ``build_auth_components`` returns a
fresh set of collaborators from a settings mapping (a Flask config works),
and the caller decides where to keep it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from models.credential_store import CredentialStore
from models.db_storage import DBStorage
from services.email import EmailSender, OutboxEmailSender, SMTPEmailSender
from services.reset_manager import ResetManager
from services.session_manager import SessionManager
from utils.decorators import AccessGuard
from utils.security import CredentialHasher
from utils.tokens import TokenCodec


@dataclass
class AuthComponents:
    storage: DBStorage
    hasher: CredentialHasher
    codec: TokenCodec
    store: CredentialStore
    sessions: SessionManager
    resets: ResetManager
    guard: AccessGuard
    email_sender: EmailSender

    def close(self):
        self.storage.close()


def build_email_sender(settings: Mapping) -> EmailSender:
    if not settings.get("SMTP_HOST"):
        return OutboxEmailSender()
    return SMTPEmailSender(
        host=settings["SMTP_HOST"],
        port=settings.get("SMTP_PORT", 587),
        username=settings.get("SMTP_USER"),
        password=settings.get("SMTP_PASSWORD"),
        from_address=settings.get("SMTP_FROM"),
        use_tls=settings.get("SMTP_USE_TLS", True),
        reset_url=settings.get("PASSWORD_RESET_URL", "http://localhost:8000/auth/reset-password"),
        expires_in_minutes=int(settings["RESET_TOKEN_EXPIRES"].total_seconds() // 60),
        timeout=settings.get("SMTP_TIMEOUT", 10.0),
    )


def build_auth_components(
    settings: Mapping, email_sender: Optional[EmailSender] = None, init_schema: bool = True
) -> AuthComponents:
    storage = DBStorage(
        settings["DATABASE_URL"],
        echo=settings.get("DB_ECHO", False),
        pool_timeout=settings.get("DB_POOL_TIMEOUT", 30),
    )
    hasher = CredentialHasher()
    codec = TokenCodec(
        access_secret=settings["JWT_ACCESS_SECRET"],
        refresh_secret=settings["JWT_REFRESH_SECRET"],
        access_ttl=settings["ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=settings["REFRESH_TOKEN_EXPIRES"],
        algorithm=settings.get("JWT_ALGORITHM", "HS256"),
        issuer=settings.get("JWT_ISSUER", "token-auth-api"),
    )
    store = CredentialStore(
        storage,
        hasher,
        refresh_ttl=codec.refresh_ttl,
        reset_ttl=settings["RESET_TOKEN_EXPIRES"],
    )
    if init_schema:
        store.init_schema()
    sender = email_sender or build_email_sender(settings)
    return AuthComponents(
        storage=storage,
        hasher=hasher,
        codec=codec,
        store=store,
        sessions=SessionManager(store, codec),
        resets=ResetManager(store, hasher, sender),
        guard=AccessGuard(codec),
        email_sender=sender,
    )
