"""
Password reset email delivery.

Senders implement ``send(to_address, reset_token, user_id)``. The SMTP sender
is used in deployments; the outbox sender keeps messages in memory for
development and tests.
"""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import List, Optional, Protocol
from urllib.parse import urlencode

from services.errors import EmailDeliveryFailed

logger = logging.getLogger(__name__)

RESET_SUBJECT = "Reset your password"


class EmailSender(Protocol):
    def send(self, to_address: str, reset_token: str, user_id: str) -> None:
        ...


def build_reset_link(base_url: str, reset_token: str, user_id: str) -> str:
    sep = "&" if "?" in base_url else "?"
    return f"{base_url}{sep}{urlencode({'token': reset_token, 'userId': user_id})}"


def build_reset_message(
    from_address: str, to_address: str, link: str, expires_in_minutes: int
) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = from_address
    msg["To"] = to_address
    msg["Subject"] = RESET_SUBJECT
    msg.set_content(
        "We received a request to reset your password.\n"
        f"Use this link within {expires_in_minutes} minutes:\n{link}\n\n"
        "If you did not ask for a reset you can ignore this message."
    )
    msg.add_alternative(
        f"""
    <p>We received a request to reset your password.</p>
    <p><a href="{link}" style="display:inline-block;padding:10px 16px;background:#4f46e5;color:#fff;text-decoration:none;border-radius:6px">Reset password</a></p>
    <p>If the button does not work, copy this link into your browser:</p>
    <p><a href="{link}">{link}</a></p>
    <p>The link expires in {expires_in_minutes} minutes. If you did not ask for a reset you can ignore this message.</p>
    """,
        subtype="html",
    )
    return msg


class SMTPEmailSender:
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_address: Optional[str] = None,
        use_tls: bool = True,
        reset_url: str = "http://localhost:8000/auth/reset-password",
        expires_in_minutes: int = 60,
        timeout: float = 10.0,
    ):
        if not host:
            raise ValueError("SMTP host is required")
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address or username or "no-reply@localhost"
        self.use_tls = use_tls
        self.reset_url = reset_url
        self.expires_in_minutes = expires_in_minutes
        self.timeout = timeout

    def send(self, to_address: str, reset_token: str, user_id: str) -> None:
        link = build_reset_link(self.reset_url, reset_token, user_id)
        msg = build_reset_message(self.from_address, to_address, link, self.expires_in_minutes)
        try:
            # STARTTLS on 587 by default, implicit TLS otherwise
            if self.use_tls:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                    server.starttls()
                    if self.username:
                        server.login(self.username, self.password or "")
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as server:
                    if self.username:
                        server.login(self.username, self.password or "")
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Password reset email to user %s failed: %s", user_id, exc.__class__.__name__)
            raise EmailDeliveryFailed() from exc
        logger.info("Password reset email sent to user %s", user_id)


@dataclass
class OutboxMessage:
    to_address: str
    reset_token: str
    user_id: str


class OutboxEmailSender:
    """Records reset emails instead of sending them."""

    def __init__(self):
        self.messages: List[OutboxMessage] = []

    def send(self, to_address: str, reset_token: str, user_id: str) -> None:
        self.messages.append(OutboxMessage(to_address, reset_token, user_id))
        logger.info("Password reset email queued in outbox for user %s", user_id)

    @property
    def last(self) -> Optional[OutboxMessage]:
        return self.messages[-1] if self.messages else None
