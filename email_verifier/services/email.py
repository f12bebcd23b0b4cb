"""Delivery of verification codes by email."""

from __future__ import annotations

import logging
import math
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

import anyio

from email_verifier.core.config import Settings
from email_verifier.core.errors import ErrorKind, ServiceError

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send_verification_code(self, email: str, code: str) -> None:
        """Deliver `code` to `email`, raising `ServiceError(DELIVERY)` on failure."""


def describe_expiry(expiry_ms: int) -> str:
    """Human wording for the expiry window, rounded up to whole seconds or minutes."""
    if expiry_ms < 60_000:
        seconds = math.ceil(expiry_ms / 1000)
        return f"{seconds} second" + ("" if seconds == 1 else "s")
    minutes = math.ceil(expiry_ms / 60_000)
    return f"{minutes} minute" + ("" if minutes == 1 else "s")


def build_message(sender: str, email: str, code: str, expiry_ms: int) -> MIMEMultipart:
    message = MIMEMultipart()
    message["From"] = sender
    message["To"] = email
    message["Subject"] = "Your Verification Code"

    body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="color: #333; text-align: center;">Email Verification</h2>
        <p style="text-align: center;">Your verification code is:</p>
        <h3 style="text-align: center; font-size: 24px; letter-spacing: 5px;">{code}</h3>
        <p style="text-align: center;">This code will expire in {describe_expiry(expiry_ms)}.</p>
        <p style="color: #666; font-size: 12px; text-align: center;">
            If you didn't request this code, please ignore this email.
        </p>
    </div>
    """
    message.attach(MIMEText(body, "html"))
    return message


class SMTPNotifier:
    """Send codes over SMTP from a worker thread so the event loop stays free.

    Implicit TLS is used when `SMTP_SECURE` is set (port 465), otherwise the
    connection is upgraded with STARTTLS.
    """

    def __init__(self, config: Settings):
        self.config = config

    def _connect(self) -> smtplib.SMTP:
        cfg = self.config
        if cfg.SMTP_SECURE:
            return smtplib.SMTP_SSL(cfg.SMTP_HOST, cfg.SMTP_PORT, timeout=cfg.SMTP_TIMEOUT_SECONDS)
        server = smtplib.SMTP(cfg.SMTP_HOST, cfg.SMTP_PORT, timeout=cfg.SMTP_TIMEOUT_SECONDS)
        server.ehlo()
        server.starttls()
        server.ehlo()
        return server

    def _ensure_configured(self) -> None:
        cfg = self.config
        if not all([cfg.SMTP_HOST, cfg.SMTP_USER, cfg.SMTP_PASS, cfg.sender_address]):
            raise RuntimeError("SMTP settings are incomplete.")

    def _send(self, email: str, code: str) -> None:
        self._ensure_configured()
        message = build_message(
            self.config.sender_address,
            email,
            code,
            self.config.VERIFICATION_CODE_EXPIRY,
        )
        with self._connect() as server:
            server.login(self.config.SMTP_USER, self.config.SMTP_PASS)
            server.send_message(message)

    async def send_verification_code(self, email: str, code: str) -> None:
        try:
            await anyio.to_thread.run_sync(self._send, email, code)
        except Exception as exc:
            logger.error("Failed to send verification email to %s: %s", email, exc)
            raise ServiceError(ErrorKind.DELIVERY, "Failed to send verification email") from exc
        logger.info("Verification email sent to %s", email)

    def check_connection(self) -> None:
        """Authenticate and quit; raises on any SMTP or configuration problem."""
        self._ensure_configured()
        with self._connect() as server:
            server.login(self.config.SMTP_USER, self.config.SMTP_PASS)


class ConsoleNotifier:
    """Development notifier that writes the code to the log instead of mailing it."""

    async def send_verification_code(self, email: str, code: str) -> None:
        logger.warning("[console notifier] verification code for %s: %s", email, code)


def build_notifier(config: Settings) -> Notifier:
    if config.NOTIFIER == "console":
        return ConsoleNotifier()
    return SMTPNotifier(config)
