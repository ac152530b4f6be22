# app/core/email_client.py
from __future__ import annotations

"""
Email client utilities for the nitoagua backend.

Responsibilities:
  - Read SMTP configuration from environment variables.
  - Provide a single send_email(...) function for services to use.
  - Support both TLS (STARTTLS) and SSL connections.

Typical .env configuration:

    SMTP_HOST=smtp.example.com
    SMTP_PORT=587
    SMTP_USERNAME=notificaciones@nitoagua.cl
    SMTP_PASSWORD=<app password>
    SMTP_FROM_EMAIL=notificaciones@nitoagua.cl
    SMTP_FROM_NAME=nitoagua
    SMTP_USE_TLS=true
    SMTP_USE_SSL=false
"""

import logging
import os
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)


def _get_bool_env(name: str, default: bool = False) -> bool:
    """
    Read a boolean env var.

    Accepted truthy values (case-insensitive):
      - "1", "true", "yes", "y"

    Everything else is treated as False.
    """
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y"}


# ---------------------------------------------------------------------------
# Configuration: read once at import time
# ---------------------------------------------------------------------------

SMTP_HOST: str | None = os.getenv("SMTP_HOST")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))

SMTP_USERNAME: str | None = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD: str | None = os.getenv("SMTP_PASSWORD")

# Fallback: if FROM_EMAIL is not set, default to username
SMTP_FROM_EMAIL: str = os.getenv("SMTP_FROM_EMAIL", SMTP_USERNAME or "")

# Human-readable sender name, shown in email clients
SMTP_FROM_NAME: str = os.getenv("SMTP_FROM_NAME", "nitoagua")

# Connection mode flags
SMTP_USE_TLS: bool = _get_bool_env("SMTP_USE_TLS", default=True)
SMTP_USE_SSL: bool = _get_bool_env("SMTP_USE_SSL", default=False)


def is_configured() -> bool:
    """True when host and credentials are present."""
    return bool(SMTP_HOST and SMTP_USERNAME and SMTP_PASSWORD)


def _create_smtp_client() -> smtplib.SMTP:
    """
    Create and return an SMTP client configured for TLS or SSL.

    Priority:
      - If SMTP_USE_SSL is True → use smtplib.SMTP_SSL (port 465).
      - Else → use smtplib.SMTP + optional STARTTLS if SMTP_USE_TLS is True.

    NOTE:
      - You should NOT enable both TLS and SSL at the same time.
    """
    if not SMTP_HOST:
        raise RuntimeError("SMTP_HOST is not configured. Please set it in .env.")

    if SMTP_USE_SSL:
        server: smtplib.SMTP = smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, timeout=30)
    else:
        server = smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=30)
        if SMTP_USE_TLS:
            server.starttls()

    return server


def send_email(
    to_email: str,
    subject: str,
    text_body: str,
    html_body: str | None = None,
) -> None:
    """
    Send an email to a single recipient.

    Parameters
    ----------
    to_email:
        Recipient email address.
    subject:
        Email subject line.
    text_body:
        Plain-text body (required, used as the fallback for clients that
        do not support HTML).
    html_body:
        Optional HTML body; if provided, is sent as an alternative part.

    Raises
    ------
    RuntimeError:
        If required SMTP configuration is missing.
    smtplib.SMTPException:
        If the underlying SMTP connection or send fails.

    Callers that treat email as a side effect (EmailService) catch and log.
    """
    if not is_configured():
        raise RuntimeError(
            "SMTP is not configured correctly. "
            "Please set SMTP_HOST, SMTP_USERNAME, and SMTP_PASSWORD in .env."
        )

    msg = EmailMessage()

    from_header = (
        f"{SMTP_FROM_NAME} <{SMTP_FROM_EMAIL}>"
        if SMTP_FROM_EMAIL
        else SMTP_USERNAME
    )
    msg["From"] = from_header
    msg["To"] = to_email
    msg["Subject"] = subject

    # Always add a plain-text part
    msg.set_content(text_body)

    if html_body:
        msg.add_alternative(html_body, subtype="html")

    server = _create_smtp_client()
    try:
        server.login(SMTP_USERNAME, SMTP_PASSWORD)  # type: ignore[arg-type]
        server.send_message(msg)
    finally:
        try:
            server.quit()
        except smtplib.SMTPException:
            # Connection is being torn down anyway.
            logger.debug("SMTP quit failed", exc_info=True)
