"""Notification Service — emails the claim link for a pending transfer.

One best-effort SMTP delivery per call. No retries: a failure is logged and
returned as NotificationResult(delivered=False), never raised, because the
transfer has already been committed and must not depend on delivery.

In dry-run mode (no SMTP host, or notifications_dry_run=true) the message is
rendered and the claim URL is logged instead of being sent.
"""

from __future__ import annotations

import asyncio
import smtplib
from email.message import EmailMessage
from html import escape
from typing import TYPE_CHECKING

from point_transfer.domain.protocols import NotificationResult
from point_transfer.logging_config import get_logger

if TYPE_CHECKING:
    from point_transfer.config import Settings
    from point_transfer.infrastructure.database.orm_models import Transfer

logger = get_logger(__name__)

SUBJECT = "You've Received Virtual Points!"

_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: 'Segoe UI', Tahoma, sans-serif; color: #333; max-width: 600px; margin: 0 auto;">
  <h1 style="background: #667eea; color: white; padding: 30px; text-align: center;">
    You've Received Virtual Points!
  </h1>
  <p>Hello <strong>{receiver_name}</strong>,</p>
  <p>You have received <strong style="color: #667eea;">{points} virtual points</strong>
     from <strong>{sender_email}</strong>.</p>
  <p style="text-align: center;">
    <a href="{claim_url}" style="padding: 15px 30px; background: #667eea; color: white;
       text-decoration: none; border-radius: 5px;">Claim Your Points Now</a>
  </p>
  <p style="background: #fff3cd; padding: 15px; border-left: 4px solid #ffc107;">
    <strong>Important:</strong> This link will expire in {expiry_hours} hours.
    If you don't have an account yet, you'll be able to create one after clicking the link.
  </p>
  <p><strong>Email:</strong> Make sure to use <strong>{receiver_email}</strong>
     when creating your account.</p>
  <p style="color: #666; font-size: 14px;">Best regards,<br><strong>Virtual Points Team</strong></p>
  <p style="color: #999; font-size: 12px;">This is an automated message, please do not reply.</p>
</body>
</html>
"""

_TEXT_TEMPLATE = """\
Hello {receiver_name},

You have received {points} virtual points from {sender_email}.

Claim them here: {claim_url}

This link will expire in {expiry_hours} hours. Make sure to use {receiver_email}
when creating your account.

Virtual Points Team
"""


def build_claim_url(frontend_url: str, token: str) -> str:
    """Return the SPA hash-route URL the receiver opens to claim a transfer."""
    return f"{frontend_url.rstrip('/')}/#/claim/{token}"


def render_claim_email(
    transfer: Transfer,
    claim_url: str,
    sender_address: str,
    expiry_hours: int,
) -> EmailMessage:
    """Render the claim email with plain-text and HTML alternatives."""
    fields = {
        "receiver_name": transfer.receiver_name,
        "points": transfer.points,
        "sender_email": transfer.sender_email,
        "claim_url": claim_url,
        "receiver_email": transfer.receiver_email,
        "expiry_hours": expiry_hours,
    }

    message = EmailMessage()
    message["From"] = sender_address
    message["To"] = transfer.receiver_email
    message["Subject"] = SUBJECT
    message["X-Priority"] = "1"
    message["Importance"] = "high"
    message.set_content(_TEXT_TEMPLATE.format(**fields))
    message.add_alternative(
        _HTML_TEMPLATE.format(**{k: escape(str(v)) for k, v in fields.items()}),
        subtype="html",
    )
    return message


class EmailNotifier:
    """Sends claim notifications over SMTP."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._dry_run = settings.notifications_dry_run or not settings.smtp_host

    async def notify(self, transfer: Transfer) -> NotificationResult:
        """Send the claim email for a transfer. Failures are returned, not raised."""
        claim_url = build_claim_url(self._settings.frontend_url, transfer.token)
        message = render_claim_email(
            transfer,
            claim_url=claim_url,
            sender_address=self._settings.email_from,
            expiry_hours=self._settings.transfer_expiry_hours,
        )

        if self._dry_run:
            logger.info(
                "notification.dry_run",
                transfer_id=transfer.id,
                recipient=transfer.receiver_email,
                claim_url=claim_url,
            )
            return NotificationResult(delivered=True, recipient=transfer.receiver_email)

        try:
            await asyncio.to_thread(self._send, message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning(
                "notification.smtp_failed",
                transfer_id=transfer.id,
                recipient=transfer.receiver_email,
                error=str(exc),
            )
            return NotificationResult(
                delivered=False,
                recipient=transfer.receiver_email,
                error=str(exc),
            )

        logger.info(
            "notification.sent",
            transfer_id=transfer.id,
            recipient=transfer.receiver_email,
        )
        return NotificationResult(delivered=True, recipient=transfer.receiver_email)

    def _send(self, message: EmailMessage) -> None:
        settings = self._settings
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as smtp:
            if settings.smtp_use_tls:
                smtp.starttls()
            if settings.smtp_auth_enabled:
                smtp.login(settings.smtp_username, settings.smtp_password)
            else:
                logger.warning("notification.smtp_unauthenticated", host=settings.smtp_host)
            smtp.send_message(message)
