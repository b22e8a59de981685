from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)

AUTH_FAILED = "Authentication failed. Please check your email and app password."
CONNECT_FAILED = "Could not connect to SMTP server. Check your internet connection."
NOT_CONFIGURED = "Email service is not configured"


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    message: str


def render_otp_html(code: str, ttl_minutes: int, from_name: str) -> str:
    return f"""\
<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="margin: 0; padding: 20px; font-family: Arial, sans-serif; background-color: #f5f5f5;">
  <div style="max-width: 600px; margin: 0 auto; background-color: white; border-radius: 10px; padding: 30px;">
    <h2 style="color: #0f766e; margin-top: 0;">{from_name} - Login OTP</h2>
    <p style="color: #333; font-size: 16px;">Your one-time password for login is:</p>
    <div style="background: #f0fdfa; border: 2px dashed #14b8a6; border-radius: 8px; padding: 20px; text-align: center; margin: 24px 0;">
      <span style="font-size: 36px; letter-spacing: 8px; color: #0f766e; font-weight: bold;">{code}</span>
    </div>
    <p style="color: #666; font-size: 14px;">This code expires in <strong>{ttl_minutes} minutes</strong>.</p>
    <p style="color: #666; font-size: 14px;">Do not share this code with anyone.</p>
    <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 24px 0;">
    <p style="color: #9ca3af; font-size: 12px; margin: 0;">This is an automated message from {from_name}. Please do not reply to this email.</p>
  </div>
</body>
</html>
"""


def render_otp_text(code: str, ttl_minutes: int, from_name: str) -> str:
    return (
        f"Your {from_name} OTP is: {code} (valid for {ttl_minutes} minutes). "
        "Do not share this code with anyone."
    )


def describe_smtp_error(exc: Exception) -> str:
    if isinstance(exc, smtplib.SMTPAuthenticationError):
        return AUTH_FAILED
    if isinstance(exc, (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected, ConnectionError, TimeoutError)):
        return CONNECT_FAILED
    return str(exc) or exc.__class__.__name__


class SMTPEmailSender:
    """SMTP (implicit TLS) sender; blocking smtplib calls run in the default executor."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        s = settings or get_settings()
        self._host = s.SMTP_HOST
        self._port = s.SMTP_PORT
        self._timeout = s.SMTP_TIMEOUT_SEC
        self._user = s.SMTP_EMAIL
        self._password = s.SMTP_APP_PASSWORD
        self._from_name = s.EMAIL_FROM_NAME
        self._ttl_minutes = s.OTP_TTL_MINUTES
        self._dev_mode = s.ENV == "dev"
        if not self.enabled:
            missing = [k for k, v in [("SMTP_EMAIL", self._user), ("SMTP_APP_PASSWORD", self._password)] if not v]
            logger.warning("SMTP disabled; missing settings: %s", ", ".join(missing))

    @property
    def enabled(self) -> bool:
        return bool(self._user and self._password)

    def _connect(self) -> smtplib.SMTP_SSL:
        smtp = smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout, context=ssl.create_default_context())
        try:
            smtp.login(self._user, self._password)  # type: ignore[arg-type]
        except smtplib.SMTPException:
            smtp.close()
            raise
        return smtp

    def _build_message(self, to: str, subject: str, html: str, text: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self._from_name, self._user or ""))
        msg["To"] = to
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with self._connect() as smtp:
            smtp.send_message(msg)

    async def send_message(self, *, to: str, subject: str, html: str, text: str) -> DeliveryResult:
        if not self.enabled:
            return DeliveryResult(False, NOT_CONFIGURED)

        msg = self._build_message(to, subject, html, text)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._deliver, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("SMTP send to %s failed: %s", to, exc)
            return DeliveryResult(False, describe_smtp_error(exc))
        logger.info("Sent email '%s' to %s", subject, to)
        return DeliveryResult(True, "Email sent successfully")

    async def send_otp_email(self, to: str, code: str) -> DeliveryResult:
        if not self.enabled and self._dev_mode:
            # DEV sender: no SMTP credentials, surface the code in the logs instead
            logger.warning("[DEV] OTP for %s: %s", to, code)
            return DeliveryResult(True, "OTP logged (dev mode, SMTP not configured)")

        result = await self.send_message(
            to=to,
            subject=f"Your {self._from_name} Login OTP",
            html=render_otp_html(code, self._ttl_minutes, self._from_name),
            text=render_otp_text(code, self._ttl_minutes, self._from_name),
        )
        if result.success:
            return DeliveryResult(True, "OTP email sent successfully")
        return result

    def _check(self) -> None:
        with self._connect() as smtp:
            smtp.noop()

    async def test_connection(self) -> bool:
        if not self.enabled:
            return False
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._check)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP connection test failed: %s", describe_smtp_error(exc))
            return False
        return True
