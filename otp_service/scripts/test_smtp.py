from __future__ import annotations
import argparse
import asyncio
import logging
import sys

from ..config import get_settings
from ..observability.logging import setup_logging
from ..services.email_sender import SMTPEmailSender

log = logging.getLogger("scripts.test_smtp")


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Check SMTP credentials and send a test email")
    p.add_argument("--to", help="Recipient (defaults to SMTP_EMAIL)")
    p.add_argument("--no-send", action="store_true", help="Only verify the connection")
    return p.parse_args(argv)


async def amain(argv=None) -> int:
    args = parse_args(argv)
    S = get_settings()
    log.info("SMTP host=%s port=%s email=%s password=%s", S.SMTP_HOST, S.SMTP_PORT,
             S.SMTP_EMAIL or "NOT SET", "SET" if S.SMTP_APP_PASSWORD else "NOT SET")

    if not S.smtp_configured:
        log.error("Missing SMTP credentials: set SMTP_EMAIL and SMTP_APP_PASSWORD in .env")
        return 1

    sender = SMTPEmailSender(S)
    if not await sender.test_connection():
        return 1
    log.info("SMTP connection is working")
    if args.no_send:
        return 0

    to = args.to or S.SMTP_EMAIL
    result = await sender.send_message(
        to=to,
        subject="SMTP Test Successful",
        html=(
            f"<h2>SMTP Configuration Test</h2><p>Your SMTP settings are working correctly.</p>"
            f"<ul><li>Host: {S.SMTP_HOST}</li><li>Port: {S.SMTP_PORT}</li><li>Email: {S.SMTP_EMAIL}</li></ul>"
        ),
        text=f"SMTP settings are working ({S.SMTP_HOST}:{S.SMTP_PORT}, {S.SMTP_EMAIL}).",
    )
    if not result.success:
        log.error("Test email failed: %s", result.message)
        return 1
    log.info("Test email sent to %s", to)
    return 0


def main():
    setup_logging()
    sys.exit(asyncio.run(amain()))


if __name__ == "__main__":
    main()
