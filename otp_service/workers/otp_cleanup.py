from __future__ import annotations
import asyncio
import logging

from ..observability.metrics import OTP_CLEANED, OTP_OUTSTANDING
from ..services.otp_manager import OTPManager

log = logging.getLogger("worker.otp_cleanup")


def run_once(manager: OTPManager) -> int:
    removed = manager.cleanup_expired()
    OTP_CLEANED.inc(removed)
    OTP_OUTSTANDING.set(manager.stats().total)
    if removed:
        log.info(f"swept {removed} expired otp records")
    return removed


async def run_forever(manager: OTPManager, interval_sec: float):
    while True:
        await asyncio.sleep(interval_sec)
        try:
            run_once(manager)
        except Exception as e:
            log.exception("otp_cleanup error: %s", e)
