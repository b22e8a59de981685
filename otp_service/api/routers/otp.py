from __future__ import annotations
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ...domain.schemas.otp import (
    CleanupOut, OtpHealthOut, OtpResult, OtpStatsOut, SendOtpIn, SendOtpOut, VerifyOtpIn,
)
from ...observability.metrics import OTP_OUTSTANDING, OTP_RATE_LIMITED, OTP_SENT, OTP_VERIFY
from ...services.email_sender import SMTPEmailSender
from ...services.otp_manager import OTPManager
from ...workers.otp_cleanup import run_once as cleanup_once
from ..deps import get_email_sender, get_otp_manager

router = APIRouter(prefix="/api/otp", tags=["otp"])
log = logging.getLogger(__name__)


def _fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=OtpResult(success=False, message=message).model_dump())


def _stats_out(manager: OTPManager) -> OtpStatsOut:
    st = manager.stats()
    return OtpStatsOut(total=st.total, emails=st.emails)


@router.post("/send", response_model=SendOtpOut, response_model_exclude_none=True)
async def send_otp(
    payload: SendOtpIn,
    manager: OTPManager = Depends(get_otp_manager),
    sender: SMTPEmailSender = Depends(get_email_sender),
):
    email = str(payload.email)
    if manager.has_recent_otp(email):
        OTP_RATE_LIMITED.inc()
        return _fail(status.HTTP_429_TOO_MANY_REQUESTS, "Please wait before requesting another OTP")

    code = manager.generate()
    manager.store(email, code)

    result = await sender.send_otp_email(email, code)
    if not result.success:
        # an undelivered code must not hold the caller in cooldown
        manager.discard(email)
        OTP_OUTSTANDING.set(manager.stats().total)
        OTP_SENT.labels(result="failed").inc()
        log.error("Failed to send OTP to %s: %s", email, result.message)
        return _fail(status.HTTP_500_INTERNAL_SERVER_ERROR, result.message or "Failed to send OTP email")

    OTP_SENT.labels(result="sent").inc()
    OTP_OUTSTANDING.set(manager.stats().total)
    return SendOtpOut(
        success=True,
        message="OTP sent successfully to your email",
        expires_in=manager.ttl_minutes * 60,
    )


@router.post("/verify", response_model=OtpResult)
async def verify_otp(payload: VerifyOtpIn, manager: OTPManager = Depends(get_otp_manager)):
    if not payload.email or not payload.otp:
        return _fail(status.HTTP_400_BAD_REQUEST, "Email and OTP are required")

    result = manager.verify(payload.email, payload.otp)
    OTP_VERIFY.labels(outcome=result.outcome.value).inc()
    OTP_OUTSTANDING.set(manager.stats().total)
    if not result.success:
        return _fail(status.HTTP_400_BAD_REQUEST, result.message)
    return OtpResult(success=True, message=result.message)


@router.get("/health", response_model=OtpHealthOut)
async def otp_health(
    manager: OTPManager = Depends(get_otp_manager),
    sender: SMTPEmailSender = Depends(get_email_sender),
):
    return OtpHealthOut(
        success=True,
        message="OTP service is healthy",
        email_connection=await sender.test_connection(),
        otp_stats=_stats_out(manager),
        timestamp=datetime.now(timezone.utc),
    )


@router.post("/cleanup", response_model=CleanupOut)
async def cleanup(manager: OTPManager = Depends(get_otp_manager)):
    cleaned = cleanup_once(manager)
    return CleanupOut(success=True, message="Cleanup completed", cleaned=cleaned, stats=_stats_out(manager))
