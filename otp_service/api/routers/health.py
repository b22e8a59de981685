import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])

ENDPOINTS = {
    "POST /api/otp/send": "Send OTP to email",
    "POST /api/otp/verify": "Verify OTP",
    "GET /api/otp/health": "Health check",
    "POST /api/otp/cleanup": "Cleanup expired OTPs",
}


@router.get("/")
async def root(request: Request):
    settings = request.app.state.settings
    return {
        "message": f"{settings.APP_NAME} - OTP Service",
        "version": settings.APP_VERSION,
        "status": "running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "endpoints": ENDPOINTS,
    }


@router.get("/health")
async def health(request: Request):
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
    }
