from __future__ import annotations
import asyncio
import contextlib
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from .config import Settings, get_settings
from .api.routers import health as health_router
from .api.routers import otp as otp_router
from .observability.logging import setup_logging
from .middleware.request_context import RequestContextMiddleware
from .observability.metrics import MetricsHTTPMiddleware, metrics_app
from .services.email_sender import SMTPEmailSender
from .services.otp_manager import OTPManager
from .workers import otp_cleanup

log = logging.getLogger("app")

AVAILABLE_ROUTES = [
    "POST /api/otp/send",
    "POST /api/otp/verify",
    "GET /api/otp/health",
    "POST /api/otp/cleanup",
    "GET /health",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    sender = app.state.email_sender

    if sender.enabled:
        if settings.SMTP_VERIFY_ON_STARTUP and not await sender.test_connection():
            raise RuntimeError("Email service connection failed; check SMTP_EMAIL / SMTP_APP_PASSWORD")
        log.info("Email service configured for %s", settings.SMTP_EMAIL)
    else:
        log.warning("SMTP credentials not configured; OTP delivery will not work outside dev mode")

    cleaner = asyncio.create_task(
        otp_cleanup.run_forever(app.state.otp_manager, settings.OTP_CLEANUP_INTERVAL_SEC),
        name="otp-cleanup",
    )
    try:
        yield
    finally:
        cleaner.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleaner


def _install_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={
                "success": False,
                "message": f"Route not found: {request.method} {request.url.path}",
                "availableRoutes": AVAILABLE_ROUTES,
            })
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        bad_email = request.url.path.endswith("/send") or any(
            err.get("loc", ())[-1:] == ("email",) for err in exc.errors()
        )
        message = "Invalid email format" if bad_email else "Invalid request body"
        return JSONResponse(status_code=400, content={"success": False, "message": message})

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception):
        log.exception("Server error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={
            "success": False,
            "message": "Internal server error",
            "error": str(exc) if settings.ENV == "dev" else "Something went wrong",
        })


def create_app(
    settings: Optional[Settings] = None,
    manager: Optional[OTPManager] = None,
    sender: Optional[SMTPEmailSender] = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(level=settings.LOG_LEVEL, json=settings.ENV != "dev")

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, debug=settings.DEBUG, lifespan=lifespan)

    app.state.settings = settings
    app.state.started_at = time.monotonic()
    app.state.otp_manager = manager or OTPManager(
        ttl_minutes=settings.OTP_TTL_MINUTES,
        cooldown_minutes=settings.OTP_COOLDOWN_MINUTES,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
    )
    app.state.email_sender = sender or SMTPEmailSender(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.CORS_ORIGIN_REGEX or None,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_middleware(RequestContextMiddleware, request_id_header=settings.REQUEST_ID_HEADER)
    if settings.METRICS_ENABLED:
        app.add_middleware(MetricsHTTPMiddleware)
        app.add_api_route("/metrics", metrics_app(), methods=["GET"], include_in_schema=False)

    _install_error_handlers(app, settings)

    app.include_router(health_router.router)
    app.include_router(otp_router.router)

    return app


def main():
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.APP_HOST, port=settings.APP_PORT)


if __name__ == "__main__":
    main()
