from __future__ import annotations
from fastapi import Request

from ..services.email_sender import SMTPEmailSender
from ..services.otp_manager import OTPManager


def get_otp_manager(request: Request) -> OTPManager:
    return request.app.state.otp_manager


def get_email_sender(request: Request) -> SMTPEmailSender:
    return request.app.state.email_sender
