from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SendOtpIn(BaseModel):
    email: EmailStr


class VerifyOtpIn(BaseModel):
    # presence is checked by the route so both fields can share one error message
    model_config = ConfigDict(coerce_numbers_to_str=True)

    email: Optional[str] = None
    otp: Optional[str] = None


class OtpResult(BaseModel):
    success: bool
    message: str


class SendOtpOut(OtpResult):
    expires_in: Optional[int] = Field(default=None, serialization_alias="expiresIn")


class OtpStatsOut(BaseModel):
    total: int
    emails: List[str]


class OtpHealthOut(OtpResult):
    email_connection: bool = Field(serialization_alias="emailConnection")
    otp_stats: OtpStatsOut = Field(serialization_alias="otpStats")
    timestamp: datetime


class CleanupOut(OtpResult):
    cleaned: int
    stats: OtpStatsOut
