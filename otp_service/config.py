from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: Literal["dev", "prod", "test"] = "dev"
    DEBUG: bool = False

    # App
    APP_NAME: str = "clinicos-otp"
    APP_VERSION: str = "1.0.0"
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 3001

    # Logging / Observability
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True
    REQUEST_ID_HEADER: str = "X-Request-ID"

    # CORS: comma separated list, plus a regex for Expo / LAN dev clients
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8081,http://localhost:19006,exp://localhost:8081"
    CORS_ORIGIN_REGEX: str = r"^(exp://.*|http://192\.168\.\d+\.\d+:\d+)$"

    # SMTP (Gmail app password over implicit TLS by default)
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 465
    SMTP_TIMEOUT_SEC: float = 10.0
    SMTP_EMAIL: str | None = None
    SMTP_APP_PASSWORD: str | None = None
    EMAIL_FROM_NAME: str = "ClinicOS"
    SMTP_VERIFY_ON_STARTUP: bool = True

    # OTP lifecycle
    OTP_TTL_MINUTES: int = 3
    OTP_COOLDOWN_MINUTES: int = 1
    OTP_MAX_ATTEMPTS: int = 3
    OTP_CLEANUP_INTERVAL_SEC: int = 5 * 60

    @field_validator("SMTP_EMAIL", mode="before")
    @classmethod
    def _strip_email(cls, v):
        if isinstance(v, str):
            v = v.strip()
        return v or None

    @field_validator("SMTP_APP_PASSWORD", mode="before")
    @classmethod
    def _strip_app_password(cls, v):
        # Google shows app passwords in groups of four; spaces are not part of it
        if isinstance(v, str):
            v = "".join(v.split())
        return v or None

    @property
    def smtp_configured(self) -> bool:
        return bool(self.SMTP_EMAIL and self.SMTP_APP_PASSWORD)

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


def get_settings() -> Settings:
    # slightly faster singleton
    global _SETTINGS_SINGLETON
    try:
        return _SETTINGS_SINGLETON  # type: ignore[name-defined]
    except NameError:
        _SETTINGS_SINGLETON = Settings()  # type: ignore[assignment]
        return _SETTINGS_SINGLETON
