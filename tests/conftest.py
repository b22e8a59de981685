import random
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio

from otp_service.config import Settings
from otp_service.main import create_app
from otp_service.services.email_sender import DeliveryResult
from otp_service.services.otp_manager import OTPManager


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeSender:
    """Records deliveries instead of talking to SMTP."""

    def __init__(self, connection_ok: bool = True, enabled: bool = True):
        self.enabled = enabled
        self.sent: list[tuple[str, str]] = []
        self.fail_with: str | None = None
        self.connection_ok = connection_ok

    async def send_otp_email(self, to: str, code: str) -> DeliveryResult:
        if self.fail_with:
            return DeliveryResult(False, self.fail_with)
        self.sent.append((to, code))
        return DeliveryResult(True, "OTP email sent successfully")

    async def test_connection(self) -> bool:
        return self.connection_ok

    def last_code(self, to: str) -> str:
        return [c for (addr, c) in self.sent if addr == to][-1]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    return OTPManager(clock=clock, rng=random.Random(1234))


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def settings():
    return Settings(ENV="test", SMTP_EMAIL=None, SMTP_APP_PASSWORD=None, _env_file=None)


@pytest.fixture
def app(settings, manager, sender):
    return create_app(settings, manager=manager, sender=sender)


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
