from __future__ import annotations

import hmac
import logging
import random
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)

CODE_MIN = 100000
CODE_MAX = 999999
DEFAULT_TTL_MINUTES = 3
DEFAULT_COOLDOWN_MINUTES = 1
DEFAULT_MAX_ATTEMPTS = 3


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class VerifyOutcome(str, Enum):
    VERIFIED = "verified"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    CODE_MISMATCH = "code_mismatch"


MESSAGES = {
    VerifyOutcome.VERIFIED: "OTP verified successfully",
    VerifyOutcome.NOT_FOUND: "OTP not found. Please request a new one.",
    VerifyOutcome.EXPIRED: "OTP has expired. Please request a new one.",
    VerifyOutcome.ATTEMPTS_EXHAUSTED: "Too many attempts. Please request a new OTP.",
    VerifyOutcome.CODE_MISMATCH: "Invalid OTP. Please try again.",
}


@dataclass
class OTPRecord:
    code: str
    email: str
    issued_at: datetime
    expires_at: datetime
    attempts: int = 0


@dataclass(frozen=True)
class VerifyResult:
    outcome: VerifyOutcome
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.outcome is VerifyOutcome.VERIFIED

    @property
    def message(self) -> str:
        return MESSAGES[self.outcome]


@dataclass(frozen=True)
class OTPStats:
    total: int
    emails: list[str] = field(default_factory=list)


def _normalize(email: str) -> str:
    return email.strip().lower()


class OTPManager:
    """
    In-memory OTP lifecycle: issue, verify (single use, attempt-capped),
    cooldown checks and expiry sweeps. One record per lower-cased email.

    Every public method runs as one critical section under `_lock`, so the
    check-then-mutate sequences in `verify` and `cleanup_expired` are atomic
    even when called from worker threads.
    """

    def __init__(
        self,
        *,
        ttl_minutes: int = DEFAULT_TTL_MINUTES,
        cooldown_minutes: int = DEFAULT_COOLDOWN_MINUTES,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = _now_utc,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.ttl_minutes = ttl_minutes
        self.cooldown_minutes = cooldown_minutes
        self.max_attempts = max_attempts
        self._clock = clock
        self._rng = rng if rng is not None else secrets.SystemRandom()
        self._records: dict[str, OTPRecord] = {}
        self._lock = threading.Lock()

    def generate(self) -> str:
        return str(self._rng.randint(CODE_MIN, CODE_MAX))

    def store(self, email: str, code: str, ttl_minutes: Optional[int] = None) -> OTPRecord:
        key = _normalize(email)
        ttl = self.ttl_minutes if ttl_minutes is None else ttl_minutes
        now = self._clock()
        record = OTPRecord(
            code=code,
            email=key,
            issued_at=now,
            expires_at=now + timedelta(minutes=ttl),
        )
        with self._lock:
            # overwrite: a previously issued code for this email stops working
            self._records[key] = record
        logger.info("otp_stored", extra={"extra": f"email={key} ttl_min={ttl}"})
        return record

    def verify(self, email: str, code: str) -> VerifyResult:
        key = _normalize(email)
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return VerifyResult(VerifyOutcome.NOT_FOUND)

            if self._clock() > record.expires_at:
                del self._records[key]
                return VerifyResult(VerifyOutcome.EXPIRED, record.attempts)

            if record.attempts >= self.max_attempts:
                del self._records[key]
                return VerifyResult(VerifyOutcome.ATTEMPTS_EXHAUSTED, record.attempts)

            if not hmac.compare_digest(record.code.encode(), str(code).encode()):
                record.attempts += 1
                if record.attempts >= self.max_attempts:
                    del self._records[key]
                    return VerifyResult(VerifyOutcome.ATTEMPTS_EXHAUSTED, record.attempts)
                return VerifyResult(VerifyOutcome.CODE_MISMATCH, record.attempts)

            del self._records[key]

        logger.info("otp_verified", extra={"extra": f"email={key}"})
        return VerifyResult(VerifyOutcome.VERIFIED, record.attempts)

    def has_recent_otp(self, email: str, cooldown_minutes: Optional[int] = None) -> bool:
        """True while the live code for `email` is younger than the cooldown."""
        key = _normalize(email)
        cooldown = self.cooldown_minutes if cooldown_minutes is None else cooldown_minutes
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return False
            now = self._clock()
            if now > record.expires_at:
                return False
            return now - record.issued_at < timedelta(minutes=cooldown)

    def discard(self, email: str) -> bool:
        with self._lock:
            return self._records.pop(_normalize(email), None) is not None

    def cleanup_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [k for k, r in self._records.items() if now > r.expires_at]
            for k in expired:
                del self._records[k]
        if expired:
            logger.info("otp_cleanup", extra={"extra": f"removed={len(expired)}"})
        return len(expired)

    def stats(self) -> OTPStats:
        with self._lock:
            return OTPStats(total=len(self._records), emails=list(self._records))
