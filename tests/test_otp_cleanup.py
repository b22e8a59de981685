import asyncio

import pytest

from otp_service.workers import otp_cleanup

pytestmark = pytest.mark.asyncio


async def test_run_once_sweeps_expired(manager, clock):
    manager.store("gone@x.com", "111111", 1)
    manager.store("kept@x.com", "222222", 5)
    clock.advance(minutes=2)

    assert otp_cleanup.run_once(manager) == 1
    assert manager.stats().emails == ["kept@x.com"]


async def test_run_forever_calls_the_sweep(manager, clock):
    manager.store("gone@x.com", "111111", 1)
    clock.advance(minutes=2)

    task = asyncio.create_task(otp_cleanup.run_forever(manager, interval_sec=0.01))
    try:
        for _ in range(100):
            if manager.stats().total == 0:
                break
            await asyncio.sleep(0.01)
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert manager.stats().total == 0


async def test_run_forever_survives_errors(manager, monkeypatch):
    calls = []

    def flaky(_manager):
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return 0

    monkeypatch.setattr(otp_cleanup, "run_once", flaky)
    task = asyncio.create_task(otp_cleanup.run_forever(manager, interval_sec=0.01))
    try:
        for _ in range(100):
            if len(calls) >= 2:
                break
            await asyncio.sleep(0.01)
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert len(calls) >= 2
