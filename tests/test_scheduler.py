"""Tests for the asyncio-backed refresh scheduler."""

import asyncio

import pytest

from jwkfetch.scheduler import AsyncioScheduler


async def test_job_runs_every_interval() -> None:
    scheduler = AsyncioScheduler()
    ran = asyncio.Event()
    call_count = 0

    async def job() -> None:
        nonlocal call_count
        call_count += 1
        if call_count >= 2:
            ran.set()

    scheduler.every(0.01, job)
    try:
        await asyncio.wait_for(ran.wait(), timeout=2.0)
    finally:
        await scheduler.aclose()

    assert call_count >= 2
    assert not scheduler.running


async def test_failing_job_keeps_schedule_running() -> None:
    scheduler = AsyncioScheduler()
    recovered = asyncio.Event()
    call_count = 0

    async def job() -> None:
        nonlocal call_count
        call_count += 1
        if call_count == 1:
            raise RuntimeError("boom")
        recovered.set()

    scheduler.every(0.01, job)
    try:
        await asyncio.wait_for(recovered.wait(), timeout=2.0)
    finally:
        await scheduler.aclose()

    assert call_count >= 2


async def test_first_run_waits_one_interval() -> None:
    scheduler = AsyncioScheduler()
    call_count = 0

    async def job() -> None:
        nonlocal call_count
        call_count += 1

    scheduler.every(60, job)
    await asyncio.sleep(0)

    assert scheduler.running
    assert call_count == 0
    await scheduler.aclose()


async def test_non_positive_interval_is_rejected() -> None:
    async def job() -> None:
        return None

    with pytest.raises(ValueError):
        AsyncioScheduler().every(0, job)


def test_every_requires_running_loop() -> None:
    async def job() -> None:
        return None

    with pytest.raises(RuntimeError):
        AsyncioScheduler().every(1.0, job)
