"""
Tests for the scheduled expiry sweep wired into the application lifespan
"""
import asyncio
import threading
from datetime import timedelta
from decimal import Decimal

import pytest

import main
from tests.conftest import NOW


def test_sweep_once_expires_overdue_rows(db_path, sub_repo):
    sub_repo.create(
        user_id="u1", plan_type="monthly", status="active", payment_date=NOW - timedelta(days=40),
        expiry_date=NOW - timedelta(days=10), amount=Decimal("99.90"), now=NOW - timedelta(days=40),
    )

    assert main.sweep_once(db_path) == 1
    assert sub_repo.get_by_user_id("u1").status == "expired"


@pytest.mark.asyncio
async def test_sweep_loop_runs_off_the_event_loop(monkeypatch):
    threads = []

    def fake_sweep(db_path):
        threads.append(threading.get_ident())
        return 0

    monkeypatch.setattr(main, "sweep_once", fake_sweep)
    task = asyncio.create_task(main.expiry_sweep_loop("unused.db", 3600))
    while not threads:
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert threads[0] != threading.get_ident()


@pytest.mark.asyncio
async def test_sweep_loop_survives_a_crash(monkeypatch):
    calls = []

    def flaky_sweep(db_path):
        calls.append(db_path)
        raise RuntimeError("disk I/O error")

    monkeypatch.setattr(main, "sweep_once", flaky_sweep)
    task = asyncio.create_task(main.expiry_sweep_loop("unused.db", 0.01))
    while len(calls) < 2:
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
