"""Tests for the maintenance job scheduler."""

import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from app.services.scheduler_service import TaskScheduler, _seconds_until_midnight, register_jobs


def test_due_tasks_run_and_reschedule():
    scheduler = TaskScheduler()
    calls = []
    scheduler.add_task("job", lambda: calls.append(1), interval_seconds=300)

    later = datetime.now(timezone.utc) + timedelta(seconds=30)
    assert asyncio.run(scheduler.run_due(later)) == ["job"]
    assert calls == [1]
    # not due again until the interval has passed
    assert asyncio.run(scheduler.run_due(later + timedelta(seconds=10))) == []

    status = scheduler.get_status()["job"]
    assert status["run_count"] == 1
    assert status["interval_seconds"] == 300
    assert status["last_error"] is None


def test_failing_task_is_recorded_and_retried_later():
    scheduler = TaskScheduler()

    def broken():
        raise RuntimeError("db down")

    scheduler.add_task("broken", broken, interval_seconds=60)
    later = datetime.now(timezone.utc) + timedelta(seconds=30)

    assert asyncio.run(scheduler.run_due(later)) == ["broken"]
    status = scheduler.get_status()["broken"]
    assert status["last_error"] == "db down"
    assert status["run_count"] == 0


def test_register_jobs_uses_own_sessions(db_engine, settings):
    reaped = []

    def reap(session):
        reaped.append(session)
        return 0

    services = SimpleNamespace(
        presence=SimpleNamespace(reap_stale_drivers=reap, reset_daily_stats=lambda s: 0),
        dispatch=SimpleNamespace(sweep_stuck_searches=lambda s: 0),
    )
    scheduler = TaskScheduler()
    register_jobs(scheduler, services, settings, bind=db_engine)

    assert set(scheduler.get_status()) == {
        "stale_presence_reaper",
        "stuck_search_sweep",
        "daily_driver_stats_reset",
    }
    asyncio.run(scheduler.run_due(datetime.now(timezone.utc) + timedelta(seconds=30)))
    assert len(reaped) == 1


def test_seconds_until_midnight():
    now = datetime(2026, 5, 4, 23, 0, tzinfo=timezone.utc)
    assert _seconds_until_midnight(now) == 3600
