# app/services/scheduler_service.py
"""Background scheduler for the periodic dispatch jobs (reaper, sweeps, resets)."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sqlmodel import Session

from app.core.config import Settings
from app.database import engine

logger = logging.getLogger(__name__)

DAILY_RESET_INTERVAL_SECONDS = 24 * 60 * 60


class TaskScheduler:
    """
    Lightweight asyncio-based task scheduler.

    Runs registered tasks at fixed intervals. State is in-memory only;
    every job is idempotent so a missed or repeated run is harmless.
    """

    def __init__(self, poll_seconds: int = 60):
        self._tasks: dict[str, dict[str, Any]] = {}
        self._running = False
        self._task_handle: asyncio.Task | None = None
        self.poll_seconds = poll_seconds

    async def start(self):
        """Start the scheduler loop."""
        self._running = True
        logger.info("Task scheduler started")

        while self._running:
            await self.run_due(datetime.now(timezone.utc))
            await asyncio.sleep(self.poll_seconds)

    def run_in_background(self) -> asyncio.Task:
        self._task_handle = asyncio.create_task(self.start())
        return self._task_handle

    async def run_due(self, now: datetime) -> list[str]:
        """Run every task whose next_run has passed. Returns the names that ran."""
        ran = []
        for name, task in list(self._tasks.items()):
            if now < task["next_run"]:
                continue
            try:
                if asyncio.iscoroutinefunction(task["func"]):
                    await task["func"]()
                else:
                    # Jobs are sync DB work; keep them off the event loop
                    await asyncio.to_thread(task["func"])
                task["last_run"] = now
                task["run_count"] = task.get("run_count", 0) + 1
                task["last_error"] = None
                logger.debug(f"Scheduled task '{name}' completed")
            except Exception as e:
                task["last_error"] = str(e)
                logger.error(f"Scheduled task '{name}' failed: {e}")
            task["next_run"] = now + task["interval"]
            ran.append(name)
        return ran

    def stop(self):
        self._running = False
        if self._task_handle:
            self._task_handle.cancel()
        logger.info("Task scheduler stopped")

    def add_task(
        self,
        name: str,
        func: Callable,
        interval_seconds: int,
        first_run_delay_seconds: int = 10,
    ):
        self._tasks[name] = {
            "func": func,
            "interval": timedelta(seconds=interval_seconds),
            "next_run": datetime.now(timezone.utc) + timedelta(seconds=first_run_delay_seconds),
            "last_run": None,
            "run_count": 0,
            "last_error": None,
        }
        logger.info(f"Scheduled task '{name}' every {interval_seconds}s")

    def remove_task(self, name: str):
        self._tasks.pop(name, None)

    def get_status(self) -> dict[str, Any]:
        return {
            name: {
                "last_run": t["last_run"].isoformat() if t["last_run"] else None,
                "next_run": t["next_run"].isoformat(),
                "interval_seconds": int(t["interval"].total_seconds()),
                "run_count": t.get("run_count", 0),
                "last_error": t.get("last_error"),
            }
            for name, t in self._tasks.items()
        }


def _with_session(job: Callable[[Session], Any], bind=None) -> Callable[[], Any]:
    """Wrap a service job so each run gets its own short-lived session."""

    def run():
        with Session(bind or engine) as session:
            return job(session)

    return run


def register_jobs(scheduler: TaskScheduler, services, settings: Settings, bind=None) -> None:
    """Register the dispatch maintenance jobs on `scheduler`."""
    scheduler.add_task(
        "stale_presence_reaper",
        _with_session(services.presence.reap_stale_drivers, bind),
        settings.REAPER_INTERVAL_SECONDS,
    )
    scheduler.add_task(
        "stuck_search_sweep",
        _with_session(services.dispatch.sweep_stuck_searches, bind),
        settings.SEARCH_SWEEP_INTERVAL_SECONDS,
    )
    scheduler.add_task(
        "daily_driver_stats_reset",
        _with_session(services.presence.reset_daily_stats, bind),
        DAILY_RESET_INTERVAL_SECONDS,
        first_run_delay_seconds=_seconds_until_midnight(),
    )


def _seconds_until_midnight(now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    midnight = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return int((midnight - now).total_seconds())


scheduler = TaskScheduler()
