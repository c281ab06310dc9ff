"""
Scheduler — periodic refresh of the profile and policy-set repositories.

Infrastructure layer — uses APScheduler (3.x) with an interval trigger
(IGTF distributions are refreshed every few hours, not on a wall-clock cron).

Each run goes through a LoggingExecutionContext for timing and outcome
logging. A failed refresh is logged and the previous policies stay in effect;
the scheduler keeps running.

Graceful shutdown: the blocking variant handles SIGINT/SIGTERM.
"""

from __future__ import annotations

import signal
import sys
from collections.abc import Callable
from typing import Any

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger
from railway import LoggingExecutionContext
from railway.result import Result

log = structlog.get_logger()

JOB_ID = "authn_profiles_refresh"


def create_scheduler(
    refresh_fn: Callable[[], Result[Any]],
    interval_seconds: int = 14400,
    run_on_startup: bool = False,
    background: bool = False,
) -> BaseScheduler:
    """
    Create a scheduler that runs `refresh_fn` every `interval_seconds`.

    Args:
        refresh_fn: Zero-argument callable returning a Result (the wired refresh).
        interval_seconds: Seconds between refreshes; <= 0 schedules no job.
        run_on_startup: If True, refresh once immediately, before returning.
        background: BackgroundScheduler (hosted in a web app) instead of the
            BlockingScheduler used by the CLI.

    Returns:
        A configured scheduler (call .start() to begin).
    """
    scheduler: BaseScheduler = BackgroundScheduler() if background else BlockingScheduler()
    ctx = LoggingExecutionContext(operation="AuthnProfilesRefresh")

    def _job() -> None:
        result = ctx.execute(refresh_fn)
        if result.is_success():
            log.info("scheduler.refresh_completed")
        else:
            log.error("scheduler.refresh_failed", failure=str(result.error()))

    if interval_seconds > 0:
        scheduler.add_job(
            _job,
            trigger=IntervalTrigger(seconds=interval_seconds),
            id=JOB_ID,
            name="Trust anchors and VO-CA-AP refresh",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        log.info("scheduler.configured", interval_seconds=interval_seconds)
    else:
        log.info("scheduler.refresh_disabled", interval_seconds=interval_seconds)

    if run_on_startup:
        log.info("scheduler.startup_run", message="Refreshing repositories on startup")
        _job()

    if not background:
        _register_shutdown_signals(scheduler)

    return scheduler


def _register_shutdown_signals(scheduler: BaseScheduler) -> None:
    """Register SIGINT and SIGTERM handlers for graceful shutdown."""

    def _shutdown(signum: int, frame: object) -> None:
        sig_name = signal.Signals(signum).name
        log.info("scheduler.shutdown_requested", signal=sig_name)
        scheduler.shutdown(wait=False)
        sys.exit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
