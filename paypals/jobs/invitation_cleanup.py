# paypals/jobs/invitation_cleanup.py
# DAILY INVITATION CLEANUP
# -----------------------------------------------------------------------------
# One-off run:
#     >>> from paypals.jobs.invitation_cleanup import invitation_cleanup_once
#     >>> invitation_cleanup_once(days_old=30)
#
# Background loop (daily at 03:00 server time), started from main.py on
# FastAPI startup when INVITATION_CLEANUP_ENABLED=1:
#     >>> start_invitation_cleanup_loop()
#
# No locking: two overlapping runs may both try to expire the same rows,
# which is harmless (the second one finds nothing left to do).

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from paypals import config
from paypals.db import SessionLocal
from paypals.services.invitation_cleanup import run_cleanup

log = logging.getLogger(__name__)

_task: Optional[asyncio.Task] = None


def invitation_cleanup_once(days_old: int = config.INVITATION_RETENTION_DAYS) -> dict:
    """
    Opens its own session, marks expired invitations, then purges old ones.
    Returns the summary dict.
    """
    with SessionLocal() as db:
        summary = run_cleanup(db, days_old)
    log.info("invitation-cleanup summary: %s", summary)
    return summary


async def _sleep_until_next_run(hour: int = 3, minute: int = 0) -> None:
    now = datetime.now()
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target = target + timedelta(days=1)
    await asyncio.sleep((target - now).total_seconds())


async def _loop_daily() -> None:
    while True:
        try:
            await _sleep_until_next_run(hour=3, minute=0)
            # sync DB work stays off the event loop
            await asyncio.to_thread(invitation_cleanup_once)
        except Exception:
            log.exception("invitation-cleanup loop iteration failed")


def start_invitation_cleanup_loop() -> Optional[asyncio.Task]:
    """
    Schedules the loop on the running asyncio loop. Call from FastAPI startup.
    Idempotent: a second call returns the task already running.
    """
    global _task
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return None
    if _task is not None and not _task.done():
        return _task
    _task = loop.create_task(_loop_daily(), name="invitation-cleanup")
    return _task


def stop_invitation_cleanup_loop() -> None:
    global _task
    if _task is not None:
        _task.cancel()
        _task = None
