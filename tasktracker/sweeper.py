# tasktracker/sweeper.py
"""Expiry sweep: flips tasks whose deadline has passed to Expired.

The sweep is advisory maintenance. It never raises to its caller; failures
are logged and reported as zero tasks changed.
"""

import asyncio
import contextlib
import logging
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from tasktracker.dates import expiry_boundary
from tasktracker.models import Task, TaskStatus

logger = logging.getLogger(__name__)


def sweep_expired(session: Session, owner_id: Optional[int] = None) -> int:
    """Mark every overdue, non-Expired task as Expired in one bulk update.

    Scoped to ``owner_id`` when given, otherwise covers all users. Returns
    the number of tasks transitioned.
    """
    statement = (
        update(Task)
        .where(Task.deadline < expiry_boundary(), Task.status != TaskStatus.expired)
        .values(status=TaskStatus.expired)
    )
    if owner_id is not None:
        statement = statement.where(Task.owner_id == owner_id)

    try:
        result = session.connection().execute(statement)
        session.commit()
    except Exception:
        logger.exception("Error updating expired tasks (owner=%s)", owner_id)
        with contextlib.suppress(Exception):
            session.rollback()
        return 0

    count = result.rowcount or 0
    if count:
        logger.info("Expired %d task(s) (owner=%s)", count, owner_id if owner_id is not None else "all")
    return count


class ExpirySweeper:
    """Runs the all-users sweep on a fixed interval in the background."""

    def __init__(self, database, interval: float) -> None:
        self._database = database
        self._interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        with self._database.session() as session:
            return sweep_expired(session)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await asyncio.to_thread(self.run_once)
            except Exception:
                logger.exception("Scheduled expiry sweep failed")

    def start(self) -> None:
        """Schedule the loop on the running event loop. No-op when interval is 0."""
        if self._interval <= 0 or self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Expiry sweeper started (every %ss)", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Expiry sweeper stopped")
