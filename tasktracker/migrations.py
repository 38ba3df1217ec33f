# tasktracker/migrations.py
"""One-off data migrations for tasks created before status, start time
and task numbers existed.

Usage: ``python -m tasktracker.migrations {backfill-status,backfill-start-time,renumber-tasks}``
"""

import argparse
import logging
from datetime import timedelta

from sqlalchemy import func, update
from sqlmodel import Session, select

from tasktracker import dates
from tasktracker.config import Settings
from tasktracker.database import Database
from tasktracker.models import Counter, Task, TaskStatus
from tasktracker.store import TASK_COUNTER

logger = logging.getLogger(__name__)


def backfill_status(session: Session) -> int:
    """Give every task without a status the Pending status."""
    result = session.connection().execute(
        update(Task).where(Task.status.is_(None)).values(status=TaskStatus.pending)
    )
    session.commit()
    count = result.rowcount or 0
    logger.info("Backfilled status on %d task(s)", count)
    return count


def backfill_start_time(session: Session) -> int:
    """Derive a start time for tasks that have none.

    Pending stays empty, In Progress starts today, and Completed/Expired are
    estimated as the day after creation.
    """
    tasks = session.exec(select(Task).where(Task.start_time.is_(None))).all()
    changed = 0
    for task in tasks:
        if task.status == TaskStatus.in_progress:
            task.start_time = dates.fixed_now()
        elif task.status in (TaskStatus.completed, TaskStatus.expired):
            task.start_time = dates.fixed_date(task.created_at + timedelta(days=1))
        else:
            continue
        session.add(task)
        changed += 1
    session.commit()
    logger.info("Backfilled start_time on %d of %d task(s)", changed, len(tasks))
    return changed


def renumber_tasks(session: Session) -> int:
    """Number unnumbered tasks in creation order and sync the task counter."""
    highest = session.exec(select(func.max(Task.task_number))).one() or 0
    tasks = session.exec(
        select(Task).where(Task.task_number.is_(None)).order_by(Task.created_at, Task.id)
    ).all()
    for task in tasks:
        highest += 1
        task.task_number = highest
        session.add(task)

    counter = session.exec(select(Counter).where(Counter.name == TASK_COUNTER)).first()
    if counter is None:
        counter = Counter(name=TASK_COUNTER)
    counter.value = highest
    session.add(counter)
    session.commit()
    logger.info("Assigned numbers to %d task(s); counter now %d", len(tasks), highest)
    return len(tasks)


MIGRATIONS = {
    "backfill-status": backfill_status,
    "backfill-start-time": backfill_start_time,
    "renumber-tasks": renumber_tasks,
}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("migration", choices=sorted(MIGRATIONS))
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    database = Database(Settings.from_env())
    database.create_db_and_tables()
    with database.session() as session:
        MIGRATIONS[args.migration](session)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
