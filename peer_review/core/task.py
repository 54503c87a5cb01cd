"""
Abstract BaseTask with next_run persistence in DB.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from queue import Queue
from typing import Any, Optional

from sqlalchemy import select

from peer_review.core.db import Database
from peer_review.core.models import TaskSchedule

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 300


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def compute_next_run(interval_seconds: int, last_run: Optional[datetime] = None) -> datetime:
    """Next run is last_run plus the interval (now when last_run is unknown)."""
    if last_run is None:
        last_run = _utc_now()
    return last_run + timedelta(seconds=max(1, int(interval_seconds)))


def get_next_run_from_db(database: Database, task_name: str) -> Optional[datetime]:
    """Read next_run_at for a task. Returns None if no row or next_run_at is null (task will run immediately)."""
    try:
        with database.session_scope() as session:
            row = session.execute(
                select(TaskSchedule).where(TaskSchedule.task_name == task_name)
            ).scalars().first()
            if row and row.next_run_at is not None:
                return row.next_run_at
    except Exception as e:
        logger.debug(f"get_next_run_from_db {task_name}: {e}")
    return None


def upsert_task_schedule(
    database: Database,
    task_name: str,
    interval_seconds: int,
    next_run_at: Optional[datetime] = None,
) -> None:
    """Create or update TaskSchedule row. An existing row keeps its next_run_at unless one is given."""
    with database.session_scope() as session:
        row = session.execute(
            select(TaskSchedule).where(TaskSchedule.task_name == task_name)
        ).scalars().first()
        now = _utc_now()
        if row:
            row.interval_seconds = interval_seconds
            if next_run_at is not None:
                row.next_run_at = next_run_at
            row.updated_at = now
        else:
            session.add(TaskSchedule(
                task_name=task_name,
                interval_seconds=interval_seconds,
                next_run_at=next_run_at,
                created_at=now,
                updated_at=now,
            ))


def update_after_run(database: Database, task_name: str, error: Optional[str] = None) -> None:
    """Record last_run_at, last_error and the following next_run_at after a run."""
    with database.session_scope() as session:
        row = session.execute(
            select(TaskSchedule).where(TaskSchedule.task_name == task_name)
        ).scalars().first()
        if not row:
            return
        now = _utc_now()
        row.last_run_at = now
        row.last_error = error
        row.next_run_at = compute_next_run(row.interval_seconds, now)
        row.updated_at = now


class BaseTask(ABC):
    """
    Abstract base for background tasks. Subclasses implement run();
    base helps with get_next_run and persisting next_run in DB.
    """

    def __init__(self, task_name: str, database: Database, interval_seconds: int = DEFAULT_INTERVAL_SECONDS):
        self.task_name = task_name
        self.database = database
        self.interval_seconds = int(interval_seconds)
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_next_run(self, last_run: Optional[datetime] = None) -> datetime:
        return compute_next_run(self.interval_seconds, last_run)

    def ensure_scheduled(self, next_run_at: Optional[datetime] = None) -> None:
        """Ensure TaskSchedule row exists so next run survives restarts."""
        upsert_task_schedule(self.database, self.task_name, self.interval_seconds, next_run_at=next_run_at)

    @abstractmethod
    def run(self, result_queue: Queue, **kwargs: Any) -> None:
        """
        Execute the task. Subclass should: do work, then call update_after_run(...), then result_queue.put((task_name, result)).
        """
        pass
