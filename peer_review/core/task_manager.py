"""
Single place for scheduling: in-memory timers and DB-backed registered tasks.
"""
import logging
from datetime import datetime, timezone
from queue import Queue
from threading import Timer
from typing import Any, Callable, Dict, List

from peer_review.core.db import Database
from peer_review.core.task import get_next_run_from_db


class TaskManager:
    def __init__(self, database: Database):
        self.database = database
        self.tasks: Dict[str, Timer] = {}
        self.result_queue: Queue = Queue()
        self.logger = logging.getLogger("TaskManager")
        self._registered_tasks: Dict[str, Callable[..., None]] = {}
        self._stopped = False

    def schedule_task(self, name: str, callback: Callable, delay: float, one_time: bool = True) -> None:
        """Schedule a task to run after delay seconds."""
        if self._stopped:
            self.logger.debug(f"TaskManager stopped; not scheduling {name}")
            return
        self.logger.info(f"Scheduling task {name} with delay {delay} seconds")
        if name in self.tasks:
            self.logger.info(f"Cancelling existing task {name}")
            self.tasks[name].cancel()

        scheduled_time = datetime.now(timezone.utc).timestamp() + delay
        timer = Timer(delay, self._run_task, args=(name, callback, delay, one_time))
        timer.daemon = True
        timer.scheduled_time = scheduled_time

        self.tasks[name] = timer
        timer.start()

    def _run_task(self, name: str, callback: Callable, delay: float, one_time: bool) -> None:
        """Run the task and reschedule if needed."""
        try:
            callback()
        except Exception as e:
            self.logger.error(f"Error running task {name}: {e}")
        if not one_time:
            self.schedule_task(name, callback, delay, one_time)

    def register_task(self, task_name: str, runnable: Callable[..., None]) -> None:
        """Register a runnable. runnable(result_queue) does the work and updates next_run in DB."""
        self._registered_tasks[task_name] = runnable
        self.logger.debug(f"Registered task: {task_name}")

    def schedule_registered_task(self, task_name: str) -> None:
        """
        Schedule a registered task: run at next_run from DB (or immediately if past due).
        After running, the runnable updates next_run in DB; we reschedule again for the new next_run.
        """
        if task_name not in self._registered_tasks:
            self.logger.warning(f"No task registered: {task_name}")
            return
        next_run = get_next_run_from_db(self.database, task_name)
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        if next_run is None:
            delay = 0
        else:
            delay = max(0, int((next_run - now).total_seconds()))
        self.schedule_task(task_name, lambda: self._run_registered_and_reschedule(task_name), delay)

    def _run_registered_and_reschedule(self, task_name: str) -> None:
        self.run_task_now(task_name)
        self.schedule_registered_task(task_name)

    def run_task_now(self, task_name: str) -> None:
        """Run a registered task once immediately (e.g. manual refresh). Puts result on result_queue."""
        runnable = self._registered_tasks.get(task_name)
        if not runnable:
            self.logger.warning(f"No task registered: {task_name}")
            return
        try:
            runnable(self.result_queue)
        except Exception as e:
            self.logger.exception(f"Run task now {task_name} failed: {e}")

    def get_active_timers(self) -> List[Dict[str, Any]]:
        """Return list of active timer names and their next run time (for API)."""
        result = []
        for name, timer in self.tasks.items():
            if timer.is_alive() and getattr(timer, "scheduled_time", None) is not None:
                next_run = datetime.fromtimestamp(timer.scheduled_time, tz=timezone.utc)
                result.append({"name": name, "next_run_at": next_run})
        return result

    def stop(self) -> None:
        """Stop all scheduled tasks."""
        self._stopped = True
        for task in self.tasks.values():
            task.cancel()
        self.tasks.clear()
