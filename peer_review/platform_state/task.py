"""
Background task: refresh platform state, fall back to the cached snapshot, persist next_run in DB.
"""
import logging
import threading
from typing import Any, Callable, Optional

from peer_review.core.db import Database
from peer_review.core.task import BaseTask, DEFAULT_INTERVAL_SECONDS, update_after_run

from .client import PlatformSyncClient
from .errors import SyncError
from .models import PlatformState

TASK_NAME = "platform_refresh"


class PlatformRefreshTask(BaseTask):
    """Refresh from the backend; on failure put the cached snapshot on the queue instead."""

    def __init__(
        self,
        client: PlatformSyncClient,
        database: Database,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        task_name: str = TASK_NAME,
    ):
        super().__init__(task_name, database, interval_seconds)
        self.client = client

    def run(self, result_queue: Any, **kwargs: Any) -> None:
        error = None
        try:
            state = self.client.refresh_state()
        except SyncError as e:
            error = str(e)
            self.logger.warning(f"Platform refresh failed, serving cached snapshot: {e}")
            state = self.client.cached_state()
        update_after_run(self.database, self.task_name, error=error)
        result_queue.put((self.task_name, state))


class RefreshSubscription:
    """
    A consumer's interest in the next refresh result. Once cancelled, late results are
    dropped; the request already in flight is not aborted.
    """

    def __init__(self, callback: Callable[[PlatformState], None]):
        self._callback = callback
        self._lock = threading.Lock()
        self.active = True
        self.logger = logging.getLogger(self.__class__.__name__)

    def cancel(self) -> None:
        with self._lock:
            self.active = False

    def deliver(self, state: PlatformState) -> bool:
        """Hand state to the consumer if still active. Returns whether it was delivered."""
        with self._lock:
            if not self.active:
                self.logger.debug("Dropping refresh result for inactive subscriber")
                return False
        self._callback(state)
        return True


def refresh_in_background(
    client: PlatformSyncClient,
    subscription: RefreshSubscription,
    on_error: Optional[Callable[[SyncError], None]] = None,
) -> threading.Thread:
    """Refresh on a daemon thread (cached snapshot on failure) and deliver to subscription."""
    def run():
        try:
            state = client.refresh_state()
        except SyncError as e:
            if on_error is not None:
                on_error(e)
            state = client.cached_state()
        subscription.deliver(state)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread
