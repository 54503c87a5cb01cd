from typing import Any, Dict, List, Optional
import logging
import sys
import threading
from pathlib import Path
from queue import Empty

from .config import DEFAULT_BASE_URL, Config
from .db import Database
from .task_manager import TaskManager
from peer_review.platform_state.client import PlatformSyncClient, SyncResult
from peer_review.platform_state.models import PlatformState
from peer_review.platform_state.store import DEFAULT_SNAPSHOT_KEY, SnapshotStore
from peer_review.platform_state.task import PlatformRefreshTask, RefreshSubscription, refresh_in_background
from peer_review.platform_state.transport import DEFAULT_TIMEOUT, HttpTransport, Transport

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'


class SyncApp:
    """
    Composition root: config, logging, database, snapshot store, transport, sync client,
    background refresh and (optionally) the local API server.
    Owns the single live PlatformState; it is only ever replaced as a whole.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        config: Optional[Config] = None,
        transport: Optional[Transport] = None,
        database: Optional[Database] = None,
        watch_config: bool = True,
        configure_logging: bool = True,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)

        self.config = config or Config(config_path=config_path, watch=watch_config)
        self.config.register_change_callback(self.handle_config_change)

        if configure_logging:
            self._setup_logging()

        # Initialize database (before managers so tables exist)
        self.database = database or Database.from_config(self.config.data)
        self.database.create_all()

        self.store = SnapshotStore(
            self.database, key=self.config.get("snapshot", "key", DEFAULT_SNAPSHOT_KEY)
        )
        self._owns_transport = transport is None
        self.transport = transport or self._build_transport(self.config.data)
        self.client = PlatformSyncClient(self.transport, self.store)

        self.task_manager = TaskManager(self.database)
        self.refresh_task = PlatformRefreshTask(
            self.client,
            self.database,
            interval_seconds=int(self.config.get("sync", "refresh_interval", 300)),
        )

        self._state_lock = threading.Lock()
        self._subscribers: List[RefreshSubscription] = []
        self._stop_event = threading.Event()
        # Newest background refresh; starting another cancels it so a stale result never lands
        self.pending_refresh: Optional[RefreshSubscription] = None
        # Last saved snapshot, so there is something to show before the first refresh lands
        self._state: PlatformState = self.client.cached_state()

    def _build_transport(self, config_data: Dict[str, Any]) -> HttpTransport:
        backend = config_data.get("backend") or {}
        return HttpTransport(
            backend.get("base_url") or DEFAULT_BASE_URL,
            timeout=float(backend.get("timeout", DEFAULT_TIMEOUT)),
        )

    def _setup_logging(self) -> None:
        """Configure logging to write to both file and stdout"""
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, str(self.config.data["logging"].get("level", "INFO")).upper(), logging.INFO))
        formatter = logging.Formatter(LOG_FORMAT)

        for handler in list(root_logger.handlers):
            if getattr(handler, "_peer_review", False):
                root_logger.removeHandler(handler)
                handler.close()

        log_file = self.config.data["logging"].get("file")
        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            file_handler._peer_review = True
            root_logger.addHandler(file_handler)

        if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
                   for h in root_logger.handlers):
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            console_handler._peer_review = True
            root_logger.addHandler(console_handler)

        logging.info("Peer review sync starting...")

    # State

    @property
    def state(self) -> PlatformState:
        with self._state_lock:
            return self._state

    def apply_state(self, state: PlatformState) -> None:
        """Swap in a new snapshot and hand it to active subscribers."""
        with self._state_lock:
            self._state = state
            self._subscribers = [s for s in self._subscribers if s.active]
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            try:
                subscription.deliver(state)
            except Exception as e:
                self.logger.error(f"Error in state subscriber: {e}", exc_info=True)

    def subscribe(self, callback) -> RefreshSubscription:
        subscription = RefreshSubscription(callback)
        with self._state_lock:
            self._subscribers.append(subscription)
        return subscription

    def refresh(self) -> PlatformState:
        """Refresh from the backend (cached snapshot when unreachable) and apply it."""
        state = self.client.load_state()
        self.apply_state(state)
        return state

    def refresh_async(self) -> threading.Thread:
        """Refresh on a background thread and apply the result (cached snapshot on failure)."""
        subscription = RefreshSubscription(self.apply_state)
        with self._state_lock:
            previous, self.pending_refresh = self.pending_refresh, subscription
        if previous is not None:
            previous.cancel()
        return refresh_in_background(
            self.client,
            subscription,
            on_error=lambda e: self.logger.warning(f"Background refresh failed, using cached snapshot: {e}"),
        )

    def apply_result(self, result: SyncResult) -> SyncResult:
        """Adopt the state reloaded by a successful mutation."""
        if result.success and result.state is not None:
            self.apply_state(result.state)
        return result

    # Background work

    def drain_results(self) -> int:
        """Apply background task results waiting on the queue. Returns how many were applied."""
        applied = 0
        while True:
            try:
                task_name, result = self.task_manager.result_queue.get_nowait()
            except Empty:
                return applied
            if self._handle_result(task_name, result):
                applied += 1

    def _handle_result(self, task_name: str, result: Any) -> bool:
        self.logger.debug(f"Processing task result for {task_name}")
        if not isinstance(result, PlatformState):
            return False
        self.apply_state(result)
        return True

    def start(self) -> None:
        """Schedule background refresh and start the API server if enabled."""
        self.refresh_task.ensure_scheduled()
        self.task_manager.register_task(self.refresh_task.task_name, self.refresh_task.run)
        self.task_manager.schedule_registered_task(self.refresh_task.task_name)

        try:
            from peer_review.api.server import run_api_server
            run_api_server(self)
        except ImportError as e:
            self.logger.warning(f"API server not started: {e}")

    def run(self) -> None:
        """Start, then apply background results until stop() is called."""
        self.start()
        try:
            while not self._stop_event.is_set():
                try:
                    task_name, result = self.task_manager.result_queue.get(timeout=1.0)
                except Empty:
                    continue
                self._handle_result(task_name, result)
        finally:
            self.stop()

    def stop(self) -> None:
        self._stop_event.set()
        if self.pending_refresh is not None:
            self.pending_refresh.cancel()
        self.task_manager.stop()
        self.config.cleanup()
        if self._owns_transport and isinstance(self.transport, HttpTransport):
            self.transport.close()

    def handle_config_change(self, new_config: Dict[str, Any]) -> None:
        """Handle configuration changes"""
        try:
            if self._owns_transport:
                backend = new_config.get("backend") or {}
                if (backend.get("base_url") != getattr(self.transport, "base_url", None)
                        or float(backend.get("timeout", DEFAULT_TIMEOUT)) != getattr(self.transport, "timeout", None)):
                    self.logger.info(f"Backend changed, reconnecting to {backend.get('base_url')}")
                    old_transport = self.transport
                    self.transport = self._build_transport(new_config)
                    self.client.transport = self.transport
                    if isinstance(old_transport, HttpTransport):
                        old_transport.close()
                    self.refresh_async()

            interval = int((new_config.get("sync") or {}).get("refresh_interval", self.refresh_task.interval_seconds))
            if interval != self.refresh_task.interval_seconds:
                self.logger.info(f"Refresh interval changed to {interval}s")
                self.refresh_task.interval_seconds = interval
                self.refresh_task.ensure_scheduled(next_run_at=self.refresh_task.get_next_run())
                if self.refresh_task.task_name in self.task_manager.tasks:
                    self.task_manager.schedule_registered_task(self.refresh_task.task_name)
        except (TypeError, ValueError) as e:
            self.logger.error(f"Error handling config change: {e}", exc_info=True)
