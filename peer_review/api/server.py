"""
FastAPI server over the sync app. Run with run_api_server(app) in a background thread.
Central endpoint: GET /api/tasks. Platform state routes come from
peer_review.platform_state.api (get_router(sync_app)) under /api/.
Docs when enabled: http://<host>:<port>/docs
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI

from peer_review.core.models import get_all_task_schedules
from peer_review.platform_state.api import get_router

logger = logging.getLogger(__name__)


def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO string (UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def create_app(sync_app: Any) -> FastAPI:
    """Create FastAPI app with routes that use the given SyncApp instance."""
    app = FastAPI(title="Peer Review Sync API", description="Platform state snapshot, sync actions and tasks")

    @app.get("/api/tasks")
    def list_tasks() -> Dict[str, Any]:
        """List scheduled tasks: DB schedules and active in-memory timers."""
        db_schedules = get_all_task_schedules(sync_app.database)
        for row in db_schedules:
            row["next_run_at"] = _serialize_datetime(row.get("next_run_at"))
            row["last_run_at"] = _serialize_datetime(row.get("last_run_at"))

        active_list = [
            {"name": t["name"], "next_run_at": _serialize_datetime(t["next_run_at"])}
            for t in sync_app.task_manager.get_active_timers()
        ]
        return {"db_schedules": db_schedules, "active_timers": active_list}

    @app.get("/api/health")
    def health() -> Dict[str, Any]:
        saved_at = sync_app.store.last_saved_at()
        return {"status": "ok", "snapshot_saved_at": _serialize_datetime(saved_at)}

    app.include_router(get_router(sync_app), prefix="/api")
    return app


def run_api_server(sync_app: Any) -> Optional[threading.Thread]:
    """
    Start the API server in a daemon thread if api.enabled is true.
    Reads api.host (default 127.0.0.1) and api.port (default 8765) from config.
    """
    api_config = sync_app.config.data.get("api") or {}
    if not api_config.get("enabled", False):
        logger.info("API server not started: set api.enabled to true in your config file to enable.")
        return None
    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 8765))
    fastapi_app = create_app(sync_app)

    def run_uvicorn():
        try:
            import uvicorn
            logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
            uvicorn.run(fastapi_app, host=host, port=port)
        except Exception as e:
            logger.exception(f"API server thread failed: {e}")

    thread = threading.Thread(target=run_uvicorn, daemon=True)
    thread.start()
    logger.info("API server thread started.")
    return thread
