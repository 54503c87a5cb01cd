import json
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from peer_review.api.server import create_app
from peer_review.core.app import SyncApp
from peer_review.core.config import Config
from peer_review.core.db import Database
from peer_review.platform_state.client import PlatformSyncClient
from peer_review.platform_state.errors import ConnectionFailed
from peer_review.platform_state.store import SnapshotStore
from peer_review.platform_state.transport import Transport, TransportResponse


class FakeTransport(Transport):
    """
    Records requests and replays canned responses per (method, path).
    The last response queued for a route keeps being returned.
    """

    def __init__(self):
        self.requests: List[Tuple[str, str, Any]] = []
        self.routes: Dict[Tuple[str, str], List[Any]] = {}

    def add(self, method: str, path: str, status: int = 200, body: Any = None, raw: Optional[str] = None) -> None:
        text = raw if raw is not None else (json.dumps(body) if body is not None else "")
        self.routes.setdefault((method, path), []).append(TransportResponse(status, text))

    def fail(self, method: str, path: str) -> None:
        self.routes.setdefault((method, path), []).append(ConnectionFailed())

    def request(self, method: str, path: str, json: Optional[Any] = None) -> TransportResponse:
        self.requests.append((method, path, json))
        queue = self.routes.get((method, path))
        if not queue:
            raise AssertionError(f"Unexpected request: {method} {path}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def paths(self) -> List[Tuple[str, str]]:
        return [(method, path) for method, path, _ in self.requests]


def server_payload() -> Dict[str, Any]:
    """A state payload shaped like the backend's, with numeric ids."""
    return {
        "projects": [
            {
                "id": 1,
                "title": "Weather Station",
                "author": "Alex Johnson",
                "description": "IoT sensors",
                "status": "PENDING_REVIEW",
                "submittedAt": "2025-03-01",
                "rating": None,
                "finalScore": None,
                "completionPercentage": None,
                "files": [{"name": "report.pdf", "size": 2048}, {"name": "code.zip", "size": 4096}],
            },
            {
                "id": 2,
                "title": "Chat App",
                "author": "Jamie Lee",
                "status": "APPROVED",
                "submittedAt": "2025-03-02",
                "rating": 4.5,
                "finalScore": 92,
                "completionPercentage": 100,
                "files": [],
            },
        ],
        "reviews": [
            {"id": 10, "projectId": 1, "reviewer": "Jordan Smith", "rating": 4,
             "comment": "Solid work", "date": "2025-03-03"},
            {"id": 11, "projectId": 2, "reviewer": "Morgan Taylor", "rating": 5,
             "comment": "Great", "date": "2025-03-04"},
        ],
        "assignments": {"1": ["Jordan Smith"]},
        "teacherDecisions": {
            "2": {"action": "approve", "comment": "Well done", "finalScore": 92,
                  "completionPercentage": 100, "submittedAt": "2025-03-05"},
        },
        "reviewReplies": {"10": [{"id": 100, "text": "Thanks!", "author": "Alex Johnson", "date": "2025-03-04"}]},
        "notifications": [
            {"id": 1, "type": "review", "message": "New review", "time": "1 hour ago", "read": False},
            {"id": 2, "type": "teacher", "message": "Approved", "time": "2 hours ago", "read": True},
        ],
        "activityTimeline": [
            {"id": 50, "action": "Project uploaded", "detail": "Alex Johnson uploaded Weather Station",
             "time": "2025-03-01", "icon": "upload", "projectId": 1, "projectTitle": "Weather Station",
             "studentName": "Alex Johnson", "actorName": "Alex Johnson", "actorRole": "student",
             "actionType": "project_uploaded"},
            {"id": 51, "action": "Teacher decision", "detail": "Approved", "time": "2025-03-05",
             "icon": "check", "projectId": 2, "actionType": "teacher_decision"},
        ],
    }


@pytest.fixture()
def database():
    db = Database("sqlite://")
    db.create_all()
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture()
def store(database):
    return SnapshotStore(database)


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def client(transport, store):
    return PlatformSyncClient(transport, store)


@pytest.fixture()
def payload():
    return server_payload()


@pytest.fixture()
def config(tmp_path):
    cfg = Config(config_path=str(tmp_path / "config.yaml"), watch=False)
    cfg.data["logging"]["file"] = str(tmp_path / "peer_review.log")
    return cfg


@pytest.fixture()
def sync_app(config, transport, database):
    app = SyncApp(
        config=config,
        transport=transport,
        database=database,
        configure_logging=False,
    )
    try:
        yield app
    finally:
        app.task_manager.stop()


@pytest.fixture()
def api_client(sync_app):
    with TestClient(create_app(sync_app)) as c:
        yield c
