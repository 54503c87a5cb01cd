"""
Remote sync facade: every UI action goes through here.

Each mutation sends one request and, once the backend confirms it, reloads the whole
platform state (invalidate_and_reload) and saves it locally. Mutations never raise;
failures come back as SyncResult.error. Only refresh_state() and the fetch_* helpers raise,
and callers fall back to cached_state() (or use load_state(), which does that for them).
"""
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel

from .errors import CANNOT_CONNECT_MESSAGE, ConnectionFailed, HttpStatusError, MalformedPayload, SyncError
from .models import Notification, PlatformState, Project, Reply, Review
from .normalizer import normalize_platform_state, normalize_project, normalize_review
from .store import SnapshotStore
from .transport import Transport, TransportResponse
from .validation import (
    validate_assignment,
    validate_decision,
    validate_reply,
    validate_review,
    validate_upload,
)

STATE_PATH = "/platform/state"

REFRESH_FAILED_MESSAGE = "Failed to load platform state from backend"
UPLOAD_REFRESH_WARNING = "Project created, but dashboard refresh failed. Please reload the page."
REFRESH_WARNING = "Saved, but dashboard refresh failed. Please reload the page."


class SyncResult(BaseModel):
    """Outcome of a mutation: success with optional payloads, or an error message."""

    success: bool = False
    error: Optional[str] = None
    warning: Optional[str] = None
    project: Optional[Project] = None
    review: Optional[Review] = None
    state: Optional[PlatformState] = None

    @classmethod
    def failure(cls, message: str) -> "SyncResult":
        return cls(success=False, error=message)

    @classmethod
    def ok(cls, **kwargs: Any) -> "SyncResult":
        return cls(success=True, **kwargs)


def error_message(response: TransportResponse, fallback: str) -> str:
    """Server-provided message from a JSON error body, else the fallback."""
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, Mapping):
        for key in ("error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return fallback


def _file_fields(item: Any) -> dict:
    """Name and size only; file contents are never sent."""
    if isinstance(item, str):
        return {"name": item, "size": 0}
    if isinstance(item, Mapping):
        return {"name": item.get("name"), "size": item.get("size")}
    return {"name": getattr(item, "name", None), "size": getattr(item, "size", None)}


class PlatformSyncClient:
    def __init__(self, transport: Transport, store: SnapshotStore):
        self.transport = transport
        self.store = store
        self.logger = logging.getLogger(self.__class__.__name__)

    # Reads

    def cached_state(self) -> PlatformState:
        """Last saved snapshot (no network)."""
        return self.store.load()

    def refresh_state(self) -> PlatformState:
        """GET the full state, normalize, save, return. Raises SyncError subclasses."""
        response = self.transport.request("GET", STATE_PATH)
        if not response.ok:
            raise HttpStatusError(error_message(response, REFRESH_FAILED_MESSAGE), response.status_code)
        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedPayload("backend returned a body that is not JSON", "state") from e
        state = normalize_platform_state(payload)
        self.store.save(state)
        self.logger.info(
            f"Platform state refreshed: {len(state.projects)} project(s), {len(state.reviews)} review(s)"
        )
        return state

    def invalidate_and_reload(self) -> PlatformState:
        """Drop whatever the client knows and reload everything from the backend."""
        return self.refresh_state()

    def load_state(self) -> PlatformState:
        """Fresh state when the backend answers, otherwise the cached snapshot."""
        try:
            return self.refresh_state()
        except SyncError as e:
            self.logger.warning(f"Refresh failed, using cached snapshot: {e}")
            return self.cached_state()

    def fetch_projects(self) -> List[Project]:
        return self.refresh_state().projects

    def fetch_project_reviews(self, project_id: Any) -> List[Review]:
        wanted = str(project_id)
        return [r for r in self.refresh_state().reviews if r.project_id == wanted]

    # Mutations

    def _send(self, method: str, path: str, body: Optional[Any], fallback: str):
        """(response, None) on success, (None, message) on failure."""
        try:
            response = self.transport.request(method, path, json=body)
        except ConnectionFailed as e:
            self.logger.error(f"{method} {path} failed: {e}")
            return None, CANNOT_CONNECT_MESSAGE
        if not response.ok:
            message = error_message(response, fallback)
            self.logger.warning(f"{method} {path} rejected ({response.status_code}): {message}")
            return None, message
        return response, None

    def _reload_after(self, warning: str) -> dict:
        """Reload after a confirmed mutation; a failed reload becomes a warning."""
        try:
            return {"state": self.invalidate_and_reload()}
        except SyncError as e:
            self.logger.warning(f"Reload after mutation failed: {e}")
            return {"warning": warning}

    def upload_project(
        self,
        title: Any,
        description: Any = "",
        author: Any = "Student",
        files: Optional[Iterable[Any]] = None,
    ) -> SyncResult:
        files = [_file_fields(item) for item in files or []]
        author = str(author or "Student").strip()
        error = validate_upload(title, author, files)
        if error:
            return SyncResult.failure(error)
        body = {
            "title": str(title).strip(),
            "description": str(description or "").strip(),
            "author": author,
            "files": [
                {"name": str(f["name"]).strip(), "size": int(float(f["size"] or 0))} for f in files
            ],
        }
        response, error = self._send("POST", "/projects", body, "Failed to upload project")
        if error:
            return SyncResult.failure(error)

        project = None
        try:
            project = normalize_project(response.json(), "project")
        except ValueError as e:
            self.logger.warning(f"Created project could not be read: {e}")
        return SyncResult.ok(project=project, **self._reload_after(UPLOAD_REFRESH_WARNING))

    def submit_review(self, project_id: Any, reviewer: Any, rating: Any, comment: Any) -> SyncResult:
        error = validate_review(reviewer, rating, comment)
        if error:
            return SyncResult.failure(error)
        body = {
            "reviewer": str(reviewer).strip(),
            "rating": int(float(rating)),
            "comment": str(comment).strip(),
        }
        response, error = self._send(
            "POST", f"/projects/{project_id}/reviews", body, "Failed to submit review"
        )
        if error:
            return SyncResult.failure(error)

        review = None
        try:
            review = normalize_review(response.json(), "review")
        except ValueError as e:
            self.logger.warning(f"Created review could not be read: {e}")
        return SyncResult.ok(review=review, **self._reload_after(REFRESH_WARNING))

    def set_assignment(self, project_id: Any, reviewers: List[str]) -> SyncResult:
        error = validate_assignment(reviewers)
        if error:
            return SyncResult.failure(error)
        body = {"reviewers": [str(name).strip() for name in reviewers]}
        _, error = self._send(
            "POST", f"/projects/{project_id}/assign-reviewers", body, "Failed to save reviewer assignment"
        )
        if error:
            return SyncResult.failure(error)
        return SyncResult.ok(**self._reload_after(REFRESH_WARNING))

    def save_teacher_decision(self, project_id: Any, decision: Mapping) -> SyncResult:
        error = validate_decision(decision)
        if error:
            return SyncResult.failure(error)
        submitted_at = decision.get("submittedAt") or datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = {
            "action": str(decision["action"]).strip().lower(),
            "comment": str(decision["comment"]).strip(),
            "finalScore": int(float(decision["finalScore"])),
            "completionPercentage": int(float(decision["completionPercentage"])),
            "submittedAt": submitted_at,
            "teacherName": str(decision.get("teacherName") or "Teacher").strip(),
        }
        _, error = self._send(
            "POST", f"/projects/{project_id}/feedback", body, "Failed to save teacher decision"
        )
        if error:
            return SyncResult.failure(error)
        return SyncResult.ok(**self._reload_after(REFRESH_WARNING))

    def add_review_reply(self, review_id: Any, text: Any, author: Any) -> SyncResult:
        error = validate_reply(text, author)
        if error:
            return SyncResult.failure(error)
        body = {"text": str(text).strip(), "author": str(author).strip()}
        _, error = self._send("POST", f"/reviews/{review_id}/replies", body, "Failed to add reply")
        if error:
            return SyncResult.failure(error)
        return SyncResult.ok(**self._reload_after(REFRESH_WARNING))

    def mark_notification_read(self, notification_id: Any) -> SyncResult:
        _, error = self._send(
            "PATCH", f"/notifications/{notification_id}/read", None, "Failed to mark notification as read"
        )
        if error:
            return SyncResult.failure(error)
        return SyncResult.ok(**self._reload_after(REFRESH_WARNING))

    # Derived views

    def projects_for_reviewer(self, reviewer_name: str, state: Optional[PlatformState] = None) -> List[Project]:
        """Projects assigned to reviewer; with no assignments, every project they did not author."""
        state = state or self.cached_state()
        assigned = {
            project_id
            for project_id, reviewers in state.assignments.items()
            if reviewer_name in reviewers
        }
        if assigned:
            return [p for p in state.projects if p.id in assigned]
        return [p for p in state.projects if p.author != reviewer_name]

    def unread_notifications(self, state: Optional[PlatformState] = None) -> List[Notification]:
        state = state or self.cached_state()
        return [n for n in state.notifications if not n.read]

    def review_replies_for(self, review_id: Any, state: Optional[PlatformState] = None) -> List[Reply]:
        state = state or self.cached_state()
        return list(state.review_replies.get(str(review_id), []))
