"""
Platform state API. Mounted at /api/.
Reads come from the app's live snapshot; writes go through the sync client and
return its SyncResult (400 with the error message when it fails).
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .client import SyncResult
from .errors import SyncError


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileMeta(RequestModel):
    name: str = ""
    size: float = 0


class UploadRequest(RequestModel):
    title: str = ""
    description: str = ""
    author: str = "Student"
    files: List[FileMeta] = Field(default_factory=list)


class ReviewRequest(RequestModel):
    reviewer: str = ""
    rating: Any = None
    comment: str = ""


class AssignmentRequest(RequestModel):
    reviewers: List[str] = Field(default_factory=list)


class DecisionRequest(RequestModel):
    action: str = ""
    comment: str = ""
    final_score: Any = None
    completion_percentage: Any = None
    submitted_at: Optional[str] = None
    teacher_name: Optional[str] = None


class ReplyRequest(RequestModel):
    text: str = ""
    author: str = ""


def _respond(sync_app, result: SyncResult) -> JSONResponse:
    sync_app.apply_result(result)
    body = result.model_dump(by_alias=True, mode="json", exclude={"state"}, exclude_none=True)
    return JSONResponse(status_code=200 if result.success else 400, content=body)


def get_router(sync_app) -> APIRouter:
    """Return router for platform state; mounted with prefix /api."""
    router = APIRouter(tags=["Platform State"])
    client = sync_app.client

    @router.get("/state")
    def get_state() -> Dict[str, Any]:
        """Live snapshot (last applied state)."""
        return sync_app.state.to_payload()

    @router.post("/state/refresh")
    def refresh_state():
        """Refresh from the backend; 502 with the cached snapshot when that fails."""
        try:
            state = client.refresh_state()
        except SyncError as e:
            state = client.cached_state()
            sync_app.apply_state(state)
            return JSONResponse(
                status_code=502,
                content={"error": str(e), "fallback": True, "state": state.to_payload()},
            )
        sync_app.apply_state(state)
        return {"fallback": False, "state": state.to_payload()}

    @router.get("/projects")
    def list_projects() -> List[Dict[str, Any]]:
        return [p.model_dump(by_alias=True, mode="json") for p in sync_app.state.projects]

    @router.get("/projects/{project_id}")
    def get_project(project_id: str):
        project = sync_app.state.get_project(project_id)
        if project is None:
            return JSONResponse(status_code=404, content={"error": f"Project {project_id} not found"})
        return project.model_dump(by_alias=True, mode="json")

    @router.get("/projects/{project_id}/reviews")
    def list_project_reviews(project_id: str) -> List[Dict[str, Any]]:
        return [
            r.model_dump(by_alias=True, mode="json")
            for r in sync_app.state.reviews
            if r.project_id == str(project_id)
        ]

    @router.get("/reviewers/{reviewer_name}/projects")
    def list_reviewer_projects(reviewer_name: str) -> List[Dict[str, Any]]:
        projects = client.projects_for_reviewer(reviewer_name, sync_app.state)
        return [p.model_dump(by_alias=True, mode="json") for p in projects]

    @router.get("/notifications")
    def list_notifications(unread: bool = Query(False)) -> List[Dict[str, Any]]:
        state = sync_app.state
        notifications = client.unread_notifications(state) if unread else state.notifications
        return [n.model_dump(by_alias=True, mode="json") for n in notifications]

    @router.get("/reviews/{review_id}/replies")
    def list_review_replies(review_id: str) -> List[Dict[str, Any]]:
        return [r.model_dump(by_alias=True, mode="json") for r in client.review_replies_for(review_id, sync_app.state)]

    @router.post("/projects")
    def upload_project(body: UploadRequest):
        result = client.upload_project(
            body.title,
            body.description,
            body.author,
            [f.model_dump() for f in body.files],
        )
        return _respond(sync_app, result)

    @router.post("/projects/{project_id}/reviews")
    def submit_review(project_id: str, body: ReviewRequest):
        return _respond(sync_app, client.submit_review(project_id, body.reviewer, body.rating, body.comment))

    @router.post("/projects/{project_id}/assign-reviewers")
    def set_assignment(project_id: str, body: AssignmentRequest):
        return _respond(sync_app, client.set_assignment(project_id, body.reviewers))

    @router.post("/projects/{project_id}/feedback")
    def save_teacher_decision(project_id: str, body: DecisionRequest):
        decision = body.model_dump(by_alias=True, exclude_none=True)
        return _respond(sync_app, client.save_teacher_decision(project_id, decision))

    @router.post("/reviews/{review_id}/replies")
    def add_review_reply(review_id: str, body: ReplyRequest):
        return _respond(sync_app, client.add_review_reply(review_id, body.text, body.author))

    @router.patch("/notifications/{notification_id}/read")
    def mark_notification_read(notification_id: str):
        return _respond(sync_app, client.mark_notification_read(notification_id))

    return router
