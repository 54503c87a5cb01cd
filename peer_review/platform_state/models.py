"""
Canonical client-side shape of the peer review platform state.
Field names are snake_case in Python and camelCase on the wire (and in the persisted snapshot).
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PROJECT_STATUSES = (
    "pending_review",
    "reviewed",
    "approved",
    "rejected",
    "improvement_requested",
)

DECISION_ACTIONS = ("approve", "improve", "reject")

UPLOAD_ACTION_TYPE = "project_uploaded"


class PlatformModel(BaseModel):
    """Base for platform records: camelCase aliases, unknown fields dropped."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class FileRef(PlatformModel):
    id: str
    name: str = "Untitled file"
    size: int = 0


class Project(PlatformModel):
    id: str
    title: str = ""
    author: str = ""
    description: str = ""
    status: str = ""
    submitted_at: str = ""
    rating: Optional[float] = None
    final_score: Optional[int] = None
    completion_percentage: Optional[int] = None
    files: List[FileRef] = Field(default_factory=list)


class Review(PlatformModel):
    id: str
    project_id: str
    reviewer: str = ""
    rating: Optional[int] = None
    comment: str = ""
    date: str = ""


class Reply(PlatformModel):
    id: str
    author: str = ""
    text: str = ""
    date: str = ""


class Decision(PlatformModel):
    action: str = ""
    comment: str = ""
    final_score: Optional[int] = None
    completion_percentage: Optional[int] = None
    submitted_at: str = ""
    teacher_name: str = ""


class ActivityEntry(PlatformModel):
    id: str
    action: str = ""
    detail: str = ""
    time: str = ""
    icon: str = ""
    project_id: Optional[str] = None
    project_title: str = ""
    student_name: str = ""
    actor_name: str = ""
    actor_role: str = ""
    action_type: str = ""


class Notification(PlatformModel):
    id: str
    type: str = ""
    message: str = ""
    time: str = ""
    read: bool = False


class PlatformState(PlatformModel):
    """Whole snapshot. Replaced as a unit on every successful sync."""

    projects: List[Project] = Field(default_factory=list)
    reviews: List[Review] = Field(default_factory=list)
    notifications: List[Notification] = Field(default_factory=list)
    activity_timeline: List[ActivityEntry] = Field(default_factory=list)
    assignments: Dict[str, List[str]] = Field(default_factory=dict)
    teacher_decisions: Dict[str, Decision] = Field(default_factory=dict)
    review_replies: Dict[str, List[Reply]] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict in wire (camelCase) form."""
        return self.model_dump(by_alias=True, mode="json")

    def get_project(self, project_id: Any) -> Optional[Project]:
        wanted = str(project_id)
        return next((p for p in self.projects if p.id == wanted), None)
