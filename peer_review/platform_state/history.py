"""
Upload history reconciliation: every project gets at least one project_uploaded entry.
Synthesized entries are client-side derived state and are never sent to the backend.
"""
from typing import List, Set

from .models import UPLOAD_ACTION_TYPE, ActivityEntry, PlatformState, Project


def _synthetic_upload(project: Project) -> ActivityEntry:
    return ActivityEntry(
        id=f"synthetic-upload-{project.id}",
        action="Project uploaded",
        detail=f"{project.author} uploaded {project.title} ({len(project.files)} files)",
        time=project.submitted_at or "",
        icon="upload",
        project_id=project.id,
        project_title=project.title,
        student_name=project.author,
        actor_name=project.author,
        actor_role="student",
        action_type=UPLOAD_ACTION_TYPE,
    )


def uploaded_project_ids(timeline: List[ActivityEntry]) -> Set[str]:
    """Ids of projects that already have an upload entry."""
    return {
        entry.project_id
        for entry in timeline
        if entry.action_type == UPLOAD_ACTION_TYPE and entry.project_id
    }


def ensure_upload_history(state: PlatformState) -> PlatformState:
    """Return a copy of state with synthesized upload entries prepended. Idempotent."""
    seen = uploaded_project_ids(state.activity_timeline)
    fallback = [_synthetic_upload(p) for p in state.projects if p.id not in seen]
    if not fallback:
        return state.model_copy(deep=True)
    return state.model_copy(
        update={"activity_timeline": fallback + [e.model_copy() for e in state.activity_timeline]},
        deep=True,
    )
