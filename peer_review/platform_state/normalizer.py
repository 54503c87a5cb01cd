"""
Coerce loosely-typed server payloads into the canonical PlatformState.

Ids become strings so a project id of 7 from one endpoint and "7" from another compare
equal. Missing containers become empty ones. Anything that cannot be coerced raises
MalformedPayload with the path of the offending value.
"""
import logging
import math
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .errors import MalformedPayload
from .history import ensure_upload_history
from .models import (
    PROJECT_STATUSES,
    ActivityEntry,
    Decision,
    FileRef,
    Notification,
    PlatformState,
    Project,
    Reply,
    Review,
)

logger = logging.getLogger(__name__)

UNTITLED_FILE = "Untitled file"


def _coerce_id(value: Any, path: str) -> str:
    """Canonical string id from any scalar id."""
    if isinstance(value, bool) or value is None:
        raise MalformedPayload(f"expected an id, got {value!r}", path)
    if isinstance(value, float):
        if not value.is_integer():
            raise MalformedPayload(f"expected an integral id, got {value!r}", path)
        return str(int(value))
    if isinstance(value, (str, int)):
        text = str(value).strip()
        if not text:
            raise MalformedPayload("empty id", path)
        return text
    raise MalformedPayload(f"expected an id, got {type(value).__name__}", path)


def _optional_id(value: Any, path: str) -> Optional[str]:
    if value is None or value == "":
        return None
    return _coerce_id(value, path)


def _text(value: Any, path: str, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, bool)):
        return str(value)
    raise MalformedPayload(f"expected text, got {type(value).__name__}", path)


def _number(value: Any, path: str) -> Optional[float]:
    """None stays None (not graded); numeric strings are accepted. NaN and infinities are not."""
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise MalformedPayload(f"expected a number, got {type(value).__name__}", path)
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        raise MalformedPayload(f"expected a number, got {value!r}", path) from None
    if not math.isfinite(number):
        raise MalformedPayload(f"expected a finite number, got {value!r}", path)
    return number


def _optional_int(value: Any, path: str) -> Optional[int]:
    """Whole numbers only; 4.0 is accepted, 4.5 is not."""
    number = _number(value, path)
    if number is None:
        return None
    if not number.is_integer():
        raise MalformedPayload(f"expected a whole number, got {value!r}", path)
    return int(number)


def _list(value: Any, path: str) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    raise MalformedPayload(f"expected a list, got {type(value).__name__}", path)


def _mapping(value: Any, path: str) -> Mapping:
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return value
    raise MalformedPayload(f"expected an object, got {type(value).__name__}", path)


def _record(value: Any, path: str) -> Mapping:
    if not isinstance(value, Mapping):
        raise MalformedPayload(f"expected an object, got {type(value).__name__}", path)
    return value


def _build(model, data: Dict[str, Any], path: str):
    try:
        return model(**data)
    except ValidationError as e:
        raise MalformedPayload(str(e.errors()[0].get("msg", e)), path) from e


def normalize_file(raw: Any, index: int, project_id: str, path: str = "file") -> FileRef:
    """A bare string is a legacy file name; objects get defaults filled in."""
    if isinstance(raw, str):
        return FileRef(id=f"legacy-{index}", name=raw, size=0)
    raw = _record(raw, path)
    size = _number(raw.get("size") or 0, f"{path}.size")
    return _build(FileRef, {
        "id": _optional_id(raw.get("id"), f"{path}.id") or f"{project_id}-file-{index}",
        "name": _text(raw.get("name"), f"{path}.name") or UNTITLED_FILE,
        "size": int(size or 0),
    }, path)


def normalize_project(raw: Any, path: str = "project") -> Project:
    raw = _record(raw, path)
    project_id = _coerce_id(raw.get("id"), f"{path}.id")
    status = _text(raw.get("status"), f"{path}.status").lower()
    if status and status not in PROJECT_STATUSES:
        logger.debug(f"Unknown status {status!r} on project {project_id}")
    files = [
        normalize_file(item, index, project_id, f"{path}.files[{index}]")
        for index, item in enumerate(_list(raw.get("files"), f"{path}.files"))
    ]
    return _build(Project, {
        "id": project_id,
        "title": _text(raw.get("title"), f"{path}.title"),
        "author": _text(raw.get("author"), f"{path}.author"),
        "description": _text(raw.get("description"), f"{path}.description"),
        "status": status,
        "submitted_at": _text(raw.get("submittedAt"), f"{path}.submittedAt"),
        "rating": _number(raw.get("rating"), f"{path}.rating"),
        "final_score": _optional_int(raw.get("finalScore"), f"{path}.finalScore"),
        "completion_percentage": _optional_int(
            raw.get("completionPercentage"), f"{path}.completionPercentage"
        ),
        "files": files,
    }, path)


def normalize_review(raw: Any, path: str = "review") -> Review:
    raw = _record(raw, path)
    return _build(Review, {
        "id": _coerce_id(raw.get("id"), f"{path}.id"),
        "project_id": _coerce_id(raw.get("projectId"), f"{path}.projectId"),
        "reviewer": _text(raw.get("reviewer"), f"{path}.reviewer"),
        "rating": _optional_int(raw.get("rating"), f"{path}.rating"),
        "comment": _text(raw.get("comment"), f"{path}.comment"),
        "date": _text(raw.get("date"), f"{path}.date"),
    }, path)


def normalize_activity(raw: Any, path: str = "activity") -> ActivityEntry:
    raw = _record(raw, path)
    return _build(ActivityEntry, {
        "id": _coerce_id(raw.get("id"), f"{path}.id"),
        "action": _text(raw.get("action"), f"{path}.action"),
        "detail": _text(raw.get("detail"), f"{path}.detail"),
        "time": _text(raw.get("time"), f"{path}.time"),
        "icon": _text(raw.get("icon"), f"{path}.icon"),
        "project_id": _optional_id(raw.get("projectId"), f"{path}.projectId"),
        "project_title": _text(raw.get("projectTitle"), f"{path}.projectTitle"),
        "student_name": _text(raw.get("studentName"), f"{path}.studentName"),
        "actor_name": _text(raw.get("actorName"), f"{path}.actorName"),
        "actor_role": _text(raw.get("actorRole"), f"{path}.actorRole"),
        "action_type": _text(raw.get("actionType"), f"{path}.actionType"),
    }, path)


def normalize_notification(raw: Any, path: str = "notification") -> Notification:
    raw = _record(raw, path)
    read = raw.get("read")
    if read is None:
        read = False
    elif not isinstance(read, bool):
        if read in (0, 1):
            read = bool(read)
        else:
            raise MalformedPayload(f"expected a boolean, got {read!r}", f"{path}.read")
    return _build(Notification, {
        "id": _coerce_id(raw.get("id"), f"{path}.id"),
        "type": _text(raw.get("type"), f"{path}.type"),
        "message": _text(raw.get("message"), f"{path}.message"),
        "time": _text(raw.get("time"), f"{path}.time"),
        "read": read,
    }, path)


def normalize_decision(raw: Any, path: str = "decision") -> Decision:
    raw = _record(raw, path)
    return _build(Decision, {
        "action": _text(raw.get("action"), f"{path}.action").lower(),
        "comment": _text(raw.get("comment"), f"{path}.comment"),
        "final_score": _optional_int(raw.get("finalScore"), f"{path}.finalScore"),
        "completion_percentage": _optional_int(
            raw.get("completionPercentage"), f"{path}.completionPercentage"
        ),
        "submitted_at": _text(raw.get("submittedAt"), f"{path}.submittedAt"),
        "teacher_name": _text(raw.get("teacherName"), f"{path}.teacherName"),
    }, path)


def normalize_reply(raw: Any, path: str = "reply") -> Reply:
    raw = _record(raw, path)
    return _build(Reply, {
        "id": _coerce_id(raw.get("id"), f"{path}.id"),
        "author": _text(raw.get("author"), f"{path}.author"),
        "text": _text(raw.get("text"), f"{path}.text"),
        "date": _text(raw.get("date"), f"{path}.date"),
    }, path)


def _normalize_assignments(value: Any) -> Dict[str, List[str]]:
    result: Dict[str, List[str]] = {}
    for key, names in _mapping(value, "assignments").items():
        project_id = _coerce_id(key, f"assignments.{key}")
        result[project_id] = [
            _text(name, f"assignments.{project_id}[{i}]")
            for i, name in enumerate(_list(names, f"assignments.{project_id}"))
        ]
    return result


def normalize_platform_state(payload: Any) -> PlatformState:
    """Full server payload -> PlatformState with upload history reconciled."""
    payload = _record(payload, "state")

    decisions = {
        _coerce_id(key, f"teacherDecisions.{key}"): normalize_decision(value, f"teacherDecisions.{key}")
        for key, value in _mapping(payload.get("teacherDecisions"), "teacherDecisions").items()
    }
    replies = {
        _coerce_id(key, f"reviewReplies.{key}"): [
            normalize_reply(item, f"reviewReplies.{key}[{i}]")
            for i, item in enumerate(_list(items, f"reviewReplies.{key}"))
        ]
        for key, items in _mapping(payload.get("reviewReplies"), "reviewReplies").items()
    }

    state = PlatformState(
        projects=[
            normalize_project(item, f"projects[{i}]")
            for i, item in enumerate(_list(payload.get("projects"), "projects"))
        ],
        reviews=[
            normalize_review(item, f"reviews[{i}]")
            for i, item in enumerate(_list(payload.get("reviews"), "reviews"))
        ],
        notifications=[
            normalize_notification(item, f"notifications[{i}]")
            for i, item in enumerate(_list(payload.get("notifications"), "notifications"))
        ],
        activity_timeline=[
            normalize_activity(item, f"activityTimeline[{i}]")
            for i, item in enumerate(_list(payload.get("activityTimeline"), "activityTimeline"))
        ],
        assignments=_normalize_assignments(payload.get("assignments")),
        teacher_decisions=decisions,
        review_replies=replies,
    )
    logger.debug(
        f"Normalized platform state: {len(state.projects)} project(s), "
        f"{len(state.reviews)} review(s), {len(state.activity_timeline)} activity entries"
    )
    return ensure_upload_history(state)
