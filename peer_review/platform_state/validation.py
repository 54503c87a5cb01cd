"""
Checks run before a mutation is sent. Each returns an error message, or None when the input is fine.
"""
import math
from typing import Any, Iterable, Mapping, Optional

from .models import DECISION_ACTIONS


def _blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _as_int(value: Any) -> Optional[int]:
    """int for integral numbers and numeric strings, None otherwise."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)


def _in_range(value: Any, low: int, high: int) -> bool:
    number = _as_int(value)
    return number is not None and low <= number <= high


def validate_upload(title: Any, author: Any, files: Iterable[Mapping[str, Any]]) -> Optional[str]:
    """files: name/size mappings."""
    if _blank(title):
        return "Project title is required."
    if _blank(author):
        return "Author is required."
    for item in files:
        if _blank(item.get("name")):
            return "Every file needs a name."
        try:
            size = float(item.get("size") or 0)
        except (TypeError, ValueError):
            return "File size must be a number."
        if not math.isfinite(size):
            return "File size must be a number."
        if size < 0:
            return "File size cannot be negative."
    return None


def validate_review(reviewer: Any, rating: Any, comment: Any) -> Optional[str]:
    if _blank(reviewer):
        return "Reviewer name is required."
    if not _in_range(rating, 1, 5):
        return "Rating must be a whole number between 1 and 5."
    if _blank(comment):
        return "Review comment is required."
    return None


def validate_assignment(reviewers: Any) -> Optional[str]:
    if isinstance(reviewers, str) or not isinstance(reviewers, (list, tuple)):
        return "Reviewers must be a list of names."
    if not reviewers:
        return "Select at least one reviewer."
    if any(_blank(name) for name in reviewers):
        return "Reviewer names cannot be blank."
    return None


def validate_decision(decision: Mapping[str, Any]) -> Optional[str]:
    action = str(decision.get("action") or "").strip().lower()
    if action not in DECISION_ACTIONS:
        return f"Decision must be one of: {', '.join(DECISION_ACTIONS)}."
    if _blank(decision.get("comment")):
        return "Feedback comment is required."
    if not _in_range(decision.get("finalScore"), 0, 100):
        return "Final score must be between 0 and 100."
    if not _in_range(decision.get("completionPercentage"), 0, 100):
        return "Completion percentage must be between 0 and 100."
    return None


def validate_reply(text: Any, author: Any) -> Optional[str]:
    if _blank(text):
        return "Reply text is required."
    if _blank(author):
        return "Reply author is required."
    return None
