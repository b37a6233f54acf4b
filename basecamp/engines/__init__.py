"""Rules deriving exercise status from stored progress."""

from .unlock import (
    CourseProgress,
    UnlockPolicy,
    course_progress,
    first_incomplete,
    is_unlocked,
    status_of,
    statuses,
)

__all__ = [
    "CourseProgress",
    "UnlockPolicy",
    "course_progress",
    "first_incomplete",
    "is_unlocked",
    "status_of",
    "statuses",
]
