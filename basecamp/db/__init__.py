"""Progress persistence."""

from .progress import ProgressStore, sanitize_course_name

__all__ = ["ProgressStore", "sanitize_course_name"]
