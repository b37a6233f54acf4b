"""Course data model and loading."""

from .models import (
    Course,
    Exercise,
    ExerciseProgress,
    ExerciseStatus,
    Language,
    LanguageProfile,
    LANGUAGE_PROFILES,
    SPAWN_FAILED_EXIT_CODE,
    TestOutput,
    TestResult,
    UsageCounters,
)
from .loader import CourseManager

__all__ = [
    'Course',
    'CourseManager',
    'Exercise',
    'ExerciseProgress',
    'ExerciseStatus',
    'Language',
    'LanguageProfile',
    'LANGUAGE_PROFILES',
    'SPAWN_FAILED_EXIT_CODE',
    'TestOutput',
    'TestResult',
    'UsageCounters',
]
