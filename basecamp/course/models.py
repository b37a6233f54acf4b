#!/usr/bin/env python3
"""
Course data model.
Exercises, languages and the values produced by running tests.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..errors import UnsupportedLanguageError


# Exit code recorded when the test process could not run to completion
SPAWN_FAILED_EXIT_CODE = -1


@dataclass(frozen=True)
class LanguageProfile:
    """How to run the tests of one language"""
    test_command: Tuple[str, ...]     # executable and base arguments
    test_file_pattern: str            # '*' is replaced by the exercise id
    exercise_file_extension: str
    test_framework: str


class Language(Enum):
    """Supported course languages"""
    JAVASCRIPT = 'javascript'
    PYTHON = 'python'
    GO = 'go'
    RUST = 'rust'

    @property
    def profile(self) -> LanguageProfile:
        return LANGUAGE_PROFILES[self]

    @classmethod
    def parse(cls, value) -> 'Language':
        """Parse a language tag, raising UnsupportedLanguageError on a miss"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise UnsupportedLanguageError(value) from None


LANGUAGE_PROFILES: Dict[Language, LanguageProfile] = {
    Language.JAVASCRIPT: LanguageProfile(
        test_command=('npm', 'test', '--'),
        test_file_pattern='*.test.js',
        exercise_file_extension='.js',
        test_framework='jest',
    ),
    Language.PYTHON: LanguageProfile(
        test_command=('pytest', '-v'),
        test_file_pattern='test_*.py',
        exercise_file_extension='.py',
        test_framework='pytest',
    ),
    Language.GO: LanguageProfile(
        test_command=('go', 'test', '-v'),
        test_file_pattern='*_test.go',
        exercise_file_extension='.go',
        test_framework='go test',
    ),
    Language.RUST: LanguageProfile(
        test_command=('cargo', 'test'),
        test_file_pattern='*.rs',
        exercise_file_extension='.rs',
        test_framework='cargo test',
    ),
}


class ExerciseStatus(Enum):
    """Where an exercise sits in the course progression"""
    LOCKED = 'locked'
    AVAILABLE = 'available'
    IN_PROGRESS = 'in-progress'
    COMPLETED = 'completed'


class TestResult(Enum):
    """Classification of one test run"""
    __test__ = False  # not a pytest test class

    PASSED = 'passed'
    FAILED = 'failed'
    ERROR = 'error'


@dataclass(frozen=True)
class Exercise:
    """One unit of coursework, as resolved by the course loader"""
    id: str
    title: str
    description: str = ''
    order: int = 0
    path: str = ''            # exercise directory
    exercise_file: str = ''   # student-editable source
    test_file: str = ''
    readme_file: str = ''


@dataclass
class Course:
    """A loaded course.json"""
    name: str
    description: str
    author: str
    version: str
    language: Language
    exercises: List[Exercise] = field(default_factory=list)


@dataclass
class ExerciseProgress:
    """Attempt record for one exercise"""
    exercise_id: str
    completed: bool = False
    last_attempt: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class TestOutput:
    """Outcome of a single test run"""
    __test__ = False

    result: TestResult
    output: str
    exit_code: int

    @property
    def passed(self) -> bool:
        return self.result == TestResult.PASSED

    @classmethod
    def error(cls, message: str, output: str = '') -> 'TestOutput':
        """Create an Error result carrying the sentinel exit code"""
        return cls(
            result=TestResult.ERROR,
            output=output + message,
            exit_code=SPAWN_FAILED_EXIT_CODE,
        )


@dataclass
class UsageCounters:
    """Per-course counters kept alongside the attempt records"""
    test_runs: int = 0
    hints_used: int = 0
