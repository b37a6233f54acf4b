#!/usr/bin/env python3
"""
Exception types raised by Basecamp.
"""


class BasecampError(Exception):
    """Base class for all Basecamp errors"""


class ValidationError(BasecampError):
    """Exercise input is malformed or incomplete"""


class UnsupportedLanguageError(BasecampError):
    """Language tag is not one of the supported languages"""

    def __init__(self, language):
        self.language = language
        super().__init__(f"Unsupported language: {language}")


class ProcessSpawnError(BasecampError):
    """The test runner process could not be started"""


class StorageUnavailableError(BasecampError):
    """Progress store used before initialize() or after close()"""


class BatchInProgressError(BasecampError):
    """A batch run holds the test executor"""


class CourseLoadError(BasecampError):
    """course.json is missing or invalid"""


class HintUnavailableError(BasecampError):
    """Hints are disabled or the hint endpoint cannot be reached"""
