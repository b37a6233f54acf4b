"""Running exercise tests, singly, in batches and on save."""

from .executor import BatchClaim, RunMode, TestExecutor
from .batch import BatchCoordinator, BatchOutcome, BatchProgress, BatchState
from .file_watcher import ExerciseFileHandler, ExerciseWatcher

__all__ = [
    'BatchClaim',
    'BatchCoordinator',
    'BatchOutcome',
    'BatchProgress',
    'BatchState',
    'ExerciseFileHandler',
    'ExerciseWatcher',
    'RunMode',
    'TestExecutor',
]
