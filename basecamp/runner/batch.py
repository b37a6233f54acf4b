#!/usr/bin/env python3
"""
Batch test runs.
Runs every exercise of a course through the shared test executor, in order.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from ..course.models import Exercise, TestOutput, TestResult
from .executor import RunMode, TestExecutor


logger = logging.getLogger(__name__)


class BatchState(Enum):
    """How a batch run ended"""
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


@dataclass
class BatchProgress:
    """Snapshot of a batch run for display"""
    total: int
    completed: int = 0
    passed: int = 0
    failed: int = 0      # every non-passing result, errors included
    errors: int = 0
    current_exercise_id: Optional[str] = None
    results: Dict[str, TestOutput] = field(default_factory=dict)

    @property
    def percentage(self) -> float:
        return self.completed / self.total * 100 if self.total > 0 else 0.0

    def snapshot(self) -> 'BatchProgress':
        return replace(self, results=dict(self.results))


@dataclass
class BatchOutcome:
    state: BatchState
    progress: BatchProgress

    @property
    def cancelled(self) -> bool:
        return self.state == BatchState.CANCELLED


class BatchCoordinator:
    """
    Runs many exercises through one TestExecutor.

    While a batch is running the executor is claimed, so individual runs are
    rejected with BatchInProgressError rather than queued. cancel() stops the
    loop at the next exercise boundary and kills the test in flight.
    """

    def __init__(self, executor: TestExecutor):
        self.executor = executor
        self._cancelled = False
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def cancel(self) -> None:
        """Request cancellation; a no-op when no batch is running"""
        if not self._running:
            return
        self._cancelled = True
        self.executor.cancel()
        logger.info("Batch test run cancellation requested")

    async def run_all(
        self,
        exercises: Sequence[Exercise],
        language,
        on_progress: Optional[Callable[[BatchProgress], None]] = None,
    ) -> BatchOutcome:
        """
        Run the tests of every exercise in order.

        on_progress receives a snapshot before the first exercise, after each
        exercise and once when the run ends.
        """
        claim = self.executor.claim()
        self._cancelled = False
        self._running = True

        exercises: List[Exercise] = list(exercises)
        progress = BatchProgress(total=len(exercises))
        progress.current_exercise_id = exercises[0].id if exercises else None

        def emit():
            if on_progress:
                on_progress(progress.snapshot())

        logger.info("Starting batch run of %d exercises", progress.total)
        emit()

        state = BatchState.COMPLETED
        try:
            for i, exercise in enumerate(exercises):
                if self._cancelled:
                    state = BatchState.CANCELLED
                    break

                progress.current_exercise_id = exercise.id
                output = await self._run_one(exercise, language, claim)
                progress.results[exercise.id] = output

                if output.result == TestResult.PASSED:
                    progress.passed += 1
                else:
                    progress.failed += 1
                    if output.result == TestResult.ERROR:
                        progress.errors += 1

                progress.completed += 1
                following = exercises[i + 1] if i + 1 < len(exercises) else None
                progress.current_exercise_id = following.id if following else None
                emit()
        finally:
            self._running = False
            self.executor.release(claim)

        # A cancel during the last exercise never reaches the loop check
        if self._cancelled:
            state = BatchState.CANCELLED

        progress.current_exercise_id = None
        emit()

        if state == BatchState.CANCELLED:
            logger.info("Batch run cancelled after %d of %d exercises",
                        progress.completed, progress.total)
        else:
            logger.info("Batch run finished: %d passed, %d failed",
                        progress.passed, progress.failed)

        return BatchOutcome(state=state, progress=progress)

    async def _run_one(self, exercise: Exercise, language, claim) -> TestOutput:
        try:
            return await self.executor.run_test(
                exercise, language, mode=RunMode.SILENT, claim=claim
            )
        except Exception as e:
            logger.warning("Test run for %s raised: %s", getattr(exercise, 'id', '?'), e)
            return TestOutput.error(str(e))
