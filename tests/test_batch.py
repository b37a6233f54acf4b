#!/usr/bin/env python3
"""
Tests for batch test runs.
"""

import asyncio
import sys

import pytest

from basecamp.course import Exercise, TestResult
from basecamp.errors import BatchInProgressError
from basecamp.runner import BatchCoordinator, BatchState


PASS = 'print("ok")'
FAIL = 'raise SystemExit(1)'
SLEEPER = 'import time; print("started", flush=True); time.sleep(30)'


def make_exercises(workspace, count):
    exercises = []
    for i in range(count):
        exercise_id = f'{i:02d}-step'
        exercise_dir = workspace / 'exercises' / exercise_id
        exercise_dir.mkdir(parents=True)
        test_file = exercise_dir / f'test_{i:02d}.py'
        test_file.write_text('def test_it():\n    pass\n')
        exercises.append(Exercise(
            id=exercise_id,
            title=f'Step {i}',
            order=i,
            path=str(exercise_dir),
            test_file=str(test_file),
        ))
    return exercises


def use_code_by_id(monkeypatch, executor, code_by_id):
    """Run a snippet per exercise id instead of a real test runner"""
    monkeypatch.setattr(
        executor, 'build_command',
        lambda exercise, language: [sys.executable, '-c', code_by_id[exercise.id]],
    )


class TestRunAll:
    """Tests for a batch run that is left to finish"""

    def test_mixed_results(self, monkeypatch, executor, workspace, store):
        exercises = make_exercises(workspace, 3)
        use_code_by_id(monkeypatch, executor, {
            '00-step': PASS, '01-step': FAIL, '02-step': PASS,
        })

        outcome = asyncio.run(BatchCoordinator(executor).run_all(exercises, 'python'))

        assert outcome.state == BatchState.COMPLETED
        assert not outcome.cancelled
        progress = outcome.progress
        assert progress.total == 3
        assert progress.completed == 3
        assert progress.passed == 2
        assert progress.failed == 1
        assert progress.errors == 0
        assert progress.percentage == 100.0
        assert progress.current_exercise_id is None
        assert progress.results['01-step'].result == TestResult.FAILED

        assert asyncio.run(store.get_progress('00-step')).completed is True
        assert asyncio.run(store.get_progress('01-step')).completed is False
        assert asyncio.run(store.get_counters()).test_runs == 3

    def test_snapshots(self, monkeypatch, executor, workspace):
        """One snapshot before the loop, one per exercise and one at the end"""
        exercises = make_exercises(workspace, 2)
        use_code_by_id(monkeypatch, executor, {'00-step': PASS, '01-step': PASS})
        snapshots = []

        asyncio.run(BatchCoordinator(executor).run_all(exercises, 'python', snapshots.append))

        assert len(snapshots) == 4
        assert [s.current_exercise_id for s in snapshots] == ['00-step', '01-step', None, None]
        assert [s.completed for s in snapshots] == [0, 1, 2, 2]
        assert snapshots[0].results == {}
        assert list(snapshots[1].results) == ['00-step']

    def test_empty_batch(self, executor):
        snapshots = []

        outcome = asyncio.run(BatchCoordinator(executor).run_all([], 'python', snapshots.append))

        assert outcome.state == BatchState.COMPLETED
        assert outcome.progress.percentage == 0.0
        assert len(snapshots) == 2
        assert not executor.is_claimed

    def test_bad_exercise_recorded_as_error(self, monkeypatch, executor, workspace):
        """A run that raises is recorded and the batch carries on"""
        exercises = make_exercises(workspace, 2)
        exercises[0] = Exercise(id='00-step', title='', test_file=exercises[0].test_file)
        use_code_by_id(monkeypatch, executor, {'00-step': PASS, '01-step': PASS})

        outcome = asyncio.run(BatchCoordinator(executor).run_all(exercises, 'python'))

        progress = outcome.progress
        assert progress.completed == 2
        assert progress.passed == 1
        assert progress.failed == 1
        assert progress.errors == 1
        assert progress.results['00-step'].result == TestResult.ERROR
        assert progress.results['01-step'].result == TestResult.PASSED

    def test_claim_released_afterwards(self, monkeypatch, executor, workspace, exercise):
        exercises = make_exercises(workspace, 1)
        use_code_by_id(monkeypatch, executor, {'00-step': PASS, 'a-hello': PASS})

        asyncio.run(BatchCoordinator(executor).run_all(exercises, 'python'))

        assert not executor.is_claimed
        assert asyncio.run(executor.run_test(exercise, 'python')).passed


class TestCancellation:
    """Tests for stopping a batch part way"""

    def test_cancel_between_exercises(self, monkeypatch, executor, workspace):
        exercises = make_exercises(workspace, 4)
        use_code_by_id(monkeypatch, executor, {e.id: PASS for e in exercises})
        coordinator = BatchCoordinator(executor)

        def on_progress(snapshot):
            if snapshot.completed == 2:
                coordinator.cancel()

        outcome = asyncio.run(coordinator.run_all(exercises, 'python', on_progress))

        assert outcome.state == BatchState.CANCELLED
        assert outcome.cancelled
        assert outcome.progress.completed == 2
        assert list(outcome.progress.results) == ['00-step', '01-step']
        assert outcome.progress.current_exercise_id is None
        assert not coordinator.is_running

    def test_cancel_kills_running_test(self, monkeypatch, executor, workspace):
        exercises = make_exercises(workspace, 2)
        use_code_by_id(monkeypatch, executor, {'00-step': SLEEPER, '01-step': PASS})
        coordinator = BatchCoordinator(executor)

        async def scenario():
            batch = asyncio.ensure_future(coordinator.run_all(exercises, 'python'))
            while not executor.is_running:
                await asyncio.sleep(0.01)
            coordinator.cancel()
            return await asyncio.wait_for(batch, timeout=10)

        outcome = asyncio.run(scenario())

        assert outcome.cancelled
        assert outcome.progress.completed == 1
        assert outcome.progress.results['00-step'].result == TestResult.ERROR
        assert '01-step' not in outcome.progress.results

    def test_cancel_during_last_exercise(self, monkeypatch, executor, workspace):
        """Cancelling the final exercise still reports the batch as cancelled"""
        exercises = make_exercises(workspace, 1)
        use_code_by_id(monkeypatch, executor, {'00-step': SLEEPER})
        coordinator = BatchCoordinator(executor)

        async def scenario():
            batch = asyncio.ensure_future(coordinator.run_all(exercises, 'python'))
            while not executor.is_running:
                await asyncio.sleep(0.01)
            coordinator.cancel()
            return await asyncio.wait_for(batch, timeout=10)

        outcome = asyncio.run(scenario())

        assert outcome.state == BatchState.CANCELLED
        assert outcome.progress.completed == 1
        assert outcome.progress.results['00-step'].result == TestResult.ERROR

    def test_cancel_when_idle_is_noop(self, executor):
        coordinator = BatchCoordinator(executor)
        coordinator.cancel()
        assert not coordinator.is_running


class TestExclusivity:
    """Tests for rejecting other runs while a batch is in progress"""

    def test_single_run_rejected_during_batch(self, monkeypatch, executor, workspace, exercise):
        exercises = make_exercises(workspace, 1)
        use_code_by_id(monkeypatch, executor, {'00-step': SLEEPER, 'a-hello': PASS})
        coordinator = BatchCoordinator(executor)

        async def scenario():
            batch = asyncio.ensure_future(coordinator.run_all(exercises, 'python'))
            while not executor.is_running:
                await asyncio.sleep(0.01)
            try:
                with pytest.raises(BatchInProgressError):
                    await executor.run_test(exercise, 'python')
                with pytest.raises(BatchInProgressError):
                    await BatchCoordinator(executor).run_all(exercises, 'python')
            finally:
                coordinator.cancel()
            return await asyncio.wait_for(batch, timeout=10)

        outcome = asyncio.run(scenario())

        assert outcome.cancelled
        assert not executor.is_claimed
