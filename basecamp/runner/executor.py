#!/usr/bin/env python3
"""
Test executor.
Runs one exercise's test suite as a subprocess and classifies the outcome.

At most one test process is alive per executor: starting a run first kills
and reaps whatever the executor is still running.
"""

import asyncio
import codecs
import logging
import os
import shutil
import signal
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from ..course.models import Exercise, Language, TestOutput, TestResult
from ..db import ProgressStore
from ..errors import BatchInProgressError, ProcessSpawnError, ValidationError


logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096
RULE = '=' * 60


class RunMode(Enum):
    """Whether progress messages are reported while a test runs"""
    SILENT = 'silent'
    INTERACTIVE = 'interactive'


class BatchClaim:
    """Token held by a batch run while it owns the executor"""


class _ActiveRun:
    """Bookkeeping for the live test process"""

    def __init__(self, exercise_id: str):
        self.exercise_id = exercise_id
        self.process: Optional[asyncio.subprocess.Process] = None
        self.cancelled = False
        self.finished = asyncio.Event()


class TestExecutor:
    """Runs exercise tests one at a time and records the outcome"""

    __test__ = False

    def __init__(
        self,
        workspace_path: str,
        store: ProgressStore,
        output_sink: Optional[Callable[[str], None]] = None,
    ):
        self.workspace_path = os.path.abspath(workspace_path)
        self.store = store
        self.output_sink = output_sink
        self._active: Optional[_ActiveRun] = None
        self._claim: Optional[BatchClaim] = None

    @property
    def is_running(self) -> bool:
        """True while a test process is alive"""
        return self._active is not None

    @property
    def is_claimed(self) -> bool:
        """True while a batch run owns the executor"""
        return self._claim is not None

    def claim(self) -> BatchClaim:
        """Reserve the executor for a batch run"""
        if self._claim is not None:
            raise BatchInProgressError("A batch test run is already in progress")
        self._claim = BatchClaim()
        return self._claim

    def release(self, claim: BatchClaim) -> None:
        if self._claim is claim:
            self._claim = None

    async def run_test(
        self,
        exercise: Exercise,
        language,
        mode: RunMode = RunMode.INTERACTIVE,
        on_progress: Optional[Callable[[str], None]] = None,
        claim: Optional[BatchClaim] = None,
    ) -> TestOutput:
        """
        Run the tests for one exercise.

        Args:
            exercise: Exercise to test
            language: Language member or tag of the course
            mode: SILENT suppresses on_progress messages
            on_progress: Receives short status messages in INTERACTIVE mode
            claim: The batch claim, when called by the batch coordinator

        Returns:
            TestOutput. Passed and Failed runs update the progress store;
            Error runs (spawn failure, cancellation) leave it untouched.
        """
        self._validate(exercise)
        language = Language.parse(language)

        if self._claim is not None and claim is not self._claim:
            raise BatchInProgressError(
                'Cannot run an individual test while "run all" is in progress. '
                'Wait for it to finish or cancel it.'
            )

        command = self.build_command(exercise, language)
        report = on_progress if mode == RunMode.INTERACTIVE else None

        await self._terminate_active()

        self._write(f"Running tests for: {exercise.title}\n\n")
        self._write(f"Exercise ID: {exercise.id}\n")
        self._write(f"Test file: {exercise.test_file}\n")
        self._write(f"Working directory: {self.workspace_path}\n\n")
        self._write(RULE + '\n')

        result = await self._execute(exercise, command, report)

        if result.result == TestResult.ERROR:
            return result

        await self.store.increment_test_runs()
        if result.result == TestResult.PASSED:
            await self.store.mark_completed(exercise.id)
        else:
            await self.store.mark_attempted(exercise.id)

        return result

    def build_command(self, exercise: Exercise, language: Language) -> List[str]:
        """Full argv for the exercise's test runner"""
        command = list(language.profile.test_command)

        if language == Language.JAVASCRIPT:
            command += ['--testPathPattern', self._relative(exercise.test_file), '--no-coverage']
        elif language == Language.PYTHON:
            command.append(self._relative(exercise.test_file))
        elif language == Language.GO:
            directory = exercise.path or os.path.dirname(exercise.test_file)
            command.append('./' + self._relative(directory))
        elif language == Language.RUST:
            command += ['--test', exercise.id]

        return command

    def cancel(self) -> bool:
        """Kill the live test process. Returns False when nothing was running."""
        run = self._active
        if run is None or run.cancelled:
            return False
        self._kill(run)
        self._write("\n\nTest execution cancelled by user.\n")
        logger.info("Cancelled test run for %s", run.exercise_id)
        return True

    async def close(self) -> None:
        """Kill and reap any live test process"""
        await self._terminate_active()

    def _validate(self, exercise: Exercise):
        if not isinstance(exercise, Exercise):
            raise ValidationError("Invalid exercise object - exercise data is missing")
        missing = [name for name in ('id', 'title', 'test_file') if not getattr(exercise, name)]
        if missing:
            raise ValidationError(
                f"Invalid exercise object - missing {', '.join(missing)}"
            )

    def _relative(self, path: str) -> str:
        return Path(os.path.relpath(path, self.workspace_path)).as_posix()

    def _write(self, text: str):
        if self.output_sink:
            self.output_sink(text)

    async def _terminate_active(self):
        while self._active is not None:
            run = self._active
            self._kill(run)
            await run.finished.wait()

    def _kill(self, run: _ActiveRun):
        run.cancelled = True
        process = run.process
        if process is None or process.returncode is not None:
            return
        try:
            if os.name == 'posix':
                # The runner leads its own session; take its children down too
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass

    async def _spawn(self, command: List[str]) -> asyncio.subprocess.Process:
        executable = shutil.which(command[0]) or command[0]
        env = dict(os.environ, FORCE_COLOR='0', NO_COLOR='1')
        extra = {'start_new_session': True} if os.name == 'posix' else {}

        try:
            return await asyncio.create_subprocess_exec(
                executable, *command[1:],
                cwd=self.workspace_path,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                **extra
            )
        except OSError as e:
            raise ProcessSpawnError(f"Could not start '{command[0]}': {e}") from e

    async def _execute(
        self,
        exercise: Exercise,
        command: List[str],
        report: Optional[Callable[[str], None]],
    ) -> TestOutput:
        run = _ActiveRun(exercise.id)
        self._active = run

        try:
            if report:
                report('Starting tests...')

            logger.debug("Running %s in %s", command, self.workspace_path)
            try:
                process = await self._spawn(command)
            except ProcessSpawnError as e:
                logger.warning("%s", e)
                self._write(f"\nError: {e}\n")
                return TestOutput.error(str(e))

            run.process = process
            if run.cancelled:
                self._kill(run)

            chunks: List[str] = []
            pumps = [
                asyncio.ensure_future(self._pump(process.stdout, chunks, report)),
                asyncio.ensure_future(self._pump(process.stderr, chunks, None)),
            ]
            try:
                await asyncio.gather(*pumps)
                exit_code = await process.wait()
            except BaseException:
                # Never leave an untracked process behind, whatever escaped
                self._kill(run)
                for pump in pumps:
                    pump.cancel()
                await asyncio.gather(*pumps, return_exceptions=True)
                await process.wait()
                raise

            output = ''.join(chunks)

            if run.cancelled:
                logger.info("Test run for %s was cancelled", exercise.id)
                return TestOutput.error("\nTest execution cancelled.", output)

            self._write('\n' + RULE + '\n')
            if exit_code == 0:
                self._write("✓ All tests passed!\n")
                result = TestResult.PASSED
            else:
                self._write(f"✗ Tests failed (exit code: {exit_code})\n")
                result = TestResult.FAILED

            logger.info("Tests for %s finished: %s (exit %d)", exercise.id, result.value, exit_code)
            return TestOutput(result=result, output=output, exit_code=exit_code)

        finally:
            if self._active is run:
                self._active = None
            run.finished.set()

    async def _pump(
        self,
        stream: asyncio.StreamReader,
        chunks: List[str],
        report: Optional[Callable[[str], None]],
    ):
        """Copy one pipe into the shared buffer and the live sink"""
        decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        reported = False

        while True:
            data = await stream.read(READ_CHUNK_SIZE)
            if not data:
                break
            text = decoder.decode(data)
            if not text:
                continue
            chunks.append(text)
            self._write(text)
            if report and not reported:
                report('Running tests...')
                reported = True

        tail = decoder.decode(b'', final=True)
        if tail:
            chunks.append(tail)
            self._write(tail)
