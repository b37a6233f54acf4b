#!/usr/bin/env python3
"""
Basecamp - Course Runner CLI

Usage:
    basecamp --status
    basecamp --run 01-hello-world
    basecamp --run-all
    basecamp --hint 02-variables --with-output
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.prompt import Confirm
from rich.table import Table

from .config import prompt_for_hint_settings
from .course import CourseManager, Exercise, ExerciseStatus, TestResult
from .db import ProgressStore
from .engines import UnlockPolicy
from .errors import BasecampError, ValidationError
from .hints import HintProvider
from .runner import BatchCoordinator, BatchProgress, ExerciseWatcher, RunMode, TestExecutor


STATUS_LABELS = {
    ExerciseStatus.LOCKED: '[dim]🔒 locked[/dim]',
    ExerciseStatus.AVAILABLE: '[cyan]○ available[/cyan]',
    ExerciseStatus.IN_PROGRESS: '[yellow]◐ in progress[/yellow]',
    ExerciseStatus.COMPLETED: '[green]✓ completed[/green]',
}


class Basecamp:
    """Main CLI interface for Basecamp"""

    def __init__(self, workspace: str, console: Console = None, storage_dir: str = None):
        self.console = console or Console()
        self.show_output = True

        self.courses = CourseManager(workspace)
        self.course = self.courses.load_course()

        self.store = ProgressStore(self.course.name, storage_dir)
        self.executor = TestExecutor(workspace, self.store, output_sink=self._write_output)
        self.batch = BatchCoordinator(self.executor)
        self.policy = UnlockPolicy(self.store)
        self.hints = HintProvider(self.store)

    def _write_output(self, text: str):
        if self.show_output:
            self.console.out(text, end='', highlight=False)

    async def open(self):
        """Initialize storage and refresh the cached course totals"""
        await self.store.initialize()
        summary = await self.policy.course_progress(self.courses.exercises)
        await self.store.update_course_metadata(summary.total, summary.completed)

    async def close(self):
        await self.executor.close()
        self.store.close()

    def _require(self, exercise_id: str) -> Exercise:
        exercise = self.courses.get_exercise_by_id(exercise_id)
        if exercise is None:
            raise ValidationError(f"No exercise with id '{exercise_id}' in {self.course.name}")
        return exercise

    async def _is_unlocked(self, exercise: Exercise) -> bool:
        index = self.courses.get_exercise_index(exercise.id)
        return await self.policy.is_unlocked(index, self.courses.exercise_ids())

    async def show_status(self) -> int:
        """Print every exercise with its status"""
        statuses = await self.policy.statuses(self.courses.exercises)
        summary = await self.policy.course_progress(self.courses.exercises)

        table = Table(title=f"{self.course.name} ({self.course.language.value})")
        table.add_column("#", justify="right", style="dim")
        table.add_column("ID")
        table.add_column("Title")
        table.add_column("Status")

        for i, exercise in enumerate(self.courses.exercises, 1):
            table.add_row(str(i), exercise.id, exercise.title, STATUS_LABELS[statuses[exercise.id]])

        self.console.print(table)
        self.console.print(
            f"\nProgress: {summary.completed}/{summary.total} ({summary.percentage}%)"
        )
        return 0

    async def run_exercise(self, exercise_id: str) -> int:
        """Run the tests for one exercise and report the result"""
        exercise = self._require(exercise_id)

        if not await self._is_unlocked(exercise):
            self.console.print(
                f"[yellow]{exercise.title} is locked. "
                f"Complete the previous exercises first.[/yellow]"
            )
            return 1

        await self.store.set_last_exercise(exercise.id)
        output = await self.executor.run_test(
            exercise,
            self.course.language,
            mode=RunMode.INTERACTIVE,
            on_progress=lambda message: self.console.print(f"[dim]{message}[/dim]"),
        )

        if output.result == TestResult.PASSED:
            self.console.print(f"\n[green]✓ {exercise.title} completed! Tests passed.[/green]")
            following = self.courses.get_next_exercise(exercise.id)
            if following:
                self.console.print(f"[cyan]Next: basecamp --run {following.id}[/cyan]")
            return 0

        if output.result == TestResult.FAILED:
            self.console.print(f"\n[red]✗ Tests failed for {exercise.title}[/red]")
            self.console.print(
                f"[dim]Stuck? Try: basecamp --hint {exercise.id} --with-output[/dim]"
            )
        else:
            self.console.print(f"\n[red]Error running tests: {output.output.strip()}[/red]")
        return 1

    async def run_all(self) -> int:
        """Run every exercise's tests with a live progress bar"""
        exercises = self.courses.exercises
        if not exercises:
            self.console.print("No exercises found.")
            return 0

        titles = {exercise.id: exercise.title for exercise in exercises}
        progress_bar = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=self.console,
        )
        task = progress_bar.add_task("Running all tests", total=len(exercises))

        def on_progress(snapshot: BatchProgress):
            current = titles.get(snapshot.current_exercise_id, '')
            progress_bar.update(
                task,
                completed=snapshot.completed,
                description=f"Running {current}" if current else "Running all tests",
            )

        loop = asyncio.get_running_loop()
        cancel_on_interrupt = _add_interrupt_handler(loop, self.batch.cancel)

        self.show_output = False
        try:
            with progress_bar:
                outcome = await self.batch.run_all(exercises, self.course.language, on_progress)
        finally:
            self.show_output = True
            if cancel_on_interrupt:
                loop.remove_signal_handler(signal.SIGINT)

        table = Table(title="Test Summary")
        table.add_column("ID")
        table.add_column("Title")
        table.add_column("Result")
        for exercise in exercises:
            output = outcome.progress.results.get(exercise.id)
            if output is None:
                label = '[dim]not run[/dim]'
            elif output.passed:
                label = '[green]✓ passed[/green]'
            elif output.result == TestResult.FAILED:
                label = '[red]✗ failed[/red]'
            else:
                label = '[red]! error[/red]'
            table.add_row(exercise.id, exercise.title, label)
        self.console.print(table)

        summary = outcome.progress
        if outcome.cancelled:
            self.console.print("[yellow]Tests cancelled by user[/yellow]")
        self.console.print(
            f"Total: {summary.total}  "
            f"[green]Passed: {summary.passed}[/green]  "
            f"[red]Failed: {summary.failed}[/red]"
        )
        return 0 if summary.passed == summary.total else 1

    async def next_exercise(self) -> int:
        """Show the exercise to work on next"""
        exercises = self.courses.exercises
        if not exercises:
            self.console.print("No exercises found.")
            return 0

        last_id = await self.store.get_last_exercise()
        last = self.courses.get_exercise_by_id(last_id) if last_id else None

        if last is None:
            target = await self.policy.first_incomplete(exercises)
        else:
            target = self.courses.get_next_exercise(last.id)
            if target is None:
                self.console.print("You have completed all exercises! 🎉")
                return 0
            if not await self._is_unlocked(target):
                self.console.print(
                    "[yellow]Complete the current exercise to unlock the next one[/yellow]"
                )
                return 1

        await self.store.set_last_exercise(target.id)
        self._show_exercise(target)
        return 0

    def _show_exercise(self, exercise: Exercise):
        body = f"[bold]{exercise.title}[/bold]\n\n{exercise.description}\n\n"
        body += f"[dim]Edit:[/dim] {exercise.exercise_file}\n"
        body += f"[dim]Tests:[/dim] {exercise.test_file}"
        if exercise.readme_file:
            body += f"\n[dim]Instructions:[/dim] {exercise.readme_file}"
        self.console.print(Panel(body, title=exercise.id, border_style="blue"))
        self.console.print(f"[cyan]When ready: basecamp --run {exercise.id}[/cyan]")

    async def show_hint(self, exercise_id: str, with_output: bool = False) -> int:
        """Ask the hint endpoint for a nudge on one exercise"""
        exercise = self._require(exercise_id)

        test_output = None
        if with_output:
            if not await self._is_unlocked(exercise):
                self.console.print(
                    f"[yellow]{exercise.title} is locked. "
                    f"Complete the previous exercises first.[/yellow]"
                )
                return 1
            self.show_output = False
            try:
                result = await self.executor.run_test(exercise, self.course.language, mode=RunMode.SILENT)
            finally:
                self.show_output = True
            if result.passed:
                self.console.print("[green]Tests are already passing - no hint needed.[/green]")
                return 0
            test_output = result.output

        with self.console.status("Generating hint..."):
            hint = await self.hints.generate_hint(exercise, test_output)

        self.console.print(Panel(
            hint,
            title=f"💡 Hint: {exercise.title}",
            subtitle="Use this as a guide, not the complete answer",
            border_style="yellow",
        ))
        return 0

    async def watch(self, exercise_id: str) -> int:
        """Re-run an exercise's tests whenever its file is saved"""
        exercise = self._require(exercise_id)
        if not await self._is_unlocked(exercise):
            self.console.print(f"[yellow]{exercise.title} is locked.[/yellow]")
            return 1

        async def rerun():
            self.console.print(f"\n[dim]{'─' * 70}[/dim]")
            try:
                await self.run_exercise(exercise.id)
            except BasecampError as e:
                self.console.print(f"[red]Error: {e}[/red]")

        loop = asyncio.get_running_loop()
        stop = asyncio.Event()
        stop_on_interrupt = _add_interrupt_handler(loop, stop.set)

        watcher = ExerciseWatcher(exercise.exercise_file, rerun)
        watcher.start(loop)
        self.console.print(
            f"\n[green]Watching {os.path.basename(exercise.exercise_file)} for changes...[/green]"
        )
        self.console.print("[dim]Press Ctrl+C to exit.[/dim]")

        try:
            await stop.wait()
        finally:
            watcher.stop()
            if stop_on_interrupt:
                loop.remove_signal_handler(signal.SIGINT)
        return 0

    async def reset(self, assume_yes: bool = False) -> int:
        if not assume_yes and not Confirm.ask(
            "Are you sure you want to reset all progress? This cannot be undone.",
            console=self.console,
        ):
            return 0
        await self.store.reset_progress()
        self.console.print("Progress reset successfully")
        return 0

    async def show_stats(self) -> int:
        counters = await self.store.get_counters()
        summary = await self.policy.course_progress(self.courses.exercises)
        self.console.print(f"\n[bold]{self.course.name}[/bold]")
        self.console.print(f"Completed: {summary.completed}/{summary.total} ({summary.percentage}%)")
        self.console.print(f"Test runs: {counters.test_runs}")
        self.console.print(f"Hints used: {counters.hints_used}")
        return 0


def _add_interrupt_handler(loop: asyncio.AbstractEventLoop, callback) -> bool:
    """Route Ctrl+C to callback; False where the loop can't install handlers"""
    try:
        loop.add_signal_handler(signal.SIGINT, callback)
    except (NotImplementedError, RuntimeError):
        return False
    return True


async def _dispatch(args, console: Console) -> int:
    app = Basecamp(args.workspace, console=console)
    await app.open()

    try:
        if args.run:
            return await app.run_exercise(args.run)
        if args.run_all:
            return await app.run_all()
        if args.next:
            return await app.next_exercise()
        if args.hint:
            return await app.show_hint(args.hint, with_output=args.with_output)
        if args.watch:
            return await app.watch(args.watch)
        if args.reset:
            return await app.reset(assume_yes=args.yes)
        if args.stats:
            return await app.show_stats()
        return await app.show_status()
    finally:
        await app.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='basecamp',
        description='Basecamp - work through a programming course, one exercise at a time',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  basecamp --status                          # Show exercises and progress
  basecamp --next                            # Show the exercise to work on next
  basecamp --run 01-hello-world              # Run one exercise's tests
  basecamp --run-all                         # Run every exercise (Ctrl+C cancels)
  basecamp --watch 01-hello-world            # Re-run tests on every save
  basecamp --hint 01-hello-world --with-output   # AI hint using failing test output
  basecamp --setup                           # Configure the hint endpoint
        """
    )

    parser.add_argument('--workspace', default=os.getcwd(),
                        help='Course directory containing course.json (default: cwd)')
    parser.add_argument('--status', action='store_true', help='List exercises and their status')
    parser.add_argument('--run', metavar='ID', help='Run tests for one exercise')
    parser.add_argument('--run-all', action='store_true', help='Run tests for every exercise')
    parser.add_argument('--next', action='store_true', help='Show the next exercise to work on')
    parser.add_argument('--hint', metavar='ID', help='Get an AI hint for an exercise')
    parser.add_argument('--with-output', action='store_true',
                        help="Run the tests first (recorded like --run) and include "
                             "the failing output in the hint prompt")
    parser.add_argument('--watch', metavar='ID', help='Re-run tests when the exercise file is saved')
    parser.add_argument('--reset', action='store_true', help='Reset all progress for the course')
    parser.add_argument('-y', '--yes', action='store_true', help='Do not ask for confirmation')
    parser.add_argument('--stats', action='store_true', help='Show test run and hint counters')
    parser.add_argument('--setup', action='store_true', help='Configure the hint endpoint')
    parser.add_argument('-v', '--verbose', action='store_true', help='Show debug logging')
    return parser


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point"""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )

    if args.setup:
        prompt_for_hint_settings()
        return 0

    console = Console()
    try:
        return asyncio.run(_dispatch(args, console))
    except BasecampError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
