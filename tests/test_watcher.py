#!/usr/bin/env python3
"""
Tests for the watch mode file handler.

Events are fed to the handler directly rather than through a live observer.
"""

import asyncio
import logging

from watchdog.events import DirModifiedEvent, FileModifiedEvent

from basecamp.runner import ExerciseFileHandler, ExerciseWatcher


def run_with_handler(path, scenario):
    """Build a handler bound to a fresh loop and drive scenario(handler, runs)"""
    runs = []

    async def on_change():
        runs.append(path.read_text())

    async def main():
        handler = ExerciseFileHandler(str(path), on_change, asyncio.get_running_loop())
        await scenario(handler)
        if handler._pending is not None:
            await asyncio.wrap_future(handler._pending)

    asyncio.run(main())
    return runs


class TestExerciseFileHandler:
    """Tests for filtering and debouncing change events"""

    def test_change_triggers_run(self, tmp_path):
        source = tmp_path / 'exercise.py'
        source.write_text('x = 1\n')

        async def scenario(handler):
            source.write_text('x = 2\n')
            handler.on_modified(FileModifiedEvent(str(source)))

        assert run_with_handler(source, scenario) == ['x = 2\n']

    def test_unchanged_content_ignored(self, tmp_path):
        source = tmp_path / 'exercise.py'
        source.write_text('x = 1\n')

        async def scenario(handler):
            handler.on_modified(FileModifiedEvent(str(source)))

        assert run_with_handler(source, scenario) == []

    def test_other_files_ignored(self, tmp_path):
        source = tmp_path / 'exercise.py'
        source.write_text('x = 1\n')
        other = tmp_path / 'notes.txt'

        async def scenario(handler):
            source.write_text('x = 2\n')
            other.write_text('hello')
            handler.on_modified(FileModifiedEvent(str(other)))
            handler.on_modified(DirModifiedEvent(str(tmp_path)))

        assert run_with_handler(source, scenario) == []

    def test_rapid_saves_debounced(self, tmp_path):
        source = tmp_path / 'exercise.py'
        source.write_text('x = 1\n')

        async def scenario(handler):
            source.write_text('x = 2\n')
            handler.on_modified(FileModifiedEvent(str(source)))
            await asyncio.wrap_future(handler._pending)
            source.write_text('x = 3\n')
            handler.on_modified(FileModifiedEvent(str(source)))

        assert run_with_handler(source, scenario) == ['x = 2\n']

    def test_save_after_debounce_window(self, tmp_path):
        source = tmp_path / 'exercise.py'
        source.write_text('x = 1\n')

        async def scenario(handler):
            source.write_text('x = 2\n')
            handler.on_modified(FileModifiedEvent(str(source)))
            await asyncio.wrap_future(handler._pending)
            handler.last_modified -= handler.DEBOUNCE_SECONDS
            source.write_text('x = 3\n')
            handler.on_modified(FileModifiedEvent(str(source)))

        assert run_with_handler(source, scenario) == ['x = 2\n', 'x = 3\n']

    def test_failed_run_is_logged(self, tmp_path, caplog):
        source = tmp_path / 'exercise.py'
        source.write_text('x = 1\n')

        async def on_change():
            raise ValueError('runner blew up')

        async def main():
            handler = ExerciseFileHandler(str(source), on_change, asyncio.get_running_loop())
            source.write_text('x = 2\n')
            handler.on_modified(FileModifiedEvent(str(source)))
            await asyncio.wait([asyncio.wrap_future(handler._pending)])

        with caplog.at_level(logging.ERROR, logger='basecamp.runner.file_watcher'):
            asyncio.run(main())

        assert 'runner blew up' in caplog.text


class TestExerciseWatcher:

    def test_start_and_stop(self, tmp_path):
        source = tmp_path / 'exercise.py'
        source.write_text('x = 1\n')

        async def on_change():
            pass

        async def main():
            watcher = ExerciseWatcher(str(source), on_change)
            watcher.start()
            assert watcher.observer.is_alive()
            watcher.stop()
            assert watcher.observer is None

        asyncio.run(main())
