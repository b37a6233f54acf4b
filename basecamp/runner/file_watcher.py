#!/usr/bin/env python3
"""
File watcher for watch mode.
Re-runs an exercise's tests each time its source file is saved.
"""

import asyncio
import logging
import os
import time
from typing import Awaitable, Callable, Optional

from watchdog.events import FileSystemEventHandler, FileModifiedEvent
from watchdog.observers import Observer


logger = logging.getLogger(__name__)


class ExerciseFileHandler(FileSystemEventHandler):
    """Schedules a test run on the event loop when the watched file changes"""

    DEBOUNCE_SECONDS = 1.5

    def __init__(
        self,
        filepath: str,
        on_change: Callable[[], Awaitable[None]],
        loop: asyncio.AbstractEventLoop,
    ):
        super().__init__()
        self.filepath = os.path.abspath(filepath)
        self.on_change = on_change
        self.loop = loop
        self.last_modified = 0.0
        self.last_content = self._read()
        self._pending = None

    def _read(self) -> Optional[str]:
        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                return f.read()
        except OSError as e:
            logger.warning("Error reading %s: %s", self.filepath, e)
            return None

    def on_modified(self, event):
        """Called from the observer thread when something in the directory changes"""
        if not isinstance(event, FileModifiedEvent):
            return

        if os.path.abspath(event.src_path) != self.filepath:
            return

        # Debounce - editors often write a file several times per save
        current_time = time.time()
        if current_time - self.last_modified < self.DEBOUNCE_SECONDS:
            return
        self.last_modified = current_time

        # Don't queue another run while one is still going
        if self._pending is not None and not self._pending.done():
            return

        code = self._read()
        if code is None or code == self.last_content:
            return
        self.last_content = code

        self._pending = asyncio.run_coroutine_threadsafe(self.on_change(), self.loop)
        self._pending.add_done_callback(self._log_failure)

    def _log_failure(self, future):
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error("Watch run for %s failed: %s", self.filepath, error, exc_info=error)


class ExerciseWatcher:
    """Manages the watchdog observer for one exercise file"""

    def __init__(self, filepath: str, on_change: Callable[[], Awaitable[None]]):
        self.filepath = filepath
        self.on_change = on_change
        self.observer = None
        self.handler = None

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """Start watching; on_change runs on the given (or running) loop"""
        loop = loop or asyncio.get_running_loop()
        self.handler = ExerciseFileHandler(self.filepath, self.on_change, loop)

        self.observer = Observer()
        watch_dir = os.path.dirname(os.path.abspath(self.filepath))
        self.observer.schedule(self.handler, path=watch_dir, recursive=False)
        self.observer.start()
        logger.debug("Watching %s", self.filepath)

    def stop(self):
        """Stop watching"""
        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None
