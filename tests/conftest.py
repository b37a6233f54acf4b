#!/usr/bin/env python3
"""
Shared fixtures for the Basecamp test suite.
"""

import asyncio
import json

import pytest

from basecamp.course import Exercise
from basecamp.db import ProgressStore
from basecamp.runner import TestExecutor


COURSE_EXERCISES = [
    {'id': 'a-hello', 'title': 'Hello', 'description': 'Print a greeting', 'order': 0},
    {'id': 'b-vars', 'title': 'Variables', 'description': 'Bind some names', 'order': 1},
    {'id': 'c-loops', 'title': 'Loops', 'description': 'Repeat yourself', 'order': 2},
]


@pytest.fixture(autouse=True)
def basecamp_home(tmp_path, monkeypatch):
    """Keep config and storage out of the real home directory"""
    home = tmp_path / 'home'
    monkeypatch.setenv('BASECAMP_HOME', str(home))
    monkeypatch.delenv('BASECAMP_OLLAMA_URL', raising=False)
    monkeypatch.delenv('BASECAMP_OLLAMA_MODEL', raising=False)
    return home


@pytest.fixture
def course_dir(tmp_path):
    """A three exercise Python course on disk"""
    root = tmp_path / 'course'
    root.mkdir()
    (root / 'course.json').write_text(json.dumps({
        'name': 'Python Basics',
        'description': 'Learn Python',
        'author': 'Basecamp',
        'version': '1.0.0',
        'language': 'python',
        # Listed out of order on purpose
        'exercises': list(reversed(COURSE_EXERCISES)),
    }))

    for entry in COURSE_EXERCISES:
        exercise_dir = root / 'exercises' / entry['id']
        exercise_dir.mkdir(parents=True)
        (exercise_dir / 'exercise.py').write_text('# your code here\n')
        (exercise_dir / f"test_{entry['id']}.py").write_text('def test_it():\n    pass\n')
        (exercise_dir / 'README.md').write_text(f"# {entry['title']}\n")

    return root


@pytest.fixture
def store(tmp_path):
    progress_store = ProgressStore('Python Basics', storage_dir=str(tmp_path / 'storage'))
    asyncio.run(progress_store.initialize())
    yield progress_store
    progress_store.close()


@pytest.fixture
def workspace(tmp_path):
    path = tmp_path / 'workspace'
    path.mkdir()
    return path


@pytest.fixture
def exercise(workspace):
    exercise_dir = workspace / 'exercises' / 'a-hello'
    exercise_dir.mkdir(parents=True)
    test_file = exercise_dir / 'test_a-hello.py'
    test_file.write_text('def test_it():\n    pass\n')
    return Exercise(
        id='a-hello',
        title='Hello',
        description='Print a greeting',
        order=0,
        path=str(exercise_dir),
        exercise_file=str(exercise_dir / 'exercise.py'),
        test_file=str(test_file),
    )


@pytest.fixture
def executor(workspace, store):
    runner = TestExecutor(str(workspace), store)
    yield runner
    asyncio.run(runner.close())
