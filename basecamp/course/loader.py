#!/usr/bin/env python3
"""
Course loader.
Reads course.json from a workspace and resolves each exercise's files.
"""

import fnmatch
import json
import logging
import os
from typing import List, Optional

from ..errors import CourseLoadError
from .models import Course, Exercise, Language


logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ['name', 'description', 'author', 'version', 'language', 'exercises']


class CourseManager:
    """Loads a course and answers navigation questions about it"""

    def __init__(self, workspace_path: str):
        self.workspace_path = os.path.abspath(workspace_path)
        self.course: Optional[Course] = None
        self.exercises: List[Exercise] = []

    def load_course(self) -> Course:
        """Load course.json and the exercises it lists"""
        course_json_path = os.path.join(self.workspace_path, 'course.json')

        if not os.path.exists(course_json_path):
            raise CourseLoadError(f"course.json not found in {self.workspace_path}")

        try:
            with open(course_json_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise CourseLoadError(f"Invalid course.json: {e}") from e

        if not isinstance(data, dict):
            raise CourseLoadError("Invalid course structure")

        missing = [name for name in REQUIRED_FIELDS if name not in data]
        if missing:
            raise CourseLoadError(f"Invalid course structure, missing: {', '.join(missing)}")

        language = Language.parse(data['language'])

        self.exercises = self._load_exercises(data['exercises'], language)
        self.course = Course(
            name=data['name'],
            description=data['description'],
            author=data['author'],
            version=str(data['version']),
            language=language,
            exercises=self.exercises,
        )
        logger.debug("Loaded course %s with %d exercises", self.course.name, len(self.exercises))
        return self.course

    def _load_exercises(self, entries: List[dict], language: Language) -> List[Exercise]:
        """Resolve exercise directories, skipping ones with missing files"""
        profile = language.profile
        exercises = []

        for metadata in entries:
            exercise_id = metadata.get('id', '')
            exercise_path = os.path.join(self.workspace_path, 'exercises', exercise_id)

            if not exercise_id or not os.path.isdir(exercise_path):
                logger.warning("Exercise directory not found: %s", exercise_id)
                continue

            exercise_file = self._find_file(
                exercise_path, f"exercise{profile.exercise_file_extension}"
            )
            test_file = self._find_file(
                exercise_path, profile.test_file_pattern.replace('*', exercise_id)
            )
            readme_file = self._find_file(exercise_path, 'README.md')

            if not exercise_file or not test_file:
                logger.warning("Missing files for exercise: %s", exercise_id)
                continue

            exercises.append(Exercise(
                id=exercise_id,
                title=metadata.get('title', ''),
                description=metadata.get('description', ''),
                order=int(metadata.get('order', 0)),
                path=exercise_path,
                exercise_file=exercise_file,
                test_file=test_file,
                readme_file=readme_file,
            ))

        exercises.sort(key=lambda ex: ex.order)
        return exercises

    def _find_file(self, directory: str, pattern: str) -> str:
        """Exact name first, then a glob match; empty string when absent"""
        files = sorted(os.listdir(directory))

        if pattern in files:
            return os.path.join(directory, pattern)

        for name in files:
            if fnmatch.fnmatch(name, pattern):
                return os.path.join(directory, name)

        return ''

    def get_exercise_by_id(self, exercise_id: str) -> Optional[Exercise]:
        for exercise in self.exercises:
            if exercise.id == exercise_id:
                return exercise
        return None

    def get_exercise_by_index(self, index: int) -> Optional[Exercise]:
        if 0 <= index < len(self.exercises):
            return self.exercises[index]
        return None

    def get_exercise_index(self, exercise_id: str) -> int:
        """Position of an exercise in course order, -1 if unknown"""
        for i, exercise in enumerate(self.exercises):
            if exercise.id == exercise_id:
                return i
        return -1

    def get_next_exercise(self, current_id: str) -> Optional[Exercise]:
        index = self.get_exercise_index(current_id)
        if index == -1 or index == len(self.exercises) - 1:
            return None
        return self.exercises[index + 1]

    def get_previous_exercise(self, current_id: str) -> Optional[Exercise]:
        index = self.get_exercise_index(current_id)
        if index <= 0:
            return None
        return self.exercises[index - 1]

    def exercise_ids(self) -> List[str]:
        """Exercise identifiers in course order"""
        return [exercise.id for exercise in self.exercises]
