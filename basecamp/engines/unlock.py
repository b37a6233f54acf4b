#!/usr/bin/env python3
"""
Unlock policy.
Derives exercise status from attempt records and course order.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from ..course.models import Exercise, ExerciseProgress, ExerciseStatus
from ..db import ProgressStore


Records = Mapping[str, ExerciseProgress]


@dataclass
class CourseProgress:
    """Completed/total summary for a course"""
    completed: int
    total: int
    percentage: int


def _is_completed(exercise_id: str, records: Records) -> bool:
    record = records.get(exercise_id)
    return record is not None and record.completed


def is_unlocked(index: int, ordered_ids: Sequence[str], records: Records) -> bool:
    """The first exercise is always open; later ones need every predecessor completed"""
    if index == 0:
        return True
    return all(_is_completed(exercise_id, records) for exercise_id in ordered_ids[:index])


def status_of(
    exercise_id: str,
    index: int,
    ordered_ids: Sequence[str],
    records: Records,
) -> ExerciseStatus:
    if not is_unlocked(index, ordered_ids, records):
        return ExerciseStatus.LOCKED

    record = records.get(exercise_id)
    if record is None:
        return ExerciseStatus.AVAILABLE
    if record.completed:
        return ExerciseStatus.COMPLETED
    return ExerciseStatus.IN_PROGRESS


def statuses(exercises: Sequence[Exercise], records: Records) -> Dict[str, ExerciseStatus]:
    """Status of every exercise in a course, keyed by id"""
    ordered_ids = [exercise.id for exercise in exercises]
    return {
        exercise_id: status_of(exercise_id, i, ordered_ids, records)
        for i, exercise_id in enumerate(ordered_ids)
    }


def course_progress(exercises: Sequence[Exercise], records: Records) -> CourseProgress:
    total = len(exercises)
    completed = sum(1 for exercise in exercises if _is_completed(exercise.id, records))
    percentage = round(completed / total * 100) if total > 0 else 0
    return CourseProgress(completed=completed, total=total, percentage=percentage)


def first_incomplete(exercises: Sequence[Exercise], records: Records) -> Optional[Exercise]:
    """First exercise without a completed record; the first exercise if all are done"""
    if not exercises:
        return None
    for exercise in exercises:
        if not _is_completed(exercise.id, records):
            return exercise
    return exercises[0]


class UnlockPolicy:
    """Evaluates the unlock rules against a progress store"""

    def __init__(self, store: ProgressStore):
        self.store = store

    async def is_unlocked(self, index: int, ordered_ids: List[str]) -> bool:
        records = await self.store.get_all_progress()
        return is_unlocked(index, ordered_ids, records)

    async def status_of(self, exercise_id: str, index: int, ordered_ids: List[str]) -> ExerciseStatus:
        records = await self.store.get_all_progress()
        return status_of(exercise_id, index, ordered_ids, records)

    async def statuses(self, exercises: Sequence[Exercise]) -> Dict[str, ExerciseStatus]:
        records = await self.store.get_all_progress()
        return statuses(exercises, records)

    async def course_progress(self, exercises: Sequence[Exercise]) -> CourseProgress:
        records = await self.store.get_all_progress()
        return course_progress(exercises, records)

    async def first_incomplete(self, exercises: Sequence[Exercise]) -> Optional[Exercise]:
        records = await self.store.get_all_progress()
        return first_incomplete(exercises, records)
