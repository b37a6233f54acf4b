#!/usr/bin/env python3
"""
AI hints for exercises.
Builds a tutoring prompt from the learner's code and failing test output.
"""

import asyncio
import logging
import os
from typing import Optional

import httpx

from .config import get_config_value
from .course.models import Exercise
from .db import ProgressStore
from .errors import HintUnavailableError
from .llm import BaseLLMClient, create_llm_client


logger = logging.getLogger(__name__)

HINT_PROMPT = """You are a helpful and encouraging programming tutor. A student is working on the following exercise:

Exercise: {title}
Description: {description}

Current code:
```
{code}
```
"""

TEST_OUTPUT_SECTION = """
Test output showing failures:
```
{output}
```
"""

HINT_INSTRUCTIONS = """
Provide a helpful hint (NOT the full solution) to guide the student toward fixing the issue. Be encouraging, educational, and focus on the concepts they need to understand. Keep your hint concise (2-4 sentences).

Hint:"""


def build_prompt(exercise: Exercise, exercise_code: str, test_output: Optional[str] = None) -> str:
    prompt = HINT_PROMPT.format(
        title=exercise.title,
        description=exercise.description,
        code=exercise_code,
    )
    if test_output:
        prompt += TEST_OUTPUT_SECTION.format(output=test_output)
    return prompt + HINT_INSTRUCTIONS


class HintProvider:
    """Generates hints and counts them against the course"""

    def __init__(self, store: ProgressStore, llm_client: BaseLLMClient = None):
        self.store = store
        self._llm = llm_client

    @property
    def llm(self) -> BaseLLMClient:
        if self._llm is None:
            self._llm = create_llm_client()
        return self._llm

    def read_exercise_code(self, exercise: Exercise) -> str:
        """Current contents of the learner's source file, empty if missing"""
        if not exercise.exercise_file or not os.path.exists(exercise.exercise_file):
            return ''
        with open(exercise.exercise_file, 'r', encoding='utf-8') as f:
            return f.read()

    async def generate_hint(self, exercise: Exercise, test_output: Optional[str] = None) -> str:
        """
        Ask the model for a hint on the exercise.

        Raises:
            HintUnavailableError: hints disabled, server down, or request failed
        """
        if not get_config_value('enable_hints'):
            raise HintUnavailableError("AI hints are disabled in settings.")

        available = await asyncio.to_thread(self.llm.is_available)
        if not available:
            raise HintUnavailableError(
                "Ollama is not running or not accessible. "
                "Please start Ollama to use AI hints (https://ollama.ai)."
            )

        prompt = build_prompt(exercise, self.read_exercise_code(exercise), test_output)

        try:
            response = await asyncio.to_thread(self.llm.generate, prompt)
        except httpx.HTTPError as e:
            logger.warning("Hint request failed: %s", e)
            raise HintUnavailableError(f"Failed to generate hint: {e}") from e

        await self.store.increment_hints_used()
        return response.content or 'No hint generated'
