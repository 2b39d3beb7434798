"""Grade one answer file against one rubric criterion with the AI client."""

import asyncio
import logging
from typing import Any, Optional

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from fairgrade.libs.config_loader import ConfigType, get_config
from .models import FallbackCriterion, GradedCriterion, GradingOutcome, StudentFile
from .response_parser import ResponseParser

LOG = logging.getLogger(__name__)

GRADING_PROMPT = """You are an expert {subject} grader. Evaluate this essay based on: {criterion}

Format your response EXACTLY as follows (do not add any extra text or explanations):

SCORE: [number between 0 and {max_score}]

STRENGTHS:
• [key point]
• [key point]

WEAKNESSES:
• [key point]
• [key point]

ANALYSIS:
[2-3 sentences max]

SUGGESTIONS:
• [1-2 key improvements]
• [1-2 key improvements]"""


def fallback_score(max_score: int) -> int:
    """Score used when AI grading fails: floor(70% of max), in integer arithmetic."""
    return max_score * 7 // 10


def fallback_feedback(error: str) -> str:
    return f"Unable to perform AI grading: {error}. Please review manually."


class CriterionGrader:
    """
    Score a single criterion for a single file.

    ``grade`` never raises. Any failure (transport, bad response, timeout)
    becomes a ``FallbackCriterion`` so one bad call cannot abort a batch.
    """

    def __init__(self, client: Any, retries: int = 0, call_timeout: Optional[float] = None,
                 retry_wait_min: float = 1, retry_wait_max: float = 8):
        """
        Args:
            client: Object with ``async generate(prompt, document=None) -> str``
            retries: Extra attempts after the first failure (0 = one-shot)
            call_timeout: Seconds allowed per attempt; None waits indefinitely
            retry_wait_min: Minimum exponential backoff between attempts, in seconds
            retry_wait_max: Maximum exponential backoff between attempts, in seconds
        """
        self.client = client
        self.retries = max(0, int(retries))
        self.call_timeout = call_timeout
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max
        self.parser = ResponseParser()

    @classmethod
    def from_config(cls, client: Any, configs: ConfigType) -> "CriterionGrader":
        return cls(
            client=client,
            retries=get_config("grading.retries", configs, default=0),
            call_timeout=get_config("grading.call_timeout", configs, default=None),
            retry_wait_min=get_config("grading.retry_wait_min", configs, default=1),
            retry_wait_max=get_config("grading.retry_wait_max", configs, default=8),
        )

    def build_prompt(self, criterion_name: str, max_score: int, subject: str = "") -> str:
        return GRADING_PROMPT.format(subject=subject, criterion=criterion_name, max_score=max_score)

    async def grade(self, student_file: StudentFile, criterion_name: str,
                    max_score: int, subject: str = "") -> GradingOutcome:
        """
        Grade one criterion, substituting the fallback outcome on any failure.

        Args:
            student_file: Answer document sent to the model
            criterion_name: Rubric criterion being evaluated
            max_score: Highest score the model may award (the criterion weight)
            subject: Subject name used in the prompt

        Returns:
            GradedCriterion, or FallbackCriterion if grading failed
        """
        prompt = self.build_prompt(criterion_name, max_score, subject)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retries + 1),
                wait=wait_exponential(min=self.retry_wait_min, max=self.retry_wait_max),
                reraise=True,
            ):
                with attempt:
                    return await self._attempt(student_file, prompt, max_score)
        except Exception as e:  # pylint: disable=broad-except
            reason = self._describe(e)
            LOG.warning("AI grading failed for %s / %s: %s", student_file.name, criterion_name, reason)
            return FallbackCriterion(
                score=fallback_score(max_score),
                feedback=fallback_feedback(reason),
                reason=reason,
            )

    async def _attempt(self, student_file: StudentFile, prompt: str, max_score: int) -> GradedCriterion:
        if self.call_timeout:
            response = await asyncio.wait_for(
                self.client.generate(prompt, student_file), timeout=self.call_timeout
            )
        else:
            response = await self.client.generate(prompt, student_file)

        parsed = self.parser.parse(response, max_score)
        return GradedCriterion(score=parsed.score, feedback=parsed.feedback)

    def _describe(self, error: Exception) -> str:
        if isinstance(error, asyncio.TimeoutError):
            return f"AI grading timed out after {self.call_timeout} seconds"
        return str(error) or error.__class__.__name__
