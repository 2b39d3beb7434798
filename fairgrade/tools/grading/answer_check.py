"""Check a student's answer sheet question by question against an answer key."""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, List, Optional

from .models import QuestionResult, StudentFile
from .response_parser import ResponseParser

LOG = logging.getLogger(__name__)

QUESTION_MAX_SCORE = 100

ANSWER_CHECK_PROMPT = """You are a kind and helpful expert grader. Evaluate this student answer based on the expected answer.

Expected Answer: {expected_answer}

Student Answer: {student_answer}

Provide feedback in the following format:
SCORE: [number between 0 and 100]
STRENGTHS: [bullet points of what the student did well]
WEAKNESSES: [bullet points of what the student could improve]
ANALYSIS: [brief analysis of the answer]
SUGGESTIONS: [bullet points of specific suggestions for improvement]

Do not include * or ** or bold text. Use bullet points with • symbol."""


@dataclass
class Question:
    number: int
    expected_answer: str
    suggested_ideas: str = ""
    student_answer: str = ""


def additional_ideas(suggested_ideas: str) -> str:
    ideas = [idea.strip() for idea in suggested_ideas.split(',') if idea.strip()]
    if not ideas:
        return ""
    return "Additional Ideas to Consider:\n" + "\n".join(f"  • {idea}" for idea in ideas)


def total_score(results: List[QuestionResult]) -> float:
    """Mean of the questions that received a score; 0 when none did."""
    scores = [r.score for r in results if r.score is not None]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


class AnswerKeyChecker:
    """Grade each question of one answer sheet against its expected answer."""

    def __init__(self, client: Any):
        self.client = client
        self.parser = ResponseParser()

    async def check_question(self, answer_sheet: StudentFile, question: Question) -> QuestionResult:
        """Grade one question; failures leave the score unset and ask for manual review."""
        prompt = ANSWER_CHECK_PROMPT.format(
            expected_answer=question.expected_answer,
            student_answer=question.student_answer,
        )
        try:
            response = await self.client.generate(prompt, answer_sheet)
            parsed = self.parser.parse(response, QUESTION_MAX_SCORE)
        except Exception as e:  # pylint: disable=broad-except
            LOG.warning("Answer check failed for question %d: %s", question.number, e)
            return QuestionResult(
                number=question.number,
                score=None,
                feedback=f"Unable to generate AI feedback: {e}. Please review manually.",
            )

        feedback = parsed.feedback
        ideas = additional_ideas(question.suggested_ideas)
        if ideas:
            feedback = f"{feedback}\n\n{ideas}"
        return QuestionResult(number=question.number, score=parsed.score, feedback=feedback)

    async def check_async(self, answer_sheet: StudentFile, questions: List[Question],
                          extracted_text: Optional[str] = None) -> List[QuestionResult]:
        """
        Grade all questions concurrently, in question order.

        Args:
            answer_sheet: The scanned answer sheet
            questions: Questions with expected answers
            extracted_text: OCR text used as the student answer where a question has none

        The questions passed in are not modified, so one answer key can be
        reused across answer sheets.
        """
        if extracted_text:
            questions = [
                question if question.student_answer
                else replace(question, student_answer=extracted_text)
                for question in questions
            ]
        return list(await asyncio.gather(*[
            self.check_question(answer_sheet, question) for question in questions
        ]))

    def check(self, answer_sheet: StudentFile, questions: List[Question],
              extracted_text: Optional[str] = None) -> List[QuestionResult]:
        """Synchronous wrapper for check_async."""
        return asyncio.run(self.check_async(answer_sheet, questions, extracted_text))
