"""Tests for checking answer sheets against an answer key."""

import pytest

from fairgrade.tools.grading.answer_check import (
    AnswerKeyChecker,
    Question,
    additional_ideas,
    total_score,
)
from fairgrade.tools.grading.models import QuestionResult

from conftest import FakeAIClient


def reply_for(score):
    return f"""SCORE: {score}
STRENGTHS: • Correct formula • Units included
WEAKNESSES: • Skipped a step
ANALYSIS: Mostly right.
SUGGESTIONS: • Show each step"""


def test_additional_ideas():
    assert additional_ideas("energy, momentum , ") == (
        "Additional Ideas to Consider:\n  • energy\n  • momentum"
    )
    assert additional_ideas("") == ""
    assert additional_ideas(" , ") == ""


def test_total_score_ignores_failed_questions():
    results = [
        QuestionResult(number=1, score=80, feedback=""),
        QuestionResult(number=2, score=None, feedback=""),
        QuestionResult(number=3, score=60, feedback=""),
    ]
    assert total_score(results) == 70.0
    assert total_score([QuestionResult(number=1, score=None, feedback="")]) == 0.0


@pytest.mark.asyncio
async def test_check_question(answer_file):
    client = FakeAIClient(lambda prompt, doc: reply_for(85))
    question = Question(number=1, expected_answer="F = ma", suggested_ideas="free-body diagram",
                        student_answer="Force equals mass times acceleration")

    result = await AnswerKeyChecker(client).check_question(answer_file, question)

    assert result.number == 1
    assert result.score == 85
    assert "STRENGTHS:\n• Correct formula\n• Units included" in result.feedback
    assert result.feedback.endswith("Additional Ideas to Consider:\n  • free-body diagram")

    prompt, document = client.calls[0]
    assert "Expected Answer: F = ma" in prompt
    assert "Student Answer: Force equals mass times acceleration" in prompt
    assert document is answer_file


@pytest.mark.asyncio
async def test_check_question_failure_leaves_score_unset(answer_file):
    client = FakeAIClient(lambda prompt, doc: RuntimeError("quota exceeded"))
    result = await AnswerKeyChecker(client).check_question(answer_file, Question(number=2, expected_answer="42"))

    assert result.score is None
    assert result.feedback == "Unable to generate AI feedback: quota exceeded. Please review manually."


@pytest.mark.asyncio
async def test_check_async_fills_answers_from_ocr(answer_file):
    def responder(prompt, document):
        return reply_for(90 if "Expected Answer: 4" in prompt else 150)

    client = FakeAIClient(responder)
    questions = [
        Question(number=1, expected_answer="4"),
        Question(number=2, expected_answer="Paris", student_answer="Lyon"),
    ]

    results = await AnswerKeyChecker(client).check_async(answer_file, questions, extracted_text="1) 4 2) Lyon")

    assert [r.number for r in results] == [1, 2]
    assert results[0].score == 90
    # Out-of-range score is treated as a failure
    assert results[1].score is None
    assert "Student Answer: 1) 4 2) Lyon" in client.calls[0][0]
    assert questions[0].student_answer == ""
    assert questions[1].student_answer == "Lyon"


def test_check_sync(answer_file):
    client = FakeAIClient(lambda prompt, doc: reply_for(50))
    results = AnswerKeyChecker(client).check(answer_file, [Question(number=1, expected_answer="x")])
    assert total_score(results) == 50.0


@pytest.mark.asyncio
async def test_answer_key_reused_across_sheets(answer_file):
    client = FakeAIClient(lambda prompt, doc: reply_for(70))
    checker = AnswerKeyChecker(client)
    answer_key = [Question(number=1, expected_answer="Photosynthesis")]
    second_sheet = answer_file.model_copy(update={'name': "bob.png"})

    await checker.check_async(answer_file, answer_key, extracted_text="first student")
    await checker.check_async(second_sheet, answer_key, extracted_text="second student")

    assert answer_key[0].student_answer == ""
    assert "Student Answer: first student" in client.calls[0][0]
    assert "Student Answer: second student" in client.calls[1][0]
    assert "first student" not in client.calls[1][0]
