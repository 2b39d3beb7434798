"""AI-assisted exam grading against weighted rubrics."""

from .answer_check import AnswerKeyChecker, Question
from .batch_grader import BatchGrader, aggregate_score, band_for, improvement_suggestions, summarize
from .grader import CriterionGrader
from .models import (
    Criterion,
    CriterionResult,
    FallbackCriterion,
    GradedCriterion,
    GradingOutcome,
    QuestionResult,
    StudentFile,
    StudentResult,
)
from .response_parser import ResponseParser, ResponseValidationError, extract_suggestions
from .rubric_parser import RubricParser, format_rubric, validate_weights

__all__ = [
    'AnswerKeyChecker',
    'Question',
    'BatchGrader',
    'aggregate_score',
    'band_for',
    'improvement_suggestions',
    'summarize',
    'CriterionGrader',
    'Criterion',
    'CriterionResult',
    'FallbackCriterion',
    'GradedCriterion',
    'GradingOutcome',
    'QuestionResult',
    'StudentFile',
    'StudentResult',
    'ResponseParser',
    'ResponseValidationError',
    'extract_suggestions',
    'RubricParser',
    'format_rubric',
    'validate_weights',
]
