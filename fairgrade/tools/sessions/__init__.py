"""Persistence for grading sessions and rubrics."""

from .models import EncodedFile, GradingSession, Rubric, data_url_to_file, file_to_data_url
from .store import (
    RubricStore,
    RubricValidationError,
    SessionAccessError,
    SessionNotFoundError,
    SessionStore,
)
from .templates import TEMPLATE_RUBRICS, get_template, templates_for_subject

__all__ = [
    'EncodedFile',
    'GradingSession',
    'Rubric',
    'data_url_to_file',
    'file_to_data_url',
    'RubricStore',
    'RubricValidationError',
    'SessionAccessError',
    'SessionNotFoundError',
    'SessionStore',
    'TEMPLATE_RUBRICS',
    'get_template',
    'templates_for_subject',
]
