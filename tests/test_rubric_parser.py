"""Tests for rubric parsing, formatting and weight validation."""

import pytest
from pydantic import ValidationError

from fairgrade.tools.grading.models import Criterion
from fairgrade.tools.grading.rubric_parser import (
    RubricParser,
    format_rubric,
    total_weight,
    validate_weights,
)


class TestCriterion:
    """Test the Criterion model."""

    def test_name_is_stripped(self):
        criterion = Criterion(name="  Grammar  ", weight=15)
        assert criterion.name == "Grammar"

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            Criterion(name="   ", weight=10)

    def test_weight_range(self):
        with pytest.raises(ValidationError):
            Criterion(name="Too much", weight=101)
        with pytest.raises(ValidationError):
            Criterion(name="Negative", weight=-1)

    def test_frozen(self):
        criterion = Criterion(name="Thesis", weight=30)
        with pytest.raises(ValidationError):
            criterion.weight = 40


class TestRubricParser:
    """Test rubric parsing functionality."""

    def test_parse_basic(self):
        rubric = """Thesis and argument development (30%)
Evidence and supporting details (25%)
Organization and structure (20%)
Grammar and mechanics (15%)
Style and voice (10%)"""
        criteria = RubricParser().parse(rubric)

        assert [c.name for c in criteria] == [
            "Thesis and argument development",
            "Evidence and supporting details",
            "Organization and structure",
            "Grammar and mechanics",
            "Style and voice",
        ]
        assert [c.weight for c in criteria] == [30, 25, 20, 15, 10]

    def test_non_matching_lines_are_skipped(self):
        rubric = """# Midterm rubric
Grading is out of 100 points.

Accuracy (60%)
Presentation (40%)
-- end --"""
        criteria = RubricParser().parse(rubric)

        assert len(criteria) == 2
        assert criteria[0] == Criterion(name="Accuracy", weight=60)
        assert criteria[1] == Criterion(name="Presentation", weight=40)

    def test_empty_input(self):
        assert RubricParser().parse("") == []
        assert RubricParser().parse("no weights here\nnor here") == []

    def test_invalid_lines_dropped(self):
        rubric = "(30%)\nHuge (150%)\nValid (20%)"
        criteria = RubricParser().parse(rubric)
        assert criteria == [Criterion(name="Valid", weight=20)]

    def test_parenthesized_text_in_name(self):
        criteria = RubricParser().parse("Lab work (practical) (40%)")
        assert criteria == [Criterion(name="Lab work (practical)", weight=40)]

    def test_numbered_template_lines_keep_prefix(self):
        criteria = RubricParser().parse("1. Correct answer (50%)\n2. Proper working/steps (50%)")
        assert [c.name for c in criteria] == ["1. Correct answer", "2. Proper working/steps"]

    def test_windows_line_endings(self):
        criteria = RubricParser().parse("Thesis (30%)\r\nGrammar (70%)\r\n")
        assert [c.weight for c in criteria] == [30, 70]

    def test_parse_file(self, tmp_path):
        path = tmp_path / "rubric.txt"
        path.write_text("Thesis (30%)\nGrammar (70%)\n", encoding="utf-8")
        criteria = RubricParser().parse_file(path)
        assert len(criteria) == 2

    def test_parse_missing_file(self, tmp_path):
        with pytest.raises(ValueError, match="Could not read rubric file"):
            RubricParser().parse_file(tmp_path / "missing.txt")


class TestFormatting:
    """Formatting is the inverse of parsing."""

    def test_format_example(self):
        criteria = [Criterion(name="Thesis", weight=30), Criterion(name="Grammar", weight=70)]
        assert format_rubric(criteria) == "Thesis (30%)\nGrammar (70%)"

    @pytest.mark.parametrize("criteria", [
        [],
        [Criterion(name="Thesis", weight=30), Criterion(name="Grammar", weight=70)],
        [Criterion(name="Zero weight", weight=0), Criterion(name="Full", weight=100)],
        [Criterion(name="Use of evidence (quotes)", weight=45), Criterion(name="A", weight=55)],
        [Criterion(name="Historical/social understanding", weight=30),
         Criterion(name="Thesis", weight=30),
         Criterion(name="Thesis", weight=40)],
    ])
    def test_round_trip(self, criteria):
        assert RubricParser().parse(format_rubric(criteria)) == criteria


class TestWeights:
    """Test weight validation used when saving rubrics."""

    def test_total_weight(self):
        criteria = [Criterion(name="A", weight=40), Criterion(name="B", weight=40), Criterion(name="C", weight=40)]
        assert total_weight(criteria) == 120

    def test_validate_ok(self):
        validate_weights([Criterion(name="A", weight=60), Criterion(name="B", weight=40)])

    def test_validate_wrong_total(self):
        with pytest.raises(ValueError, match="Total weight must equal 100%"):
            validate_weights([Criterion(name="A", weight=60), Criterion(name="B", weight=30)])

    def test_validate_empty(self):
        with pytest.raises(ValueError, match="at least one criterion"):
            validate_weights([])
