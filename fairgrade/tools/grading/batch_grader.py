"""Batch grader: every uploaded file against every rubric criterion, using async/await."""

import asyncio
import logging
import re
import secrets
import string
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from tqdm.asyncio import tqdm

from fairgrade.libs.config_loader import ConfigType, get_config
from .grader import CriterionGrader
from .models import Criterion, CriterionResult, StudentFile, StudentResult
from .response_parser import extract_suggestions
from .rubric_parser import RubricParser

LOG = logging.getLogger(__name__)

BANDS: List[Tuple[int, str]] = [
    (80, "Excellent work overall!"),
    (60, "Good work with room for improvement."),
    (40, "Needs significant improvement."),
]
LOWEST_BAND = "Requires extensive revision."
NO_CRITERIA_BAND = "No grading criteria were provided."

# Criteria scoring below this percentage get improvement suggestions.
SUGGESTION_THRESHOLD = 80

_ID_ALPHABET = string.ascii_lowercase + string.digits


def aggregate_score(criteria_results: List[CriterionResult]) -> int:
    """
    Weighted aggregate on a 0-100 scale, rounded half up.

    The denominator is the sum of the criterion maxima, so rubrics whose
    weights don't add up to 100 still produce a consistent percentage.
    Returns 0 when there is nothing to score.
    """
    total = sum(c.score for c in criteria_results)
    maximum = sum(c.max_score for c in criteria_results)
    if maximum <= 0:
        return 0
    return (200 * total + maximum) // (2 * maximum)


def band_for(score: int, has_criteria: bool = True) -> str:
    """Map an aggregate score to its qualitative description."""
    if not has_criteria:
        return NO_CRITERIA_BAND
    for threshold, label in BANDS:
        if score >= threshold:
            return label
    return LOWEST_BAND


def display_name(filename: str) -> str:
    """Filename with its last extension removed."""
    return re.sub(r'\.[^/.]+$', '', filename)


def new_student_id() -> str:
    suffix = ''.join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"student-{int(time.time() * 1000)}-{suffix}"


def improvement_suggestions(result: StudentResult) -> Dict[str, List[str]]:
    """
    Suggestions for criteria scoring under 80%, keyed by criterion name.

    Suggestions come from the SUGGESTIONS section of each criterion's feedback.
    Fallback criteria have none and are flagged for manual review instead.
    """
    suggestions = {}
    for criterion in result.criteria:
        if criterion.percentage >= SUGGESTION_THRESHOLD:
            continue
        if criterion.status == "fallback":
            suggestions[criterion.name] = ["AI grading failed for this criterion; review manually."]
        else:
            suggestions[criterion.name] = extract_suggestions(criterion.feedback)
    return suggestions


def summarize(results: List[StudentResult]) -> Dict[str, Any]:
    """Class-level statistics for a list of results."""
    if not results:
        return {"students": 0, "average": 0.0, "highest": 0, "lowest": 0, "needs_review": 0}

    scores = [r.score for r in results]
    return {
        "students": len(results),
        "average": round(sum(scores) / len(scores), 1),
        "highest": max(scores),
        "lowest": min(scores),
        "needs_review": sum(1 for r in results if r.needs_review),
    }


class BatchGrader:
    """Grade many answer files against one rubric."""

    def __init__(self, configs: ConfigType, client: Any = None,
                 grader: Optional[CriterionGrader] = None,
                 max_concurrent: Optional[int] = None, show_progress: bool = True):
        """
        Initialize the batch grader.

        Args:
            configs: Configuration dictionary
            client: AI client (created from config when neither client nor grader is given)
            grader: Pre-built criterion grader; takes precedence over client
            max_concurrent: Maximum number of files graded at once (overrides config)
            show_progress: Show a tqdm progress bar while grading
        """
        self.configs = configs
        if grader is None:
            if client is None:
                from fairgrade.libs.llm import create_ai_client
                client = create_ai_client(configs)
            grader = CriterionGrader.from_config(client, configs)
        self.grader = grader

        if max_concurrent is not None:
            self.max_concurrent = max_concurrent
        else:
            self.max_concurrent = get_config("grading.max_concurrent_files", configs, default=1)
        self.max_concurrent = max(1, int(self.max_concurrent))
        self.show_progress = show_progress

        LOG.info(f"BatchGrader initialized with max_concurrent={self.max_concurrent}")

    async def grade_file_async(self, student_file: StudentFile, criteria: List[Criterion],
                               subject: str = "") -> StudentResult:
        """
        Grade one file on all criteria concurrently.

        Results are joined back by rubric position, not completion order.
        """
        outcomes = await asyncio.gather(*[
            self.grader.grade(student_file, criterion.name, criterion.weight, subject)
            for criterion in criteria
        ])

        criteria_results = [
            CriterionResult(
                name=criterion.name,
                score=outcome.score,
                max_score=criterion.weight,
                feedback=outcome.feedback,
                status=outcome.status,
            )
            for criterion, outcome in zip(criteria, outcomes)
        ]

        score = aggregate_score(criteria_results)
        result = StudentResult(
            id=new_student_id(),
            name=display_name(student_file.name),
            score=score,
            feedback=band_for(score, has_criteria=bool(criteria)),
            criteria=criteria_results,
        )

        if result.needs_review:
            LOG.warning(f"{result.name}: {score}/100, some criteria need manual review")
        else:
            LOG.debug(f"Graded {result.name}: {score}/100")
        return result

    async def process_student_answers_async(self, files: List[StudentFile], rubric_text: str,
                                            subject: str = "") -> List[StudentResult]:
        """
        Grade all files against the rubric.

        Args:
            files: Uploaded answer files
            rubric_text: Rubric with one ``name (N%)`` criterion per line
            subject: Subject name used in the grading prompt

        Returns:
            One StudentResult per file, in input order
        """
        criteria = RubricParser().parse(rubric_text)
        if criteria:
            LOG.info(f"Parsed rubric with {len(criteria)} criteria")
        else:
            LOG.warning("Rubric contains no criteria; results will have a score of 0")

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def grade_with_semaphore(student_file: StudentFile) -> StudentResult:
            async with semaphore:
                return await self.grade_file_async(student_file, criteria, subject)

        tasks = [grade_with_semaphore(f) for f in files]
        if self.show_progress:
            return list(await tqdm.gather(*tasks, desc="Grading answers", total=len(tasks)))
        return list(await asyncio.gather(*tasks))

    def process_student_answers(self, files: List[StudentFile], rubric_text: str,
                                subject: str = "") -> List[StudentResult]:
        """Synchronous wrapper for process_student_answers_async."""
        return asyncio.run(self.process_student_answers_async(files, rubric_text, subject))

    def save_summary(self, results: List[StudentResult], output_path: Path):
        """
        Save grading summary to YAML file.

        Args:
            results: List of student results
            output_path: Path to save summary file
        """
        summary = {
            'grading_summary': {
                'timestamp': datetime.now().isoformat(),
                **summarize(results),
            },
            'students': [r.to_yaml_dict() for r in results],
        }

        with open(output_path, 'w') as f:
            yaml.safe_dump(summary, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

        LOG.info(f"Summary saved to {output_path}")
