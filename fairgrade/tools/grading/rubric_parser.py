"""Parser for weighted rubric text: one ``<description> (<N>%)`` criterion per line."""

import logging
import re
from pathlib import Path
from typing import List

from pydantic import ValidationError

from .models import Criterion

LOG = logging.getLogger(__name__)

CRITERION_PATTERN = re.compile(r'(.*?)\s*\((\d+)%\)')


class RubricParser:
    """Parse weighted rubric text into an ordered list of criteria."""

    def parse_file(self, rubric_path: Path) -> List[Criterion]:
        """Parse a rubric text file."""
        try:
            content = Path(rubric_path).read_text(encoding='utf-8')
        except OSError as e:
            raise ValueError(f"Could not read rubric file: {e}")
        return self.parse(content)

    def parse(self, content: str) -> List[Criterion]:
        """
        Parse rubric text into criteria, preserving line order.

        Lines that do not look like ``name (N%)`` are skipped so headers and
        comments may appear freely. Empty input yields an empty list.
        """
        criteria = []
        for line_no, line in enumerate(content.splitlines(), start=1):
            match = CRITERION_PATTERN.search(line)
            if not match:
                continue

            try:
                criteria.append(Criterion(name=match.group(1), weight=int(match.group(2))))
            except ValidationError as e:
                LOG.debug("Skipping rubric line %d (%r): %s", line_no, line, e.errors()[0]['msg'])

        return criteria


def format_rubric(criteria: List[Criterion]) -> str:
    """Render criteria back into rubric text, the inverse of RubricParser.parse."""
    return "\n".join(f"{c.name} ({c.weight}%)" for c in criteria)


def total_weight(criteria: List[Criterion]) -> int:
    return sum(c.weight for c in criteria)


def validate_weights(criteria: List[Criterion]) -> None:
    """
    Check the rules a rubric must satisfy before it is saved.

    Grading itself does not need weights to sum to 100 because the aggregate
    score is normalized by the sum of weights.

    Raises:
        ValueError: If there are no criteria or the weights don't total 100
    """
    if not criteria:
        raise ValueError("Rubric must contain at least one criterion")
    total = total_weight(criteria)
    if total != 100:
        raise ValueError(f"Total weight must equal 100% (got {total}%)")
