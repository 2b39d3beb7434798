"""Validate and normalize the semi-structured text returned by the AI grader.

The grader is asked to answer in labelled sections::

    SCORE: 18

    STRENGTHS:
    • point
    • point

    WEAKNESSES:
    • point

    ANALYSIS:
    Two or three sentences of prose.

    SUGGESTIONS:
    • improvement

Models rarely follow the layout exactly, so the reply is read with a small
line scanner: it looks for a header line, then collects lines into that
section until the next header. The normalized text produced here is also what
the review tools read back (see ``extract_suggestions``), so header tokens and
the one-bullet-per-line layout must stay stable.
"""

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

LOG = logging.getLogger(__name__)

BULLET = "•"

SCORE_PATTERN = re.compile(r'SCORE:\s*(?:\*\*)?\s*(\d+)', re.IGNORECASE)

# Optional markdown decoration ("## ", "**") around the header token.
HEADER_PATTERN = re.compile(
    r'^\s*(?:#+\s*)?(?:\*\*)?\s*(SCORE|STRENGTHS|WEAKNESSES|ANALYSIS|SUGGESTIONS)\s*:\s*(?:\*\*)?\s*(.*)$',
    re.IGNORECASE,
)

# "• x", "- x", "* x", "1. x", "2) x"
MARKER_PATTERN = re.compile(r'^(?:[•\-*]+\s*|\d+[.)](?:\s+|$))')


class ResponseValidationError(ValueError):
    """The AI reply did not contain a usable score."""


class SectionKind(str, enum.Enum):
    SCORE = "SCORE"
    STRENGTHS = "STRENGTHS"
    WEAKNESSES = "WEAKNESSES"
    ANALYSIS = "ANALYSIS"
    SUGGESTIONS = "SUGGESTIONS"

    @property
    def is_bulleted(self) -> bool:
        return self in (SectionKind.STRENGTHS, SectionKind.WEAKNESSES, SectionKind.SUGGESTIONS)


class _State(enum.Enum):
    SEEKING_HEADER = "seeking_header"
    IN_SECTION = "in_section"


@dataclass
class FeedbackSection:
    """One labelled section of normalized feedback."""
    kind: SectionKind
    items: List[str] = field(default_factory=list)
    text: str = ""

    def render(self) -> str:
        if self.kind.is_bulleted:
            body = "\n".join(f"{BULLET} {item}" for item in self.items)
        else:
            body = self.text
        return f"{self.kind.value}:\n{body}"

    @property
    def is_empty(self) -> bool:
        return not self.items and not self.text


@dataclass
class ParsedResponse:
    """Validated score plus normalized feedback sections, in reply order."""
    score: int
    sections: List[FeedbackSection] = field(default_factory=list)

    @property
    def feedback(self) -> str:
        """
        Feedback text with one header per line and a blank line between sections.

        Sections keep the order of the reply. The SCORE line goes where the
        first SCORE header was, or first when the score was not on a header line.
        """
        score_line = f"{SectionKind.SCORE.value}: {self.score}"
        parts = []
        for section in self.sections:
            if section.kind is SectionKind.SCORE:
                if score_line not in parts:
                    parts.append(score_line)
            elif not section.is_empty:
                parts.append(section.render())
        if score_line not in parts:
            parts.insert(0, score_line)
        return "\n\n".join(parts)

    def section(self, kind: SectionKind) -> Optional[FeedbackSection]:
        for section in self.sections:
            if section.kind is kind:
                return section
        return None


def normalize_bullets(lines: List[str]) -> List[str]:
    """
    Collapse bullet markup into plain items, one per entry.

    Inline ``•`` separators are split into separate items, leading list markers
    (``•``, ``-``, ``*``, ``1.``, ``2)``) are removed, and blank items dropped.
    """
    items = []
    for line in lines:
        for piece in line.split(BULLET):
            piece = MARKER_PATTERN.sub('', piece.strip()).strip()
            if piece:
                items.append(piece)
    return items


def _normalize_prose(lines: List[str]) -> str:
    return " ".join(" ".join(lines).split())


class ResponseParser:
    """Turn raw AI grader text into a validated ``ParsedResponse``."""

    def parse(self, raw: str, max_score: int) -> ParsedResponse:
        """
        Validate the score and normalize the feedback sections.

        Args:
            raw: Text returned by the model
            max_score: Highest score allowed for the criterion

        Returns:
            ParsedResponse with the score and ordered sections

        Raises:
            ResponseValidationError: If SCORE is missing or outside [0, max_score]
        """
        score = self.extract_score(raw, max_score)
        sections = [
            self._build_section(kind, lines)
            for kind, lines in self._scan(raw)
        ]
        return ParsedResponse(score=score, sections=sections)

    def extract_score(self, raw: str, max_score: int) -> int:
        match = SCORE_PATTERN.search(raw or "")
        if not match:
            LOG.error("Could not find score in AI response: %r", raw)
            raise ResponseValidationError("AI response did not contain a valid score")

        try:
            score = int(match.group(1))
        except ValueError:
            LOG.error("Unparseable score in AI response: %r", match.group(1))
            raise ResponseValidationError("AI response contained an invalid score")

        if score < 0 or score > max_score:
            LOG.error("Invalid score in AI response: %d (max %d)", score, max_score)
            raise ResponseValidationError(
                f"AI response contained an invalid score: {score} is outside 0-{max_score}"
            )
        return score

    def _scan(self, raw: str) -> List[tuple]:
        """Split the reply into (kind, lines) segments in the order they appear."""
        segments = []
        state = _State.SEEKING_HEADER
        current_lines: List[str] = []

        for line in (raw or "").splitlines():
            header = HEADER_PATTERN.match(line)
            if header:
                kind = SectionKind(header.group(1).upper())
                current_lines = []
                rest = header.group(2).strip()
                if rest:
                    current_lines.append(rest)
                segments.append((kind, current_lines))
                state = _State.IN_SECTION
            elif state is _State.IN_SECTION:
                current_lines.append(line)
            # Preamble before the first header is dropped.

        return segments

    @staticmethod
    def _build_section(kind: SectionKind, lines: List[str]) -> FeedbackSection:
        if kind.is_bulleted:
            return FeedbackSection(kind=kind, items=normalize_bullets(lines))
        return FeedbackSection(kind=kind, text=_normalize_prose(lines))


def split_feedback_sections(feedback: str) -> Dict[str, str]:
    """
    Read normalized feedback back into ``{HEADER: body}``.

    Repeated headers are concatenated. The SCORE entry holds just the number.
    """
    sections: Dict[str, str] = {}
    for kind, lines in ResponseParser()._scan(feedback):
        body = "\n".join(line for line in lines if line.strip())
        if kind.value in sections and body:
            sections[kind.value] = f"{sections[kind.value]}\n{body}"
        elif body or kind.value not in sections:
            sections[kind.value] = body
    return sections


def extract_suggestions(feedback: str) -> List[str]:
    """Return the SUGGESTIONS bullet items from normalized feedback, in order."""
    body = split_feedback_sections(feedback).get(SectionKind.SUGGESTIONS.value, "")
    return normalize_bullets(body.splitlines())
