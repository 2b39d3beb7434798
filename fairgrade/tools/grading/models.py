"""Pydantic models for rubric criteria, grading outcomes and student results."""

import mimetypes
from pathlib import Path
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Criterion(BaseModel):
    """Single weighted rubric criterion.

    The weight is both the percentage contribution to the overall score and
    the maximum raw score the model may award for this criterion.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Name of the grading criterion")
    weight: int = Field(ge=0, le=100, description="Percentage weight and maximum score")

    @field_validator('name')
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("criterion name must not be empty")
        return value


class StudentFile(BaseModel):
    """An uploaded answer (or rubric) file held in memory."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Original filename, including extension")
    data: bytes = Field(repr=False, description="Raw file contents")
    mime_type: str = Field(default="application/octet-stream")

    @classmethod
    def from_path(cls, path: Path) -> "StudentFile":
        """Read a file from disk, guessing its MIME type from the extension."""
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            data=path.read_bytes(),
            mime_type=mime_type or "application/octet-stream",
        )


class GradedCriterion(BaseModel):
    """A score and feedback produced by the model and validated."""
    status: Literal["ok"] = "ok"
    score: int = Field(ge=0, description="Points awarded, 0..max_score")
    feedback: str = Field(description="Normalized sectioned feedback text")


class FallbackCriterion(BaseModel):
    """Placeholder substituted when the model could not be used; needs manual review."""
    status: Literal["fallback"] = "fallback"
    score: int = Field(ge=0, description="Deterministic fallback score")
    feedback: str = Field(description="Failure notice shown to the teacher")
    reason: str = Field(description="Error that caused the fallback")


GradingOutcome = Annotated[Union[GradedCriterion, FallbackCriterion], Field(discriminator="status")]


class CriterionResult(BaseModel):
    """Per-criterion entry of a student's result."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    score: int
    max_score: int = Field(alias="maxScore")
    feedback: str
    status: Literal["ok", "fallback"] = "ok"

    @property
    def percentage(self) -> float:
        if self.max_score == 0:
            return 0.0
        return self.score / self.max_score * 100


class StudentResult(BaseModel):
    """Aggregated grading result for one uploaded file."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(description="Filename without its extension")
    score: int = Field(ge=0, le=100, description="Weighted aggregate score")
    feedback: str = Field(description="Qualitative band for the aggregate score")
    criteria: List[CriterionResult] = Field(default_factory=list)

    @property
    def needs_review(self) -> bool:
        """True when any criterion fell back to the manual-review placeholder."""
        return any(c.status == "fallback" for c in self.criteria)

    def to_yaml_dict(self) -> dict:
        """Convert to dictionary suitable for YAML serialization."""
        return {
            'id': self.id,
            'name': self.name,
            'score': self.score,
            'feedback': self.feedback,
            'criteria': [
                {
                    'name': c.name,
                    'score': c.score,
                    'maxScore': c.max_score,
                    'feedback': c.feedback,
                    'status': c.status,
                }
                for c in self.criteria
            ],
        }


class QuestionResult(BaseModel):
    """Outcome of checking one question against its expected answer."""
    number: int
    score: Optional[int] = Field(default=None, description="0..100, None when grading failed")
    feedback: str
