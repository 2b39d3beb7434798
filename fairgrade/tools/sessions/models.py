"""Data models for stored grading sessions and rubrics."""

import base64
import binascii
import re
import secrets
import time
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from fairgrade.tools.grading.models import Criterion, StudentFile, StudentResult

DATA_URL_PATTERN = re.compile(r'^data:(?P<mime>[^;,]*)(?:;[^,]*)?;base64,(?P<data>.*)$', re.DOTALL)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_session_id() -> str:
    return f"session-{int(time.time() * 1000)}"


def new_rubric_id() -> str:
    return f"rubric-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


class EncodedFile(BaseModel):
    """A file stored inline as a base64 data URL."""
    name: str
    data_url: str = Field(repr=False)


def file_to_data_url(student_file: StudentFile) -> EncodedFile:
    encoded = base64.b64encode(student_file.data).decode("ascii")
    return EncodedFile(name=student_file.name, data_url=f"data:{student_file.mime_type};base64,{encoded}")


def data_url_to_file(data_url: str, filename: str) -> StudentFile:
    """
    Decode a base64 data URL back into a file.

    Raises:
        ValueError: If the string is not a base64 data URL
    """
    match = DATA_URL_PATTERN.match(data_url)
    if not match:
        raise ValueError(f"Not a base64 data URL: {data_url[:40]!r}")
    try:
        data = base64.b64decode(match.group('data'), validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload for {filename}: {e}") from e
    return StudentFile(
        name=filename,
        data=data,
        mime_type=match.group('mime') or "application/octet-stream",
    )


class GradingSession(BaseModel):
    """One grading run: inputs, rubric and the per-student results."""
    id: str = Field(default_factory=new_session_id)
    user_id: str
    subject: str
    session_name: str = ""
    student_files: List[EncodedFile] = Field(default_factory=list)
    rubric_file: Optional[EncodedFile] = None
    rubric_text: str = ""
    use_template_rubric: bool = False
    results: List[StudentResult] = Field(default_factory=list)
    created_at: str = Field(default_factory=_now)

    @property
    def average_score(self) -> float:
        if not self.results:
            return 0.0
        return sum(r.score for r in self.results) / len(self.results)

    def decoded_files(self) -> List[StudentFile]:
        return [data_url_to_file(f.data_url, f.name) for f in self.student_files]


class Rubric(BaseModel):
    """A named, reusable rubric. ``content`` is regenerated from ``criteria`` on save."""
    id: str = Field(default_factory=new_rubric_id)
    name: str
    subject: str
    criteria: List[Criterion] = Field(default_factory=list)
    content: str = ""
    description: str = ""
    created_at: str = Field(default_factory=_now)
    is_template: bool = False
    user_id: Optional[str] = None
