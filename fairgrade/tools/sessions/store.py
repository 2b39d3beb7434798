"""YAML-file persistence for grading sessions and rubrics, with per-user ownership."""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import ValidationError

from fairgrade.libs.config_loader import ConfigType, get_config
from fairgrade.tools.grading.rubric_parser import format_rubric, validate_weights
from .models import GradingSession, Rubric, new_rubric_id
from .templates import TEMPLATE_RUBRICS

LOG = logging.getLogger(__name__)

_SAFE_ID = re.compile(r'^[A-Za-z0-9_.-]+$')


class SessionNotFoundError(KeyError):
    """No stored record with the requested id."""


class SessionAccessError(PermissionError):
    """The record belongs to another user (or is a read-only template)."""


class RubricValidationError(ValueError):
    """A rubric failed the checks required before saving."""


class _YamlDirectory:
    """One YAML document per record, named ``<id>.yaml``."""

    def __init__(self, directory: Path):
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, record_id: str) -> Path:
        if not _SAFE_ID.match(record_id) or record_id.startswith('.'):
            raise SessionNotFoundError(record_id)
        return self.directory / f"{record_id}.yaml"

    def read(self, record_id: str) -> Optional[dict]:
        path = self.path_for(record_id)
        if not path.exists():
            return None
        with open(path, 'r') as f:
            return yaml.safe_load(f)

    def write(self, record_id: str, data: dict):
        path = self.path_for(record_id)
        tmp_path = path.with_suffix('.yaml.tmp')
        with open(tmp_path, 'w') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        tmp_path.replace(path)

    def remove(self, record_id: str):
        self.path_for(record_id).unlink()

    def read_all(self) -> List[dict]:
        records = []
        for path in sorted(self.directory.glob('*.yaml')):
            with open(path, 'r') as f:
                data = yaml.safe_load(f)
            if isinstance(data, dict):
                records.append(data)
            else:
                LOG.warning("Skipping malformed record %s", path)
        return records


class SessionStore:
    """Grading sessions visible only to the user who created them."""

    def __init__(self, directory: Path):
        self._files = _YamlDirectory(directory)

    @classmethod
    def from_config(cls, configs: ConfigType) -> "SessionStore":
        return cls(Path(get_config("storage.sessions_dir", configs)))

    @property
    def directory(self) -> Path:
        return self._files.directory

    def save(self, session: GradingSession) -> GradingSession:
        """Create or replace a session; replacing someone else's session is refused."""
        existing = self._files.read(session.id)
        if existing is not None and existing.get('user_id') != session.user_id:
            raise SessionAccessError(f"Session {session.id} belongs to another user")
        self._files.write(session.id, session.model_dump(mode='json', by_alias=True))
        LOG.info("Saved grading session %s (%d results)", session.id, len(session.results))
        return session

    def get(self, session_id: str, user_id: str) -> GradingSession:
        data = self._files.read(session_id)
        if data is None:
            raise SessionNotFoundError(session_id)
        session = GradingSession.model_validate(data)
        if session.user_id != user_id:
            raise SessionAccessError(f"Session {session_id} belongs to another user")
        return session

    def list(self, user_id: str, search: Optional[str] = None,
             subject: Optional[str] = None) -> List[GradingSession]:
        """Sessions owned by ``user_id``, newest first, optionally filtered by name and subject."""
        sessions = []
        for data in self._files.read_all():
            if data.get('user_id') != user_id:
                continue
            try:
                session = GradingSession.model_validate(data)
            except ValidationError as e:
                LOG.warning("Skipping unreadable session %s: %s", data.get('id'), e)
                continue
            if search and search.lower() not in session.session_name.lower():
                continue
            if subject and subject.lower() != session.subject.lower():
                continue
            sessions.append(session)
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return sessions

    def delete(self, session_id: str, user_id: str):
        self.get(session_id, user_id)
        self._files.remove(session_id)
        LOG.info("Deleted grading session %s", session_id)


class RubricStore:
    """Saved rubrics: built-in templates for everyone plus each user's own."""

    def __init__(self, directory: Path):
        self._files = _YamlDirectory(directory)

    @classmethod
    def from_config(cls, configs: ConfigType) -> "RubricStore":
        return cls(Path(get_config("storage.rubrics_dir", configs)))

    def initialize_defaults(self) -> int:
        """Write any missing built-in templates. Returns how many were added."""
        added = 0
        for template in TEMPLATE_RUBRICS:
            if self._files.read(template.id) is None:
                self._files.write(template.id, template.model_dump(mode='json'))
                added += 1
        if added:
            LOG.info("Installed %d rubric templates", added)
        return added

    def save(self, rubric: Rubric) -> Rubric:
        """
        Validate and store a rubric, regenerating its text content from the criteria.

        Raises:
            RubricValidationError: If a user rubric is empty or its weights don't total 100
            SessionAccessError: If the id belongs to a template or another user's rubric
        """
        if not rubric.is_template:
            try:
                validate_weights(rubric.criteria)
            except ValueError as e:
                raise RubricValidationError(str(e)) from e

        existing = self._files.read(rubric.id)
        if existing is not None:
            if existing.get('is_template') and not rubric.is_template:
                raise SessionAccessError(f"Rubric {rubric.id} is a template and cannot be modified")
            if existing.get('user_id') != rubric.user_id:
                raise SessionAccessError(f"Rubric {rubric.id} belongs to another user")

        rubric = rubric.model_copy(update={'content': format_rubric(rubric.criteria)})
        self._files.write(rubric.id, rubric.model_dump(mode='json'))
        return rubric

    def get(self, rubric_id: str, user_id: Optional[str] = None) -> Rubric:
        data = self._files.read(rubric_id)
        if data is None:
            raise SessionNotFoundError(rubric_id)
        rubric = Rubric.model_validate(data)
        if not rubric.is_template and rubric.user_id != user_id:
            raise SessionAccessError(f"Rubric {rubric_id} belongs to another user")
        return rubric

    def list(self, user_id: Optional[str] = None, subject: Optional[str] = None,
             search: Optional[str] = None) -> List[Rubric]:
        """Templates plus the user's rubrics, filtered by subject and by a name/content search."""
        rubrics = []
        for data in self._files.read_all():
            try:
                rubric = Rubric.model_validate(data)
            except ValidationError as e:
                LOG.warning("Skipping unreadable rubric %s: %s", data.get('id'), e)
                continue
            if not rubric.is_template and rubric.user_id != user_id:
                continue
            if subject and rubric.subject.lower() != subject.lower():
                continue
            if search:
                term = search.lower()
                if term not in rubric.name.lower() and term not in rubric.content.lower():
                    continue
            rubrics.append(rubric)
        return rubrics

    def delete(self, rubric_id: str, user_id: str):
        rubric = self.get(rubric_id, user_id)
        if rubric.is_template:
            raise SessionAccessError(f"Rubric {rubric_id} is a template and cannot be deleted")
        self._files.remove(rubric_id)

    def duplicate(self, rubric_id: str, user_id: str) -> Rubric:
        """Copy a template or an owned rubric into a new rubric owned by ``user_id``."""
        source = self.get(rubric_id, user_id)
        copy = source.model_copy(update={
            'id': new_rubric_id(),
            'name': f"{source.name} (Copy)",
            'created_at': datetime.now(timezone.utc).isoformat(),
            'is_template': False,
            'user_id': user_id,
        })
        return self.save(copy)
