"""Tests for session and rubric persistence."""

import pytest

from fairgrade.tools.grading.models import Criterion, CriterionResult, StudentFile, StudentResult
from fairgrade.tools.sessions import (
    TEMPLATE_RUBRICS,
    GradingSession,
    Rubric,
    RubricStore,
    RubricValidationError,
    SessionAccessError,
    SessionNotFoundError,
    SessionStore,
    data_url_to_file,
    file_to_data_url,
    get_template,
    templates_for_subject,
)


@pytest.fixture
def session_store(tmp_path):
    return SessionStore(tmp_path / "sessions")


@pytest.fixture
def rubric_store(tmp_path):
    store = RubricStore(tmp_path / "rubrics")
    store.initialize_defaults()
    return store


def make_session(user_id="teacher-1", **kwargs):
    result = StudentResult(
        id="student-1-abcdefghi", name="alice", score=80, feedback="Excellent work overall!",
        criteria=[CriterionResult(name="Thesis", score=24, max_score=30, feedback="SCORE: 24")],
    )
    kwargs.setdefault('subject', 'english')
    kwargs.setdefault('session_name', 'Midterm essays')
    kwargs.setdefault('results', [result])
    return GradingSession(user_id=user_id, **kwargs)


def make_rubric(user_id="teacher-1", **kwargs):
    kwargs.setdefault('name', 'Lab rubric')
    kwargs.setdefault('subject', 'physics')
    kwargs.setdefault('criteria', [Criterion(name="Method", weight=60), Criterion(name="Results", weight=40)])
    return Rubric(user_id=user_id, **kwargs)


class TestDataUrls:

    def test_round_trip(self):
        original = StudentFile(name="alice.png", data=b"\x89PNG\x00\x01", mime_type="image/png")
        encoded = file_to_data_url(original)

        assert encoded.data_url.startswith("data:image/png;base64,")
        assert data_url_to_file(encoded.data_url, "alice.png") == original

    def test_invalid_data_url(self):
        with pytest.raises(ValueError):
            data_url_to_file("https://example.com/file.png", "file.png")
        with pytest.raises(ValueError):
            data_url_to_file("data:image/png;base64,***", "file.png")


class TestSessionStore:

    def test_save_and_get(self, session_store):
        files = [StudentFile(name="alice.pdf", data=b"%PDF", mime_type="application/pdf")]
        session = make_session(student_files=[file_to_data_url(f) for f in files],
                               rubric_text="Thesis (30%)")
        session_store.save(session)

        loaded = session_store.get(session.id, "teacher-1")

        assert loaded == session
        assert loaded.results[0].criteria[0].max_score == 30
        assert loaded.decoded_files() == files
        assert loaded.average_score == 80.0

    def test_get_missing(self, session_store):
        with pytest.raises(SessionNotFoundError):
            session_store.get("session-404", "teacher-1")

    def test_unsafe_id(self, session_store):
        with pytest.raises(SessionNotFoundError):
            session_store.get("../../etc/passwd", "teacher-1")

    def test_other_user_cannot_read(self, session_store):
        session = session_store.save(make_session())
        with pytest.raises(SessionAccessError):
            session_store.get(session.id, "teacher-2")

    def test_other_user_cannot_overwrite(self, session_store):
        session = session_store.save(make_session())
        hijack = session.model_copy(update={'user_id': 'teacher-2'})
        with pytest.raises(SessionAccessError):
            session_store.save(hijack)
        assert session_store.get(session.id, "teacher-1").user_id == "teacher-1"

    def test_list_owned_newest_first(self, session_store):
        session_store.save(make_session(id="session-1", created_at="2024-01-01T00:00:00+00:00"))
        session_store.save(make_session(id="session-2", created_at="2024-03-01T00:00:00+00:00"))
        session_store.save(make_session(id="session-3", user_id="teacher-2"))

        assert [s.id for s in session_store.list("teacher-1")] == ["session-2", "session-1"]
        assert [s.id for s in session_store.list("teacher-2")] == ["session-3"]

    def test_list_filters(self, session_store):
        session_store.save(make_session(id="session-1", session_name="Midterm essays", subject="english"))
        session_store.save(make_session(id="session-2", session_name="Final exam", subject="math"))

        assert [s.id for s in session_store.list("teacher-1", search="midterm")] == ["session-1"]
        assert [s.id for s in session_store.list("teacher-1", subject="Math")] == ["session-2"]

    def test_delete(self, session_store):
        session = session_store.save(make_session())
        with pytest.raises(SessionAccessError):
            session_store.delete(session.id, "teacher-2")

        session_store.delete(session.id, "teacher-1")
        with pytest.raises(SessionNotFoundError):
            session_store.get(session.id, "teacher-1")

    def test_from_config(self, sample_config):
        store = SessionStore.from_config(sample_config)
        assert store.directory.name == "sessions"
        assert store.directory.exists()


class TestTemplates:

    def test_twelve_templates_total_100(self):
        assert len(TEMPLATE_RUBRICS) == 12
        for template in TEMPLATE_RUBRICS:
            assert template.is_template
            assert sum(c.weight for c in template.criteria) == 100, template.id
            assert template.content.count("%)") == len(template.criteria)

    def test_templates_for_subject(self):
        assert [t.id for t in templates_for_subject("Math")] == ["math-basic", "math-advanced"]
        assert templates_for_subject("music") == []

    def test_get_template(self):
        assert get_template("english-essay").name
        assert get_template("nope") is None


class TestRubricStore:

    def test_initialize_defaults_idempotent(self, tmp_path):
        store = RubricStore(tmp_path / "rubrics")
        assert store.initialize_defaults() == 12
        assert store.initialize_defaults() == 0

    def test_templates_visible_to_everyone(self, rubric_store):
        assert rubric_store.get("physics-lab").is_template
        assert rubric_store.get("physics-lab", "anyone").name == "Physics Lab Report Rubric"
        assert len(rubric_store.list()) == 12

    def test_save_regenerates_content(self, rubric_store):
        saved = rubric_store.save(make_rubric(content="stale"))
        assert saved.content == "Method (60%)\nResults (40%)"
        assert rubric_store.get(saved.id, "teacher-1") == saved

    def test_save_rejects_bad_weights(self, rubric_store):
        with pytest.raises(RubricValidationError, match="Total weight must equal 100%"):
            rubric_store.save(make_rubric(criteria=[Criterion(name="Only", weight=50)]))
        with pytest.raises(RubricValidationError, match="at least one criterion"):
            rubric_store.save(make_rubric(criteria=[]))

    def test_cannot_overwrite_template(self, rubric_store):
        with pytest.raises(SessionAccessError):
            rubric_store.save(make_rubric(id="math-basic"))

    def test_private_to_owner(self, rubric_store):
        saved = rubric_store.save(make_rubric())
        with pytest.raises(SessionAccessError):
            rubric_store.get(saved.id, "teacher-2")
        with pytest.raises(SessionAccessError):
            rubric_store.save(saved.model_copy(update={'user_id': 'teacher-2'}))

    def test_list_filters(self, rubric_store):
        rubric_store.save(make_rubric(name="My physics lab"))
        rubric_store.save(make_rubric(name="Other teacher's", user_id="teacher-2"))

        physics = rubric_store.list("teacher-1", subject="physics")
        assert sorted(r.name for r in physics) == [
            "Basic Physics Rubric", "My physics lab", "Physics Lab Report Rubric"
        ]
        assert [r.name for r in rubric_store.list("teacher-1", search="my physics")] == ["My physics lab"]
        # Search also matches rubric content
        assert any(r.id == "math-basic" for r in rubric_store.list(search="proper working"))

    def test_delete(self, rubric_store):
        saved = rubric_store.save(make_rubric())
        rubric_store.delete(saved.id, "teacher-1")
        with pytest.raises(SessionNotFoundError):
            rubric_store.get(saved.id, "teacher-1")

    def test_cannot_delete_template(self, rubric_store):
        with pytest.raises(SessionAccessError):
            rubric_store.delete("math-basic", "teacher-1")

    def test_duplicate_template(self, rubric_store):
        copy = rubric_store.duplicate("english-essay", "teacher-1")

        assert copy.id != "english-essay"
        assert copy.name.endswith(" (Copy)")
        assert not copy.is_template
        assert copy.user_id == "teacher-1"
        assert copy.criteria == get_template("english-essay").criteria
        assert rubric_store.get(copy.id, "teacher-1") == copy
