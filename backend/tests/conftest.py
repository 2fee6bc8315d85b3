import sys
from pathlib import Path
import uuid
import time

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from skillcourses.db.base import Base
from skillcourses.db import session as session_module
from skillcourses.main import create_app
from skillcourses.core.security import UserRole, create_access_token

# Import models so that they are registered in Base.metadata before create_all.
from skillcourses.models.course import SkillCourse, SkillRound  # noqa: F401
from skillcourses.models.enrollment import ProjectSubmission, SkillEnrollment  # noqa: F401
from skillcourses.models.event import SkillEvent  # noqa: F401


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))

    def flushall(self):
        self._data.clear()
        return True


# Configure test DB (SQLite in-memory) at import time so everything that goes
# through skillcourses.db.session.SessionLocal gets the patched version.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)


# Stub Redis at import time (rate limiting + readiness).
_mem_redis = _MemoryRedis()
import skillcourses.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis


@pytest.fixture()
def memory_redis():
    _mem_redis.flushall()
    return _mem_redis


@pytest.fixture(scope="session")
def client():
    app = create_app()

    # Ensure app dependencies use our session factory.
    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    return TestClient(app)


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


def _headers_for(role: UserRole, user_id: uuid.UUID | None = None) -> dict[str, str]:
    uid = user_id or uuid.uuid4()
    token = create_access_token(user_id=str(uid), role=role.value, name=f"{role.value}_{uid.hex[:6]}")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers():
    """Factory for bearer headers; each call is a fresh identity unless one is given."""
    return _headers_for


@pytest.fixture()
def faculty_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def faculty_headers(faculty_id):
    return _headers_for(UserRole.faculty, faculty_id)


@pytest.fixture()
def student_headers():
    return _headers_for(UserRole.student)


QUIZ_QUESTIONS = [
    {"prompt": f"Question {i + 1}", "options": ["a", "b", "c", "d"], "correct_index": i % 4}
    for i in range(5)
]

# Answers for QUIZ_QUESTIONS, all correct.
QUIZ_KEY = [q["correct_index"] for q in QUIZ_QUESTIONS]


def round_payloads() -> list[dict]:
    return [
        {"round_number": 1, "title": "Basics", "notes": "Read the notes", "video_url": "https://video.example/1"},
        {"round_number": 2, "title": "Check", "questions": QUIZ_QUESTIONS},
        {"round_number": 3, "title": "Build it", "brief": "Build a small thing", "requirements": ["repo", "readme"]},
        {"round_number": 4, "title": "Final", "questions": QUIZ_QUESTIONS},
    ]


@pytest.fixture()
def make_course(client):
    """Create a course as the given faculty member, optionally defining rounds and publishing."""

    def _make(headers, *, rounds=(1, 2, 3, 4), publish=True, pass_threshold=70):
        r = client.post(
            "/skills/courses",
            json={"title": f"Course {uuid.uuid4().hex[:6]}", "pass_threshold": pass_threshold},
            headers=headers,
        )
        assert r.status_code == 200, r.text
        course_id = r.json()["id"]

        for payload in round_payloads():
            if payload["round_number"] in rounds:
                r = client.post(f"/skills/courses/{course_id}/rounds", json=payload, headers=headers)
                assert r.status_code == 200, r.text

        if publish:
            r = client.post(f"/skills/courses/{course_id}/publish", headers=headers)
            assert r.status_code == 200, r.text
        return course_id

    return _make


@pytest.fixture()
def quiz_key() -> list[int]:
    return list(QUIZ_KEY)


@pytest.fixture()
def enrolled(client, make_course, faculty_headers, student_headers):
    """A published course with one enrolled student: (course_id, student headers)."""
    course_id = make_course(faculty_headers)
    r = client.post(f"/skills/courses/{course_id}/enroll", headers=student_headers)
    assert r.status_code == 200, r.text
    return course_id, student_headers
