# tests/conftest.py
import os

# The app module builds its engine on import; keep it off the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coursework.db.database import Base, get_db
from coursework.main import app
from coursework.models.course import Course, CourseInstance
from coursework.models.user import UserRole
from coursework.services.enrollment_service import enroll_student
from tests.factories import NOW, make_template, make_user, publish_now


# Make anyio run on asyncio for the API tests
@pytest.fixture(scope="session", autouse=True)
def anyio_backend():
    return "asyncio"


# ==============================================================
# Database
# ==============================================================
@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
async def client(db):
    """httpx.AsyncClient against the in-process app, bound to the test session."""
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ==============================================================
# Domain fixtures
# ==============================================================
@pytest.fixture
def course(db):
    course = Course(code="CS101", title="Intro to Programming")
    db.add(course)
    db.commit()
    return course


@pytest.fixture
def instance(db, course):
    instance = CourseInstance(course_id=course.course_id, semester="Fall 2026")
    db.add(instance)
    db.commit()
    return instance


@pytest.fixture
def lecturer(db):
    return make_user(db, "Lecturer One", UserRole.lecturer)


@pytest.fixture
def students(db):
    return [make_user(db, f"Student {i}") for i in range(1, 6)]


@pytest.fixture
def student(students):
    return students[0]


@pytest.fixture
def template(db, course):
    return make_template(db, course)


@pytest.fixture
def enrolled(db, instance, student):
    return enroll_student(db, instance.instance_id, student.user_id, now=NOW)


@pytest.fixture
def assignment(db, instance, template, enrolled):
    """Published points assignment: deadline NOW+7d, late window to NOW+9d at 10%."""
    return publish_now(db, instance, template, late_deadline=NOW + timedelta(days=9), late_penalty_percent=10)
