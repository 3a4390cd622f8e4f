import os
import sys

import pytest

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Настройки читаются при первом импорте coursehub.config
os.environ.setdefault("SESSION_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LINK_RETRY_BACKOFF_SECONDS", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coursehub.domain.entities import Role
from coursehub.infrastructure.db import get_db
from coursehub.infrastructure.models import Base
from coursehub.infrastructure.repositories import CourseRepository, UserRepository
from coursehub.infrastructure.security import PasswordHasher
from coursehub.infrastructure.sessions import MemorySessionStore, set_session_store
from coursehub.main import app

# Тестовая БД в памяти, одно соединение на все сессии
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

PASSWORD = "password123"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def session_store():
    store = MemorySessionStore()
    set_session_store(store)
    yield store
    set_session_store(None)


@pytest.fixture
def client(db, session_store):
    """Клиент с БД в памяти и сессиями в памяти"""
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(username, role=Role.STUDENT, fullname=None, password=PASSWORD):
        repo = UserRepository(db)
        return repo.create(fullname or username.title(), role, username, PasswordHasher().hash(password))
    return _make


@pytest.fixture
def make_course(db):
    def _make(teacher, name="Python 101", description="Intro", price=10.0):
        courses = CourseRepository(db)
        users = UserRepository(db)
        course = courses.create(name, description, price, teacher.fullname, teacher.id)
        current = users.get_by_id(teacher.id)
        users.save(current.with_course(course.id))
        return course
    return _make


@pytest.fixture
def login(client):
    def _login(username, password=PASSWORD):
        return client.post(
            "/login",
            data={"username": username, "password": password},
            follow_redirects=False,
        )
    return _login
