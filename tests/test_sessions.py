import json
from unittest.mock import MagicMock

import pytest

from coursehub.application.dto import RegisterUserInput, SessionRecord
from coursehub.application.use_cases.auth_session import AuthSession, safe_return_to
from coursehub.application.use_cases.register_user import RegisterUser
from coursehub.domain.entities import Role
from coursehub.domain.errors import InvalidCredentials, ValidationError
from coursehub.infrastructure.security import (
    PasswordHasher,
    read_session_cookie,
    sign_session_id,
)
from coursehub.infrastructure.sessions import (
    MemorySessionStore,
    RedisSessionStore,
    build_session_store,
)

from fakes import FakeUsers


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


# --- хранилища сессий

def test_memory_store_roundtrip_and_expiry():
    clock = FakeClock()
    store = MemorySessionStore(clock=clock)

    store.save("sid", {"user_id": 7}, ttl=60)
    assert store.load("sid") == {"user_id": 7}

    clock.now += 61
    assert store.load("sid") is None
    assert len(store) == 0


def test_memory_store_purges_expired_on_save():
    """Тест очистки: брошенные сессии удаляются при следующей записи"""
    clock = FakeClock()
    store = MemorySessionStore(clock=clock)
    store.save("abandoned", {"flashes": [["err_msg", "x"]]}, ttl=60)
    store.save("alive", {"user_id": 1}, ttl=600)

    clock.now += 61
    store.save("fresh", {"user_id": 2}, ttl=60)

    assert len(store) == 2
    assert store.load("alive") == {"user_id": 1}
    assert store.load("abandoned") is None


def test_memory_store_delete():
    store = MemorySessionStore()
    store.save("sid", {"user_id": 7}, ttl=60)

    store.delete("sid")
    store.delete("missing")

    assert store.load("sid") is None


def test_redis_store_uses_setex_with_ttl():
    """Тест Redis-хранилища: запись с TTL под префиксом session:"""
    client = MagicMock()
    store = RedisSessionStore(client)

    store.save("abc", {"user_id": 1, "return_to": None, "flashes": []}, ttl=120)

    key, ttl, payload = client.setex.call_args.args
    assert key == "session:abc"
    assert ttl == 120
    assert json.loads(payload)["user_id"] == 1


def test_redis_store_load_and_delete():
    client = MagicMock()
    client.get.return_value = json.dumps({"user_id": 3})
    store = RedisSessionStore(client)

    assert store.load("abc") == {"user_id": 3}
    client.get.assert_called_with("session:abc")

    client.get.return_value = None
    assert store.load("abc") is None

    client.get.return_value = "{not json"
    assert store.load("abc") is None

    store.delete("abc")
    client.delete.assert_called_with("session:abc")


def test_build_session_store_rejects_unknown_backend():
    with pytest.raises(ValueError):
        build_session_store("memcached")
    assert isinstance(build_session_store("memory"), MemorySessionStore)


# --- cookie

def test_signed_cookie_roundtrip():
    assert read_session_cookie(sign_session_id("sid-123")) == "sid-123"


def test_tampered_cookie_is_rejected():
    token = sign_session_id("sid-123")

    assert read_session_cookie(token[:-2] + "xx") is None
    assert read_session_cookie("garbage") is None
    assert read_session_cookie(None) is None


# --- AuthSession

@pytest.fixture
def users():
    return FakeUsers()


@pytest.fixture
def auth(users):
    sids = iter(f"sid-{i}" for i in range(100))
    return AuthSession(users=users, hasher=PasswordHasher(), new_sid=lambda: next(sids))


@pytest.fixture
def student(users):
    return users.create("Stu", Role.STUDENT, "stu", PasswordHasher().hash("secret"))


def test_authenticate(auth, student):
    assert auth.authenticate("stu", "secret").id == student.id

    with pytest.raises(InvalidCredentials):
        auth.authenticate("stu", "wrong")
    with pytest.raises(InvalidCredentials):
        auth.authenticate("nobody", "secret")


def test_begin_session_stores_only_id(auth, student):
    session = SessionRecord(sid="old")

    auth.begin_session(session, student)

    assert session.user_id == student.id
    assert session.sid != "old"
    assert session.discarded_sid == "old"
    assert "password_hash" not in json.dumps(session.to_dict())


def test_resolve_and_end_session(auth, student):
    session = SessionRecord(sid="s")
    assert auth.resolve_identity(session) is None

    auth.begin_session(session, student)
    assert auth.resolve_identity(session).username == "stu"

    auth.end_session(session)
    assert auth.resolve_identity(session) is None


def test_resolve_vanished_identity(auth, users, student):
    session = SessionRecord(sid="s", user_id=student.id)
    del users.rows[student.id]

    assert auth.resolve_identity(session) is None
    assert session.user_id is None


def test_return_to_is_consumed_once(auth, student):
    """Тест return_to: возвращается один раз и затем очищается"""
    session = SessionRecord(sid="s")
    auth.capture_return_to(session, "/student/index")

    assert auth.post_login_redirect(session, student) == "/student/index"
    assert auth.consume_return_to(session) is None
    assert auth.post_login_redirect(session, student) == "/student/index"


def test_return_to_takes_precedence_over_role(auth, users):
    teacher = users.create("T", Role.TEACHER, "t", "x")
    session = SessionRecord(sid="s")
    auth.capture_return_to(session, "/courses/find?key=a")

    assert auth.post_login_redirect(session, teacher) == "/courses/find?key=a"
    assert auth.post_login_redirect(session, teacher) == "/teacher/index"


@pytest.mark.parametrize("url", ["https://evil.example/x", "//evil.example", "relative/path", "", None])
def test_external_return_to_is_ignored(url):
    assert safe_return_to(url) is None


def test_flash_messages_pop_once():
    session = SessionRecord(sid="s")
    session.flash("err_msg", "boom")

    assert session.pop_flashes() == [("err_msg", "boom")]
    assert session.pop_flashes() == []


# --- регистрация и роли

def test_role_parse():
    assert Role.parse("student") is Role.STUDENT
    assert Role.parse(" Teacher ") is Role.TEACHER
    with pytest.raises(ValueError):
        Role.parse("Admin")


def test_register_user_checks_password_confirmation(users):
    uc = RegisterUser(repo=users, hasher=PasswordHasher())

    with pytest.raises(ValidationError):
        uc.execute(RegisterUserInput("A", "Student", "a", "one", "two"))
    assert users.rows == {}


def test_register_user_rejects_duplicate(users):
    uc = RegisterUser(repo=users, hasher=PasswordHasher())
    uc.execute(RegisterUserInput("A", "Student", "a", "pw", "pw"))

    with pytest.raises(ValidationError):
        uc.execute(RegisterUserInput("B", "Teacher", "a", "pw", "pw"))
    assert len(users.rows) == 1
