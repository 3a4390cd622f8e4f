from typing import Callable
from urllib.parse import urlparse

import structlog

from ...domain.entities import Identity, Role
from ...domain.errors import InvalidCredentials
from ..dto import SessionRecord
from ..ports import IPasswordHasher, IUserRepository

logger = structlog.get_logger(__name__)

LANDING_PAGES = {
    Role.STUDENT: "/student/index",
    Role.TEACHER: "/teacher/index",
}


def safe_return_to(url: str | None) -> str | None:
    """Пропускает только локальные пути, без схемы и хоста."""
    if not url:
        return None
    parsed = urlparse(url)
    if parsed.scheme or parsed.netloc or not parsed.path.startswith("/"):
        return None
    if parsed.path.startswith("//"):
        return None
    return url


class AuthSession:
    """Вход, привязка сессии к пользователю и возврат на исходную страницу.

    В сессии хранится только id пользователя; полная запись перечитывается
    из каталога пользователей на каждом запросе.
    """

    def __init__(self, users: IUserRepository, hasher: IPasswordHasher,
                 new_sid: Callable[[], str]):
        self.users = users
        self.hasher = hasher
        self.new_sid = new_sid

    def authenticate(self, username: str, password: str) -> Identity:
        identity = self.users.get_by_username((username or "").strip())
        if not identity or not self.hasher.verify(password or "", identity.password_hash):
            raise InvalidCredentials("Invalid username or password.")
        return identity

    def begin_session(self, session: SessionRecord, identity: Identity) -> SessionRecord:
        # новый sid при входе, return_to и flash переезжают вместе с записью
        session.discarded_sid = session.sid
        session.sid = self.new_sid()
        session.user_id = identity.id
        session.modified = True
        return session

    def resolve_identity(self, session: SessionRecord) -> Identity | None:
        if session.user_id is None:
            return None
        identity = self.users.get_by_id(session.user_id)
        if identity is None:
            logger.info("session_identity_vanished", user_id=session.user_id)
            session.user_id = None
            session.modified = True
        return identity

    def capture_return_to(self, session: SessionRecord, url: str) -> None:
        safe = safe_return_to(url)
        if safe is None:
            return
        session.return_to = safe
        session.modified = True

    def consume_return_to(self, session: SessionRecord) -> str | None:
        url = session.return_to
        if url is not None:
            session.return_to = None
            session.modified = True
        return safe_return_to(url)

    def end_session(self, session: SessionRecord) -> None:
        session.discarded_sid = session.sid
        session.sid = self.new_sid()
        session.user_id = None
        session.return_to = None
        session.modified = True

    def post_login_redirect(self, session: SessionRecord, identity: Identity) -> str:
        # return_to важнее страницы по умолчанию для роли
        return self.consume_return_to(session) or LANDING_PAGES[identity.role]
