import secrets

from jose import JWTError, jwt
from passlib.context import CryptContext

from ..config import settings

pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

SESSION_ALGORITHM = "HS256"


class PasswordHasher:
    def hash(self, plain: str) -> str: return pwd.hash(plain)
    def verify(self, plain: str, hashed: str) -> bool:
        if not hashed:
            return False
        return pwd.verify(plain, hashed)


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def sign_session_id(sid: str) -> str:
    return jwt.encode({"sid": sid}, settings.SECRET_KEY, algorithm=SESSION_ALGORITHM)


def read_session_cookie(value: str | None) -> str | None:
    """Возвращает sid из подписанной cookie или None, если подпись не сошлась."""
    if not value:
        return None
    try:
        payload = jwt.decode(value, settings.SECRET_KEY, algorithms=[SESSION_ALGORITHM])
    except JWTError:
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) and sid else None
