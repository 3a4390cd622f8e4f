import json
import threading
import time
from typing import Any, Optional

import redis
import structlog

from ..config import settings

logger = structlog.get_logger(__name__)


class SessionStore:
    def load(self, sid: str) -> Optional[dict]: ...
    def save(self, sid: str, data: dict, ttl: int) -> None: ...
    def delete(self, sid: str) -> None: ...


class RedisSessionStore(SessionStore):
    """Сессии в Redis: JSON под ключом session:<sid>, срок жизни через SETEX."""

    prefix = "session:"

    def __init__(self, client: redis.Redis):
        self.client = client

    def load(self, sid: str) -> Optional[dict]:
        value = self.client.get(self.prefix + sid)
        if not value:
            return None
        try:
            return json.loads(value)
        except ValueError:
            logger.warning("session_payload_corrupt", sid_prefix=sid[:8])
            return None

    def save(self, sid: str, data: dict, ttl: int) -> None:
        self.client.setex(self.prefix + sid, ttl, json.dumps(data, ensure_ascii=False))

    def delete(self, sid: str) -> None:
        self.client.delete(self.prefix + sid)


class MemorySessionStore(SessionStore):
    """Хранилище в памяти процесса, для тестов и локального запуска."""

    def __init__(self, clock=time.monotonic):
        self._data: dict[str, tuple[float, str]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def load(self, sid: str) -> Optional[dict]:
        with self._lock:
            item = self._data.get(sid)
            if item is None:
                return None
            expires_at, payload = item
            if expires_at <= self._clock():
                del self._data[sid]
                return None
        return json.loads(payload)

    def save(self, sid: str, data: dict, ttl: int) -> None:
        with self._lock:
            now = self._clock()
            # заодно убираем просроченные записи
            for key in [k for k, (expires_at, _) in self._data.items() if expires_at <= now]:
                del self._data[key]
            self._data[sid] = (now + ttl, json.dumps(data))

    def delete(self, sid: str) -> None:
        with self._lock:
            self._data.pop(sid, None)

    def __len__(self) -> int:
        return len(self._data)


_store: Optional[SessionStore] = None


def build_session_store(backend: str) -> SessionStore:
    if backend == "memory":
        return MemorySessionStore()
    if backend == "redis":
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        return RedisSessionStore(client)
    raise ValueError(f"Unknown SESSION_BACKEND: {backend!r}")


def get_session_store() -> SessionStore:
    global _store
    if _store is None:
        _store = build_session_store(settings.SESSION_BACKEND)
        logger.info("session_store_ready", backend=settings.SESSION_BACKEND)
    return _store


def set_session_store(store: Any) -> None:
    global _store
    _store = store
