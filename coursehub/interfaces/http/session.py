from fastapi import Request
from starlette.concurrency import run_in_threadpool

from ...application.dto import SessionRecord
from ...config import settings
from ...infrastructure.security import new_session_id, read_session_cookie, sign_session_id
from ...infrastructure.sessions import get_session_store


async def load_session(request: Request) -> SessionRecord:
    store = get_session_store()
    sid = read_session_cookie(request.cookies.get(settings.SESSION_COOKIE))
    data = await run_in_threadpool(store.load, sid) if sid else None
    if data is None:
        # пустая сессия не сохраняется, пока в неё ничего не записали
        return SessionRecord(sid=new_session_id())
    return SessionRecord.from_dict(sid, data)


async def persist_session(record: SessionRecord, response) -> None:
    if not record.modified:
        return
    store = get_session_store()
    if record.discarded_sid:
        await run_in_threadpool(store.delete, record.discarded_sid)
    if record.is_empty():
        await run_in_threadpool(store.delete, record.sid)
        response.delete_cookie(settings.SESSION_COOKIE, path="/")
        return
    await run_in_threadpool(store.save, record.sid, record.to_dict(), settings.SESSION_TTL_SECONDS)
    response.set_cookie(
        settings.SESSION_COOKIE,
        sign_session_id(record.sid),
        max_age=settings.SESSION_TTL_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
    )


async def session_middleware(request: Request, call_next):
    record = await load_session(request)
    request.state.session = record
    response = await call_next(request)
    await persist_session(record, response)
    return response
