import structlog
from fastapi import Depends, Request

from ...application.dto import SessionRecord
from ...application.use_cases.auth_session import AuthSession
from ...domain.entities import Identity, Role
from ...domain.errors import ForbiddenRole, LoginRequired
from .deps import AuthContext, get_auth_context, get_auth_session, get_session

logger = structlog.get_logger(__name__)

LOGIN_NOTICE = "Please login first before accessing this page."


def requested_url(request: Request) -> str:
    url = request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


def require_authenticated(
    request: Request,
    ctx: AuthContext = Depends(get_auth_context),
    session: SessionRecord = Depends(get_session),
    auth: AuthSession = Depends(get_auth_session),
) -> Identity:
    if ctx.identity is None:
        url = requested_url(request)
        auth.capture_return_to(session, url)
        session.flash("err_msg", LOGIN_NOTICE)
        logger.info("access_redirected_to_login", path=url)
        raise LoginRequired(return_to=url)
    return ctx.identity


def require_role(expected: Role):
    if expected not in Role:
        raise ValueError(f"Unknown role: {expected!r}")

    def dependency(identity: Identity = Depends(require_authenticated)) -> Identity:
        if identity.role is not expected:
            logger.info("access_forbidden", user_id=identity.id,
                        role=identity.role.value, expected=expected.value)
            raise ForbiddenRole(expected, identity.role)
        return identity

    dependency.__name__ = f"require_{expected.name.lower()}"
    return dependency


require_student = require_role(Role.STUDENT)
require_teacher = require_role(Role.TEACHER)
