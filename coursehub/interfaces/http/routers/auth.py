import structlog
from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse

from ....application.dto import RegisterUserInput, SessionRecord
from ....application.use_cases.auth_session import AuthSession
from ....application.use_cases.register_user import RegisterUser
from ....domain.errors import InvalidCredentials, ValidationError
from ....infrastructure.metrics import logins_total, registrations_total
from ....infrastructure.repositories import UserRepository
from ....infrastructure.security import PasswordHasher
from ..deps import AuthContext, get_auth_context, get_auth_session, get_session, get_user_repository
from ..views import render

router = APIRouter(tags=["auth"])
logger = structlog.get_logger(__name__)


def redirect(url: str, code: int = status.HTTP_302_FOUND) -> RedirectResponse:
    return RedirectResponse(url, status_code=code)


@router.get("/")
def index(request: Request, ctx: AuthContext = Depends(get_auth_context)):
    return render(request, "index.html", ctx.identity)


@router.get("/login")
def login_page(request: Request, ctx: AuthContext = Depends(get_auth_context)):
    return render(request, "login.html", ctx.identity)


@router.post("/login")
def login(
    username: str = Form(""),
    password: str = Form(""),
    session: SessionRecord = Depends(get_session),
    auth: AuthSession = Depends(get_auth_session),
):
    try:
        identity = auth.authenticate(username, password)
    except InvalidCredentials as e:
        logins_total.labels(outcome="failed").inc()
        logger.info("login_failed", username=username)
        session.flash("err_msg", str(e))
        return redirect("/login", status.HTTP_303_SEE_OTHER)

    auth.begin_session(session, identity)
    target = auth.post_login_redirect(session, identity)
    logins_total.labels(outcome="ok").inc()
    logger.info("login_succeeded", user_id=identity.id, role=identity.role.value, redirect=target)
    return redirect(target, status.HTTP_303_SEE_OTHER)


@router.get("/logout")
def logout(
    session: SessionRecord = Depends(get_session),
    auth: AuthSession = Depends(get_auth_session),
):
    logger.info("logout", user_id=session.user_id)
    auth.end_session(session)
    return redirect("/")


@router.get("/register")
def register_page(request: Request, ctx: AuthContext = Depends(get_auth_context)):
    return render(request, "register.html", ctx.identity)


@router.post("/register")
def register(
    fullname: str = Form(""),
    usertype: str = Form(""),
    username: str = Form(""),
    password: str = Form(""),
    password2: str = Form(""),
    session: SessionRecord = Depends(get_session),
    users: UserRepository = Depends(get_user_repository),
):
    uc = RegisterUser(repo=users, hasher=PasswordHasher())
    try:
        user = uc.execute(RegisterUserInput(fullname, usertype, username, password, password2))
    except ValidationError as e:
        registrations_total.labels(outcome="rejected").inc()
        logger.info("registration_rejected", username=username, reason=str(e))
        session.flash("err_msg", str(e))
        return redirect("/register", status.HTTP_303_SEE_OTHER)

    registrations_total.labels(outcome="ok").inc()
    logger.info("user_registered", user_id=user.id, role=user.role.value)
    session.flash("success_msg", "Account has been created. You can login now.")
    return redirect("/login", status.HTTP_303_SEE_OTHER)
