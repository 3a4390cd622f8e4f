from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...application.dto import SessionRecord
from ...application.use_cases.auth_session import AuthSession
from ...application.use_cases.enrollment import EnrollmentCoordinator
from ...config import settings
from ...domain.entities import Identity, Role
from ...infrastructure.db import get_db
from ...infrastructure.repositories import CourseRepository, UserRepository
from ...infrastructure.security import PasswordHasher, new_session_id


@dataclass(frozen=True)
class AuthContext:
    """Результат разбора сессии на один запрос: пользователь или None."""
    identity: Identity | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def role(self) -> Role | None:
        return self.identity.role if self.identity else None


def get_session(request: Request) -> SessionRecord:
    return request.state.session

def get_user_repository(db: Session = Depends(get_db)) -> UserRepository:
    return UserRepository(db)

def get_course_repository(db: Session = Depends(get_db)) -> CourseRepository:
    return CourseRepository(db)

def get_auth_session(users: UserRepository = Depends(get_user_repository)) -> AuthSession:
    return AuthSession(users=users, hasher=PasswordHasher(), new_sid=new_session_id)

def get_auth_context(
    session: SessionRecord = Depends(get_session),
    auth: AuthSession = Depends(get_auth_session),
) -> AuthContext:
    return AuthContext(identity=auth.resolve_identity(session))

def get_enrollment_coordinator(
    users: UserRepository = Depends(get_user_repository),
    courses: CourseRepository = Depends(get_course_repository),
) -> EnrollmentCoordinator:
    return EnrollmentCoordinator(
        users=users,
        courses=courses,
        write_attempts=settings.LINK_WRITE_ATTEMPTS,
        conflict_attempts=settings.CONFLICT_ATTEMPTS,
        backoff=settings.LINK_RETRY_BACKOFF_SECONDS,
    )
