from contextlib import contextmanager
from dataclasses import replace

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..application.ports import ICourseRepository, IUserRepository
from ..domain.entities import Course, Identity, Role
from ..domain.errors import ConcurrencyConflict, PersistenceError, ValidationError
from .models import CourseORM, UserORM


def to_domain_user(u: UserORM) -> Identity:
    return Identity(
        id=u.id,
        fullname=u.fullname,
        role=Role(u.role),
        username=u.username,
        password_hash=u.password_hash,
        courses=tuple(u.courses or ()),
        version=u.version,
    )


def to_domain_course(c: CourseORM) -> Course:
    return Course(
        id=c.id,
        name=c.name,
        description=c.description or "",
        price=c.price,
        author_name=c.author_name,
        author_id=c.author_id,
        students=tuple(c.students or ()),
        version=c.version,
    )


@contextmanager
def storage_errors(db: Session):
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(str(e)) from e


class UserRepository(IUserRepository):
    def __init__(self, db: Session): self.db = db

    def get_by_id(self, user_id: int) -> Identity | None:
        with storage_errors(self.db):
            row = self.db.query(UserORM).filter(UserORM.id == user_id).first()
        return to_domain_user(row) if row else None

    def get_by_username(self, username: str) -> Identity | None:
        with storage_errors(self.db):
            row = self.db.query(UserORM).filter(UserORM.username == username).first()
        return to_domain_user(row) if row else None

    def list_by_ids(self, ids) -> list[Identity]:
        wanted = list(dict.fromkeys(i for i in ids if isinstance(i, int)))
        if not wanted:
            return []
        with storage_errors(self.db):
            rows = self.db.query(UserORM).filter(UserORM.id.in_(wanted)).all()
        by_id = {r.id: r for r in rows}
        return [to_domain_user(by_id[i]) for i in wanted if i in by_id]

    def create(self, fullname: str, role: Role, username: str, password_hash: str) -> Identity:
        row = UserORM(fullname=fullname, role=role.value, username=username,
                      password_hash=password_hash, courses=[], version=0)
        try:
            self.db.add(row); self.db.commit(); self.db.refresh(row)
        except IntegrityError as e:
            self.db.rollback()
            raise ValidationError("Username has already been registered. Please check.") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(str(e)) from e
        return to_domain_user(row)

    def save(self, identity: Identity) -> Identity:
        stmt = (
            update(UserORM)
            .where(UserORM.id == identity.id, UserORM.version == identity.version)
            .values(courses=list(identity.courses), version=UserORM.version + 1)
            .execution_options(synchronize_session=False)
        )
        with storage_errors(self.db):
            result = self.db.execute(stmt)
            self.db.commit()
        if result.rowcount != 1:
            raise ConcurrencyConflict(f"user {identity.id} changed since version {identity.version}")
        return replace(identity, version=identity.version + 1)


class CourseRepository(ICourseRepository):
    def __init__(self, db: Session): self.db = db

    def get_by_id(self, course_id: int) -> Course | None:
        with storage_errors(self.db):
            row = self.db.query(CourseORM).filter(CourseORM.id == course_id).first()
        return to_domain_course(row) if row else None

    def find_by_name(self, key: str) -> list[Course]:
        key = (key or "").strip()
        if not key:
            return []
        with storage_errors(self.db):
            rows = (self.db.query(CourseORM)
                    .filter(CourseORM.name.icontains(key, autoescape=True))
                    .order_by(CourseORM.id)
                    .all())
        return [to_domain_course(r) for r in rows]

    def list_by_ids(self, ids) -> list[Course]:
        # порядок как в списке ссылок, дубли и битые id отбрасываются
        wanted = list(dict.fromkeys(i for i in ids if isinstance(i, int)))
        if not wanted:
            return []
        with storage_errors(self.db):
            rows = self.db.query(CourseORM).filter(CourseORM.id.in_(wanted)).all()
        by_id = {r.id: r for r in rows}
        return [to_domain_course(by_id[i]) for i in wanted if i in by_id]

    def create(self, name: str, description: str, price: float,
               author_name: str, author_id: int) -> Course:
        row = CourseORM(name=name, description=description, price=price,
                        author_name=author_name, author_id=author_id,
                        students=[], version=0)
        with storage_errors(self.db):
            self.db.add(row); self.db.commit(); self.db.refresh(row)
        return to_domain_course(row)

    def save(self, course: Course) -> Course:
        stmt = (
            update(CourseORM)
            .where(CourseORM.id == course.id, CourseORM.version == course.version)
            .values(students=list(course.students), version=CourseORM.version + 1)
            .execution_options(synchronize_session=False)
        )
        with storage_errors(self.db):
            result = self.db.execute(stmt)
            self.db.commit()
        if result.rowcount != 1:
            raise ConcurrencyConflict(f"course {course.id} changed since version {course.version}")
        return replace(course, version=course.version + 1)

    def delete(self, course_id: int) -> None:
        with storage_errors(self.db):
            (self.db.query(CourseORM)
             .filter(CourseORM.id == course_id)
             .delete(synchronize_session=False))
            self.db.commit()
