import time
from typing import Callable, TypeVar

import structlog

from ...domain.entities import Role
from ...domain.errors import ConcurrencyConflict, PersistenceError
from ..dto import (
    CourseCreationResult,
    CourseDraft,
    CreationOutcome,
    EnrollmentOutcome,
    EnrollmentResult,
)
from ..ports import ICourseRepository, IUserRepository

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class EnrollmentCoordinator:
    """Связывает пользователя и курс двумя отдельными записями.

    Общей транзакции нет, поэтому каждая операция это сага: сначала пишется
    первый агрегат, затем второй с ограниченным числом повторов. Если вторая
    запись так и не прошла, первая откатывается компенсирующей записью.

    Обе записи условные (версия агрегата), так что гонка двух одинаковых
    запросов даёт одну связь: проигравший перечитывает данные и видит, что
    связь уже есть.

    Ссылка только с одной стороны успехом не считается: запрос ждёт, пока
    чужая сага допишет вторую запись или откатится, а если полусвязь так и
    не закрылась, сообщает об ошибке.
    """

    def __init__(
        self,
        users: IUserRepository,
        courses: ICourseRepository,
        write_attempts: int = 3,
        conflict_attempts: int = 5,
        backoff: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.users = users
        self.courses = courses
        self.write_attempts = max(1, write_attempts)
        self.conflict_attempts = max(1, conflict_attempts)
        self.backoff = backoff
        self._sleep = sleep

    # --- enrollment

    def enroll_student(self, student_id: int, course_id: int) -> EnrollmentResult:
        log = logger.bind(student_id=student_id, course_id=course_id)

        for attempt in range(1, self.conflict_attempts + 1):
            student = self.users.get_by_id(student_id)
            if student is None or student.role is not Role.STUDENT:
                return EnrollmentResult(EnrollmentOutcome.USER_NOT_FOUND)
            course = self.courses.get_by_id(course_id)
            if course is None:
                return EnrollmentResult(EnrollmentOutcome.COURSE_NOT_FOUND, identity=student)

            on_user = student.has_course(course_id)
            on_course = course.has_student(student_id)
            if on_user and on_course:
                log.info("enrollment_already_linked")
                return EnrollmentResult(EnrollmentOutcome.ALREADY_ENROLLED, student, course)
            if on_user or on_course:
                # чужая сага между двумя записями: ждём, пока она допишет или откатится
                log.warning("linkage_half_open", on_user=on_user, on_course=on_course, attempt=attempt)
                if attempt < self.conflict_attempts and self.backoff:
                    self._sleep(self.backoff * attempt)
                continue

            try:
                student = self.users.save(student.with_course(course_id))
            except ConcurrencyConflict:
                log.info("link_write_conflict", step="user")
                continue
            except PersistenceError as exc:
                # курс ещё не тронут, откатывать нечего
                log.warning("enrollment_failed", step="user", error=str(exc))
                return EnrollmentResult(EnrollmentOutcome.FAILED, student, course)
            break
        else:
            # полусвязь так и не закрылась: успех не сообщаем, вызывающий повторит
            log.warning("enrollment_failed", step="user", error="conflicts exhausted")
            return EnrollmentResult(EnrollmentOutcome.FAILED)

        linked = self._write_with_retry(
            current=course,
            reload=lambda: self.courses.get_by_id(course_id),
            mutate=lambda c: c.with_student(student_id),
            save=self.courses.save,
            step="course",
            log=log,
        )
        if linked is None:
            compensated = self._write_with_retry(
                current=student,
                reload=lambda: self.users.get_by_id(student_id),
                mutate=lambda u: u.without_course(course_id),
                save=self.users.save,
                step="compensate_user",
                log=log,
            ) is not None
            return EnrollmentResult(EnrollmentOutcome.FAILED,
                                    compensation=self._compensation(log, "enroll", compensated))

        log.info("enrollment_completed")
        return EnrollmentResult(EnrollmentOutcome.ENROLLED, student, linked)

    # --- authorship

    def create_course(self, teacher_id: int, draft: CourseDraft) -> CourseCreationResult:
        log = logger.bind(teacher_id=teacher_id)

        teacher = self.users.get_by_id(teacher_id)
        if teacher is None or teacher.role is not Role.TEACHER:
            return CourseCreationResult(CreationOutcome.USER_NOT_FOUND)

        try:
            course = self.courses.create(
                name=draft.name,
                description=draft.description,
                price=draft.price,
                author_name=teacher.fullname,
                author_id=teacher.id,
            )
        except PersistenceError as exc:
            log.warning("course_creation_failed", step="course", error=str(exc))
            return CourseCreationResult(CreationOutcome.FAILED, identity=teacher)
        log = log.bind(course_id=course.id)

        author = self._write_with_retry(
            current=teacher,
            reload=lambda: self.users.get_by_id(teacher_id),
            mutate=lambda u: u.with_course(course.id),
            save=self.users.save,
            step="user",
            log=log,
        )
        if author is None:
            compensated = self._delete_with_retry(course.id, log)
            return CourseCreationResult(
                CreationOutcome.FAILED,
                identity=teacher,
                compensation=self._compensation(log, "create_course", compensated),
            )

        log.info("course_created")
        return CourseCreationResult(CreationOutcome.CREATED, author, course)

    # --- helpers

    def _write_with_retry(self, current: T | None, reload: Callable[[], T | None],
                          mutate: Callable[[T], T], save: Callable[[T], T],
                          step: str, log) -> T | None:
        """Условная запись с повторами. None, если бюджет исчерпан или агрегат исчез."""
        for attempt in range(1, self.write_attempts + 1):
            try:
                if current is None:
                    current = reload()
                    if current is None:
                        log.warning("link_target_vanished", step=step)
                        return None
                updated = mutate(current)
                if updated is current:
                    return current
                return save(updated)
            except PersistenceError as exc:
                log.warning(
                    "link_write_retry",
                    step=step,
                    attempt=attempt,
                    conflict=isinstance(exc, ConcurrencyConflict),
                    error=str(exc),
                )
                # после ошибки версия в руках могла устареть
                current = None
                if attempt < self.write_attempts and self.backoff:
                    self._sleep(self.backoff * attempt)
        return None

    def _delete_with_retry(self, course_id: int, log) -> bool:
        for attempt in range(1, self.write_attempts + 1):
            try:
                self.courses.delete(course_id)
                return True
            except PersistenceError as exc:
                log.warning("link_write_retry", step="compensate_course",
                            attempt=attempt, error=str(exc))
                if attempt < self.write_attempts and self.backoff:
                    self._sleep(self.backoff * attempt)
        return False

    @staticmethod
    def _compensation(log, operation: str, compensated: bool) -> str:
        if compensated:
            log.warning("linkage_compensated", operation=operation)
            return "compensated"
        log.error("compensation_failed", operation=operation)
        return "compensation_failed"
