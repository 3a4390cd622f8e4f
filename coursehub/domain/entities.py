from dataclasses import dataclass, field, replace
from enum import Enum


class Role(str, Enum):
    STUDENT = "Student"
    TEACHER = "Teacher"

    @classmethod
    def parse(cls, value: str) -> "Role":
        for role in cls:
            if role.value.lower() == (value or "").strip().lower():
                return role
        raise ValueError(f"Unknown role: {value!r}")


@dataclass(frozen=True)
class Identity:
    id: int | None
    fullname: str
    role: Role
    username: str
    password_hash: str = field(repr=False, default="")
    courses: tuple[int, ...] = ()
    # токен оптимистичной блокировки, растёт на каждую запись
    version: int = 0

    def has_course(self, course_id: int) -> bool:
        return course_id in self.courses

    def with_course(self, course_id: int) -> "Identity":
        if self.has_course(course_id):
            return self
        return replace(self, courses=self.courses + (course_id,))

    def without_course(self, course_id: int) -> "Identity":
        if not self.has_course(course_id):
            return self
        return replace(self, courses=tuple(c for c in self.courses if c != course_id))


@dataclass(frozen=True)
class Course:
    id: int | None
    name: str
    description: str
    price: float
    author_name: str
    author_id: int
    students: tuple[int, ...] = ()
    version: int = 0

    def has_student(self, student_id: int) -> bool:
        return student_id in self.students

    def with_student(self, student_id: int) -> "Course":
        if self.has_student(student_id):
            return self
        return replace(self, students=self.students + (student_id,))
