from dataclasses import dataclass, field
from enum import Enum

from ..domain.entities import Course, Identity


@dataclass
class RegisterUserInput:
    fullname: str
    usertype: str
    username: str
    password: str
    password2: str


@dataclass
class CourseDraft:
    name: str
    description: str
    price: float


@dataclass
class SessionRecord:
    sid: str
    user_id: int | None = None
    return_to: str | None = None
    flashes: list[tuple[str, str]] = field(default_factory=list)
    modified: bool = False
    # sid, который нужно удалить из хранилища после ротации или выхода
    discarded_sid: str | None = None

    def flash(self, category: str, message: str) -> None:
        self.flashes.append((category, message))
        self.modified = True

    def pop_flashes(self) -> list[tuple[str, str]]:
        flashes, self.flashes = self.flashes, []
        if flashes:
            self.modified = True
        return flashes

    def is_empty(self) -> bool:
        return self.user_id is None and not self.return_to and not self.flashes

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "return_to": self.return_to,
            "flashes": [list(f) for f in self.flashes],
        }

    @classmethod
    def from_dict(cls, sid: str, data: dict) -> "SessionRecord":
        return cls(
            sid=sid,
            user_id=data.get("user_id"),
            return_to=data.get("return_to"),
            flashes=[tuple(f) for f in data.get("flashes", [])],
        )


class EnrollmentOutcome(str, Enum):
    ENROLLED = "enrolled"
    ALREADY_ENROLLED = "already_enrolled"
    USER_NOT_FOUND = "user_not_found"
    COURSE_NOT_FOUND = "course_not_found"
    FAILED = "failed"


class CreationOutcome(str, Enum):
    CREATED = "created"
    USER_NOT_FOUND = "user_not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class EnrollmentResult:
    outcome: EnrollmentOutcome
    identity: Identity | None = None
    course: Course | None = None
    # None, если откат не понадобился; иначе "compensated" или "compensation_failed"
    compensation: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (EnrollmentOutcome.ENROLLED, EnrollmentOutcome.ALREADY_ENROLLED)


@dataclass(frozen=True)
class CourseCreationResult:
    outcome: CreationOutcome
    identity: Identity | None = None
    course: Course | None = None
    # None, если откат не понадобился; иначе "compensated" или "compensation_failed"
    compensation: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is CreationOutcome.CREATED
