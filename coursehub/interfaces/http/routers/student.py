from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse

from ....application.dto import EnrollmentOutcome, SessionRecord
from ....application.use_cases.enrollment import EnrollmentCoordinator
from ....domain.entities import Identity
from ....infrastructure.metrics import enrollments_total, saga_compensations_total
from ....infrastructure.repositories import CourseRepository
from ..deps import get_course_repository, get_enrollment_coordinator, get_session
from ..guards import require_student
from ..views import render

router = APIRouter(tags=["student"])

ENROLL_NOTICES = {
    EnrollmentOutcome.ENROLLED: ("success_msg", "You have enrolled in the course.", "/student/index"),
    EnrollmentOutcome.ALREADY_ENROLLED: ("success_msg", "You are already enrolled in this course.", "/student/index"),
    EnrollmentOutcome.COURSE_NOT_FOUND: ("err_msg", "Course not found.", "/student/find"),
    EnrollmentOutcome.USER_NOT_FOUND: ("err_msg", "Your account could not be found.", "/login"),
    EnrollmentOutcome.FAILED: ("err_msg", "Error with enrolling in the course. Please try again.", "/student/find"),
}


# верхняя граница колонки Integer в Postgres
MAX_ID = 2**31 - 1


def parse_id(value: str) -> int | None:
    if not (value.isascii() and value.isdigit()):
        return None
    number = int(value)
    return number if number <= MAX_ID else None


@router.get("/student/index")
def student_index(
    request: Request,
    student: Identity = Depends(require_student),
    courses: CourseRepository = Depends(get_course_repository),
):
    return render(request, "student/index.html", student, courses=courses.list_by_ids(student.courses))


@router.get("/student/find")
def student_find(request: Request, student: Identity = Depends(require_student)):
    return render(request, "student/find.html", student, courses=None, key="")


@router.get("/courses/find")
def find_courses(
    request: Request,
    key: str = Query(""),
    student: Identity = Depends(require_student),
    courses: CourseRepository = Depends(get_course_repository),
):
    return render(request, "student/find.html", student, courses=courses.find_by_name(key), key=key)


@router.get("/courses/{course_id}")
def enroll(
    course_id: str,
    student: Identity = Depends(require_student),
    session: SessionRecord = Depends(get_session),
    coordinator: EnrollmentCoordinator = Depends(get_enrollment_coordinator),
):
    cid = parse_id(course_id)
    if cid is None:
        outcome = EnrollmentOutcome.COURSE_NOT_FOUND
    else:
        result = coordinator.enroll_student(student.id, cid)
        outcome = result.outcome
        if result.compensation:
            saga_compensations_total.labels(operation="enroll", result=result.compensation).inc()
    enrollments_total.labels(outcome=outcome.value).inc()

    category, message, target = ENROLL_NOTICES[outcome]
    session.flash(category, message)
    return RedirectResponse(target, status_code=status.HTTP_302_FOUND)
