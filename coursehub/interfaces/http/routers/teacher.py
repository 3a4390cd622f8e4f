import structlog
from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError as FormError

from ....application.dto import CourseDraft, SessionRecord
from ....application.use_cases.enrollment import EnrollmentCoordinator
from ....domain.entities import Identity
from ....infrastructure.metrics import course_creations_total, saga_compensations_total
from ....infrastructure.repositories import CourseRepository, UserRepository
from ..deps import (
    get_course_repository,
    get_enrollment_coordinator,
    get_session,
    get_user_repository,
)
from ..guards import require_teacher
from ..schemas import CourseForm
from ..views import render

router = APIRouter(prefix="/teacher", tags=["teacher"])
logger = structlog.get_logger(__name__)

CREATE_FAILED = "Error with creating your course. Please check with admin."


@router.get("/index")
def teacher_index(
    request: Request,
    teacher: Identity = Depends(require_teacher),
    courses: CourseRepository = Depends(get_course_repository),
    users: UserRepository = Depends(get_user_repository),
):
    authored = courses.list_by_ids(teacher.courses)
    roster = {c.id: users.list_by_ids(c.students) for c in authored}
    return render(request, "teacher/index.html", teacher, courses=authored, roster=roster)


@router.get("/create")
def create_page(request: Request, teacher: Identity = Depends(require_teacher)):
    return render(request, "teacher/create.html", teacher)


@router.post("/create")
def create_course(
    courseName: str = Form(""),
    description: str = Form(""),
    price: str = Form("0"),
    teacher: Identity = Depends(require_teacher),
    session: SessionRecord = Depends(get_session),
    coordinator: EnrollmentCoordinator = Depends(get_enrollment_coordinator),
):
    try:
        form = CourseForm(name=courseName, description=description, price=price or 0)
    except FormError as e:
        logger.info("course_form_rejected", errors=e.error_count())
        session.flash("err_msg", "Please provide a course name and a non-negative price.")
        return RedirectResponse("/teacher/create", status_code=status.HTTP_303_SEE_OTHER)

    result = coordinator.create_course(
        teacher.id, CourseDraft(name=form.name, description=form.description, price=form.price)
    )
    course_creations_total.labels(outcome=result.outcome.value).inc()
    if result.compensation:
        saga_compensations_total.labels(operation="create_course", result=result.compensation).inc()

    if not result.ok:
        session.flash("err_msg", CREATE_FAILED)
        return RedirectResponse("/teacher/create", status_code=status.HTTP_303_SEE_OTHER)
    session.flash("success_msg", f"Course \"{result.course.name}\" has been created.")
    return RedirectResponse("/teacher/index", status_code=status.HTTP_303_SEE_OTHER)
