"""Student endpoints."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from cptracker.core.notifier import NotificationFailure
from cptracker.core.sync_orchestrator import SyncOrchestrator
from cptracker.db.activity_repository import (
    count_activity,
    list_contests,
    list_reminders,
    list_submissions,
)
from cptracker.db.students_repository import (
    DuplicateStudentError,
    StudentRecord,
    delete_student,
    get_student_by_id,
    insert_student,
    list_students,
    update_student,
)
from cptracker.utils.validators import validate_email, validate_handle
from cptracker.web.deps import get_orchestrator
from cptracker.web.schemas import (
    MessageResponse,
    StudentCreate,
    StudentDetailResponse,
    StudentListResponse,
    StudentResponse,
    StudentUpdate,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/students", tags=["students"])


def _to_response(student: StudentRecord) -> StudentResponse:
    return StudentResponse(
        **student.to_dict(),
        reminders_count=count_activity(student.student_id).reminders,
    )


def _get_or_404(student_id: str) -> StudentRecord:
    student = get_student_by_id(student_id)
    if student is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Student '{student_id}' not found",
        )
    return student


def _check_contact(email: str | None, handle: str | None) -> None:
    if email is not None and not validate_email(email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid email format",
        )
    if handle is not None and not validate_handle(handle):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid handle format",
        )


def _conflict(e: DuplicateStudentError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("", response_model=StudentListResponse)
def get_students() -> StudentListResponse:
    """List all students."""
    students = [_to_response(s) for s in list_students()]
    return StudentListResponse(students=students, count=len(students))


@router.get("/{student_id}", response_model=StudentDetailResponse)
def get_student(student_id: str) -> StudentDetailResponse:
    """Get a student with contests, submissions and reminders."""
    student = _get_or_404(student_id)
    reminders = list_reminders(student_id)
    return StudentDetailResponse(
        **student.to_dict(),
        reminders_count=len(reminders),
        contests=[c.to_dict() for c in list_contests(student_id)],
        submissions=[s.to_dict() for s in list_submissions(student_id)],
        reminders=[r.to_dict() for r in reminders],
    )


@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
def create_student(student_data: StudentCreate) -> StudentResponse:
    """Register a new student."""
    _check_contact(student_data.email, student_data.handle)

    try:
        student = insert_student(
            name=student_data.name,
            email=student_data.email,
            handle=student_data.handle,
            phone_number=student_data.phone_number,
        )
    except DuplicateStudentError as e:
        raise _conflict(e)

    logger.info("students.created", student_id=student.student_id, handle=student.handle)
    return _to_response(student)


@router.put("/{student_id}", response_model=StudentResponse)
def edit_student(student_id: str, update: StudentUpdate) -> StudentResponse:
    """Partially update a student's profile."""
    changes = update.model_dump(exclude_unset=True)
    _check_contact(changes.get("email"), changes.get("handle"))

    try:
        student = update_student(student_id, **changes)
    except DuplicateStudentError as e:
        raise _conflict(e)

    if student is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Student '{student_id}' not found",
        )
    return _to_response(student)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_student(student_id: str) -> None:
    """Delete a student; synced data and reminders go with it."""
    if not delete_student(student_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Student '{student_id}' not found",
        )
    logger.info("students.deleted", student_id=student_id)


@router.post("/{student_id}/testmail", response_model=MessageResponse)
def send_test_mail(
    student_id: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> MessageResponse:
    """Send a test email to the student."""
    student = _get_or_404(student_id)
    try:
        orchestrator.notifier.send_test_email(student)
    except NotificationFailure as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to send test email: {e.error}",
        )
    return MessageResponse(message=f"Test email sent to {student.email}")
