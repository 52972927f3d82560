from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import courses
from app.database import get_db
from app.dependencies import get_current_user
from app.models import User
from app.schemas import (
    CourseCreateRequest,
    CourseListResponse,
    CourseResponse,
    CourseUpdateRequest,
    EnrollmentResponse,
    MessageResponse,
)

# Every course route sits behind the auth gate
router = APIRouter(prefix="/api/courses", tags=["courses"], dependencies=[Depends(get_current_user)])


@router.get("", response_model=CourseListResponse)
def list_courses(db: Session = Depends(get_db)):
    """Active catalog, newest first."""
    return _course_list(courses.list_active_courses(db))


@router.get("/my", response_model=CourseListResponse)
def my_courses(user: User = Depends(get_current_user)):
    return _course_list(courses.list_enrolled_courses(user))


@router.post("", response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
def create_course(
    request: CourseCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return courses.create_course(db, user, request.model_dump())


@router.get("/{course_id}", response_model=CourseResponse)
def get_course(course_id: int, db: Session = Depends(get_db)):
    return courses.get_course(db, course_id)


@router.put("/{course_id}", response_model=CourseResponse)
def update_course(
    course_id: int,
    request: CourseUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Partial update; fields left out of the body are untouched."""
    return courses.update_course(db, user, course_id, request.model_dump(exclude_unset=True))


@router.delete("/{course_id}", response_model=MessageResponse)
def delete_course(
    course_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    courses.delete_course(db, user, course_id)
    return MessageResponse(message="Course deleted successfully")


@router.post("/{course_id}/enroll", response_model=EnrollmentResponse)
def enroll(
    course_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    course = courses.enroll(db, user, course_id)
    return EnrollmentResponse(
        message="Successfully enrolled in course",
        course=CourseResponse.model_validate(course),
    )


@router.post("/{course_id}/unenroll", response_model=EnrollmentResponse)
def unenroll(
    course_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    course = courses.unenroll(db, user, course_id)
    return EnrollmentResponse(
        message="Successfully unenrolled from course",
        course=CourseResponse.model_validate(course),
    )


def _course_list(items) -> CourseListResponse:
    return CourseListResponse(courses=[CourseResponse.model_validate(course) for course in items])
