from typing import Any, Dict, List

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import (
    CourseNotAvailableError,
    CourseNotFoundError,
    DuplicateCourseCodeError,
    DuplicateEnrollmentError,
    NotEnrolledError,
)
from app.models import Course, User

UPDATABLE_FIELDS = (
    "course_code",
    "title",
    "description",
    "level",
    "credits",
    "instructor",
    "schedule",
    "semester",
    "is_active",
)

# An explicit null for these leaves the stored value alone
REQUIRED_FIELDS = ("course_code", "title", "level", "is_active")


def normalize_course_code(code: str) -> str:
    return code.strip().upper()


def _code_taken(db: Session, code: str, exclude_id: int = None) -> bool:
    query = db.query(Course).filter(Course.course_code == code)
    if exclude_id is not None:
        query = query.filter(Course.id != exclude_id)
    return query.first() is not None


def create_course(db: Session, creator: User, fields: Dict[str, Any]) -> Course:
    fields = dict(fields)
    fields["course_code"] = normalize_course_code(fields["course_code"])
    if _code_taken(db, fields["course_code"]):
        raise DuplicateCourseCodeError()

    course = Course(created_by_id=creator.id, **fields)
    try:
        db.add(course)
        db.commit()
        db.refresh(course)
    except IntegrityError:
        db.rollback()
        raise DuplicateCourseCodeError()

    logger.info(f"Course {course.course_code} created by {creator.student_id}")
    return course


def list_active_courses(db: Session) -> List[Course]:
    return (
        db.query(Course)
        .filter(Course.is_active.is_(True))
        .order_by(Course.created_at.desc(), Course.id.desc())
        .all()
    )


def get_course(db: Session, course_id: int) -> Course:
    course = db.get(Course, course_id)
    if course is None:
        raise CourseNotFoundError()
    return course


def _get_owned_course(db: Session, owner: User, course_id: int) -> Course:
    # Courses created by someone else look the same as missing ones
    course = db.get(Course, course_id)
    if course is None or course.created_by_id != owner.id:
        raise CourseNotFoundError()
    return course


def update_course(db: Session, owner: User, course_id: int, changes: Dict[str, Any]) -> Course:
    """Apply a partial update. Only the creator may edit a course."""
    course = _get_owned_course(db, owner, course_id)

    changes = {
        key: value for key, value in changes.items()
        if key in UPDATABLE_FIELDS and (value is not None or key not in REQUIRED_FIELDS)
    }
    if "course_code" in changes:
        changes["course_code"] = normalize_course_code(changes["course_code"])
        if _code_taken(db, changes["course_code"], exclude_id=course.id):
            raise DuplicateCourseCodeError()

    for key, value in changes.items():
        setattr(course, key, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateCourseCodeError()

    db.refresh(course)
    return course


def delete_course(db: Session, owner: User, course_id: int) -> None:
    course = _get_owned_course(db, owner, course_id)
    db.delete(course)
    db.commit()
    logger.info(f"Course {course.course_code} deleted by {owner.student_id}")


def list_enrolled_courses(user: User) -> List[Course]:
    return list(user.enrolled_courses)


def enroll(db: Session, user: User, course_id: int) -> Course:
    """
    Add user to the course roster.

    Unknown course, inactive course and an existing enrollment are
    rejected separately. Both sides of the roster change in one commit.
    """
    course = get_course(db, course_id)
    if not course.is_active:
        raise CourseNotAvailableError()
    if course in user.enrolled_courses:
        raise DuplicateEnrollmentError()

    user.enrolled_courses.append(course)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against a concurrent enroll of the same pair
        db.rollback()
        raise DuplicateEnrollmentError()

    db.refresh(course)
    logger.info(f"{user.student_id} enrolled in {course.course_code}")
    return course


def unenroll(db: Session, user: User, course_id: int) -> Course:
    course = get_course(db, course_id)
    if course not in user.enrolled_courses:
        raise NotEnrolledError()

    user.enrolled_courses.remove(course)
    db.commit()
    db.refresh(course)
    logger.info(f"{user.student_id} unenrolled from {course.course_code}")
    return course
