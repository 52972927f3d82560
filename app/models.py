from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from app.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Both sides of a roster live in one row, so a user's enrolled set and a
# course's student set are always consistent with each other.
enrollments = Table(
    "enrollments",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("course_id", Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("enrolled_at", DateTime, default=utcnow, nullable=False),
)


class User(Base):
    """
    Student account. Stores credentials and profile.

    Design notes:
    - student_id is the public identifier handed to clients
    - email is unique, lower-cased and indexed for login lookup
    - password_hash never leaves the database layer
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String(32), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    enrolled_courses = relationship(
        "Course",
        secondary=enrollments,
        back_populates="enrolled_students",
        order_by="Course.course_code",
    )

    def __repr__(self):
        return f"<User(id={self.id}, student_id={self.student_id})>"


class Session(Base):
    """
    Server-side record of one login.

    Design notes:
    - token is the signed JWT handed out in the cookie
    - expires_at is the absolute end of the session
    - last_activity moves forward on every authenticated request
    - rows are never deleted; logout, expiry and the sweeper only
      flip is_active to False, and a new login always opens a new row

    Session lifecycle:
    1. Created on login
    2. Validated and touched on each request
    3. Deactivated on logout, expiry or password change
    """
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(Text, unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    last_activity = Column(DateTime, default=utcnow, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    user = relationship("User")

    # Lookup pattern of the auth gate and the sweeper's predicate
    __table_args__ = (
        Index("ix_session_lookup", "token", "user_id", "is_active"),
        Index("ix_session_sweep", "is_active", "expires_at", "last_activity"),
    )

    def __repr__(self):
        return f"<Session(id={self.id}, user_id={self.user_id}, active={self.is_active})>"


class Course(Base):
    """Catalog entry. Anyone signed in can enroll; only the creator may edit."""
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    course_code = Column(String(32), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    level = Column(String(32), default="Beginner", nullable=False)
    credits = Column(Integer, nullable=True)
    instructor = Column(String(255), nullable=True)
    schedule = Column(String(255), nullable=True)
    semester = Column(String(64), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    enrolled_students = relationship(
        "User",
        secondary=enrollments,
        back_populates="enrolled_courses",
    )

    @property
    def enrolled_count(self) -> int:
        return len(self.enrolled_students)

    def __repr__(self):
        return f"<Course(id={self.id}, code={self.course_code})>"
