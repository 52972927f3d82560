from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict
from datetime import datetime
from typing import List, Literal, Optional

CourseLevel = Literal["Beginner", "Intermediate", "Advanced"]


class RegisterRequest(BaseModel):
    """
    Registration payload validation.

    Password strength is checked by the service against the configured
    minimum, so it is only length-capped here.
    """
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1, max_length=128)


class UserResponse(BaseModel):
    """
    Safe user representation for API responses.

    Critical: Never include password_hash in any response.
    """
    student_id: str
    name: str
    email: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(UserResponse):
    updated_at: datetime
    enrolled_course_ids: List[int] = []

    @classmethod
    def from_user(cls, user) -> "ProfileResponse":
        return cls(
            student_id=user.student_id,
            name=user.name,
            email=user.email,
            created_at=user.created_at,
            updated_at=user.updated_at,
            enrolled_course_ids=[course.id for course in user.enrolled_courses],
        )


class RegisterResponse(BaseModel):
    message: str
    student_id: str


class LoginResponse(BaseModel):
    message: str
    user: UserResponse
    # Lets the client render a countdown
    session_duration_seconds: int
    idle_timeout_seconds: int
    expires_at: datetime


class SessionStatusResponse(BaseModel):
    active: bool
    expires_at: datetime
    last_activity: datetime


class CourseCreateRequest(BaseModel):
    course_code: str = Field(min_length=1, max_length=32)
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    level: CourseLevel = "Beginner"
    credits: Optional[int] = Field(default=None, ge=0)
    instructor: Optional[str] = None
    schedule: Optional[str] = None
    semester: Optional[str] = None

    @field_validator("course_code", "title")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class CourseUpdateRequest(BaseModel):
    course_code: Optional[str] = Field(default=None, min_length=1, max_length=32)
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    level: Optional[CourseLevel] = None
    credits: Optional[int] = Field(default=None, ge=0)
    instructor: Optional[str] = None
    schedule: Optional[str] = None
    semester: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("course_code", "title")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class CourseResponse(BaseModel):
    id: int
    course_code: str
    title: str
    description: Optional[str] = None
    level: str
    credits: Optional[int] = None
    instructor: Optional[str] = None
    schedule: Optional[str] = None
    semester: Optional[str] = None
    is_active: bool
    enrolled_count: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CourseListResponse(BaseModel):
    courses: List[CourseResponse]


class EnrollmentResponse(BaseModel):
    message: str
    course: CourseResponse


class MessageResponse(BaseModel):
    """
    Generic message response for operations without specific return data.
    """
    message: str
