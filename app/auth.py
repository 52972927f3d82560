from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, InvalidHashError, VerificationError
import secrets
import time
from typing import Optional
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import Settings
from app.errors import (
    DuplicateEmailError,
    IncorrectCurrentPasswordError,
    InternalError,
    InvalidCredentialsError,
    ValidationError,
    WeakPasswordError,
)
from app.models import User
from app.sessions import close_user_sessions

# Argon2 hasher with secure defaults
# Argon2id is recommended variant (combines Argon2i and Argon2d)
ph = PasswordHasher()

# Verified against when the email is unknown so both login failures cost
# the same amount of work
_DUMMY_HASH = ph.hash(secrets.token_urlsafe(16))

STUDENT_ID_ATTEMPTS = 3


def hash_password(password: str) -> str:
    """
    Hash password using Argon2id.

    Returns hash string that includes algorithm parameters and salt.
    Format: $argon2id$v=19$m=65536,t=3,p=4$salt$hash
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against stored hash.

    Uses constant-time comparison internally to prevent timing attacks.
    Returns False for any error to avoid information leakage.
    """
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def validate_password_strength(password: str, min_length: int) -> None:
    if len(password) < min_length:
        raise WeakPasswordError(min_length)


def normalize_email(email: str) -> str:
    # Normalize email to prevent duplicate accounts with different casing
    return email.strip().lower()


def generate_student_id() -> str:
    """
    External student identifier: STU + millisecond timestamp + 3 random
    digits. The unique index on users.student_id is the final guard.
    """
    return f"STU{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


def register_user(db: Session, name: str, email: str, password: str, settings: Settings) -> User:
    """
    Create new student account.

    Error cases:
    - ValidationError: blank name
    - WeakPasswordError: password shorter than the configured minimum
    - DuplicateEmailError: email already registered
    """
    name = name.strip()
    if not name:
        raise ValidationError("Name is required")
    validate_password_strength(password, settings.password_min_length)

    email = normalize_email(email)
    if db.query(User).filter(User.email == email).first():
        raise DuplicateEmailError()

    # Never store plaintext passwords
    password_hash = hash_password(password)

    for _ in range(STUDENT_ID_ATTEMPTS):
        user = User(
            student_id=generate_student_id(),
            name=name,
            email=email,
            password_hash=password_hash,
        )
        try:
            db.add(user)
            db.commit()
        except IntegrityError:
            db.rollback()
            # A concurrent registration won the race for this email
            if db.query(User).filter(User.email == email).first():
                raise DuplicateEmailError()
            # Otherwise the student_id collided; draw a new one
            continue

        db.refresh(user)
        logger.info(f"Registered user {user.student_id}")
        return user

    raise InternalError("Could not allocate a student id")


def authenticate_credentials(db: Session, email: str, password: str) -> User:
    """
    Look up user by email and verify the password.

    Unknown email and wrong password raise the same InvalidCredentialsError.
    A hash is verified in both cases to prevent timing attacks.
    """
    user = db.query(User).filter(User.email == normalize_email(email)).first()

    if user is None:
        verify_password(password, _DUMMY_HASH)
        raise InvalidCredentialsError()

    if not verify_password(password, user.password_hash):
        raise InvalidCredentialsError()

    # Argon2 parameters changed since this hash was made
    if ph.check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        db.commit()

    return user


def update_profile(db: Session, user: User, name: Optional[str] = None, email: Optional[str] = None) -> User:
    """Edit name and/or email. The student_id never changes."""
    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError("Name is required")
        user.name = name

    if email is not None:
        email = normalize_email(email)
        if email != user.email:
            taken = db.query(User).filter(User.email == email, User.id != user.id).first()
            if taken:
                raise DuplicateEmailError()
            user.email = email

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateEmailError()

    db.refresh(user)
    return user


def change_password(
    db: Session,
    user: User,
    current_password: str,
    new_password: str,
    settings: Settings,
    keep_session_id: Optional[int] = None,
) -> int:
    """
    Replace the user's password after re-verifying the current one.

    Every other active session of the user is deactivated; the session
    making the request stays alive. Returns the number of sessions closed.
    """
    if not verify_password(current_password, user.password_hash):
        raise IncorrectCurrentPasswordError()
    validate_password_strength(new_password, settings.password_min_length)

    user.password_hash = hash_password(new_password)
    db.commit()

    closed = close_user_sessions(db, user.id, except_session_id=keep_session_id)
    logger.info(f"Password changed for user {user.student_id}, closed {closed} other session(s)")
    return closed
