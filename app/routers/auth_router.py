from fastapi import APIRouter, Depends, Request, Response, status
from loguru import logger
from sqlalchemy.orm import Session

from app.auth import authenticate_credentials, register_user
from app.config import Settings
from app.context import AppContext
from app.database import get_db
from app.dependencies import AuthenticatedSession, get_context, get_current_session
from app.errors import InvalidCredentialsError
from app.schemas import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RegisterRequest,
    RegisterResponse,
    SessionStatusResponse,
    UserResponse,
)
from app.sessions import close_session_by_token, close_user_sessions, open_session

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db)
):
    """
    Create new student account.

    Does not log the user in; the client is expected to call /login next.

    Error cases:
    - 400: Validation failed or password too weak
    - 409: Email already exists
    """
    user = register_user(db, request.name, request.email, request.password, context.settings)
    return RegisterResponse(message="Registration successful! Please login.", student_id=user.student_id)


@router.post("/login", response_model=LoginResponse)
def login(
    request: LoginRequest,
    response: Response,
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db)
):
    """
    Authenticate user and create session.

    Process:
    1. Look up user by email and verify password hash
    2. Sign a JWT and store a new Session row
    3. Set the JWT as an HTTP-only cookie
    4. Return user data and the session windows

    Security notes:
    - Generic error message prevents email enumeration
    - The token never appears in the response body
    """
    try:
        user = authenticate_credentials(db, request.email, request.password)
    except InvalidCredentialsError:
        logger.info(f"Failed login for {request.email.lower()}")
        raise

    session = open_session(db, user, context.tokens, context.settings)
    _set_session_cookie(response, session.token, context.settings)
    logger.info(f"User {user.student_id} logged in (session {session.id})")

    return LoginResponse(
        message="Login successful",
        user=UserResponse.model_validate(user),
        session_duration_seconds=context.settings.session_duration_seconds,
        idle_timeout_seconds=context.settings.idle_timeout_seconds,
        expires_at=session.expires_at,
    )


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db)
):
    """
    Invalidate session and clear cookie.

    Returns success even if there is no live session (idempotent).
    """
    token = request.cookies.get(context.settings.cookie_name)
    if token and close_session_by_token(db, token):
        logger.info("Session closed by logout")

    _clear_session_cookie(response, context.settings)
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse)
def logout_all(
    response: Response,
    auth: AuthenticatedSession = Depends(get_current_session),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db)
):
    """Close every active session of the caller, including this one."""
    closed = close_user_sessions(db, auth.user.id)
    _clear_session_cookie(response, context.settings)
    logger.info(f"User {auth.user.student_id} closed {closed} session(s)")
    return MessageResponse(message=f"Logged out of {closed} session(s)")


@router.get("/me", response_model=ProfileResponse)
def me(auth: AuthenticatedSession = Depends(get_current_session)):
    """
    Get authenticated user's information.

    Returns 401 if not authenticated (handled by dependency).
    """
    return ProfileResponse.from_user(auth.user)


@router.get("/session", response_model=SessionStatusResponse)
def session_status(auth: AuthenticatedSession = Depends(get_current_session)):
    """Heartbeat for the client; passing the gate also refreshes last activity."""
    return SessionStatusResponse(
        active=auth.session.is_active,
        expires_at=auth.session.expires_at,
        last_activity=auth.session.last_activity,
    )


def _set_session_cookie(response: Response, token: str, settings: Settings):
    """
    Set session cookie with security flags.

    Cookie attributes:
    - httponly: Prevents JavaScript access (XSS protection)
    - secure: HTTPS only, on by default in production
    - samesite: strict for CSRF protection
    - max_age: matches the absolute session window
    """
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        httponly=True,
        secure=settings.secure_cookies,
        samesite=settings.cookie_samesite,
        max_age=settings.session_duration_seconds,
        path="/",
        domain=settings.cookie_domain,
    )


def _clear_session_cookie(response: Response, settings: Settings):
    """
    Clear session cookie by setting it with max_age=0.
    """
    response.delete_cookie(
        key=settings.cookie_name,
        httponly=True,
        secure=settings.secure_cookies,
        samesite=settings.cookie_samesite,
        path="/",
        domain=settings.cookie_domain,
    )
