from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth import change_password, update_profile
from app.context import AppContext
from app.database import get_db
from app.dependencies import AuthenticatedSession, get_context, get_current_session, get_current_user
from app.models import User
from app.schemas import MessageResponse, PasswordChangeRequest, ProfileResponse, ProfileUpdateRequest

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("", response_model=ProfileResponse)
def get_profile(user: User = Depends(get_current_user)):
    return ProfileResponse.from_user(user)


@router.put("", response_model=ProfileResponse)
def edit_profile(
    request: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update name and/or email. 409 if the email belongs to another account."""
    user = update_profile(db, user, name=request.name, email=request.email)
    return ProfileResponse.from_user(user)


@router.put("/password", response_model=MessageResponse)
def edit_password(
    request: PasswordChangeRequest,
    auth: AuthenticatedSession = Depends(get_current_session),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db)
):
    """
    Change password after re-verifying the current one.

    Other sessions of the user are logged out; this one stays valid.
    """
    change_password(
        db,
        auth.user,
        request.current_password,
        request.new_password,
        context.settings,
        keep_session_id=auth.session.id,
    )
    return MessageResponse(message="Password changed successfully")
