from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.context import AppContext
from app.database import get_db
from app.models import Session as SessionModel, User
from app.sessions import authenticate


@dataclass
class AuthenticatedSession:
    user: User
    session: SessionModel


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_current_session(
    request: Request,
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> AuthenticatedSession:
    """
    Auth gate for protected routes.

    The token is read from the HTTP-only cookie only; an Authorization
    header is ignored. Any failure surfaces as a 401 AuthError.
    """
    token = request.cookies.get(context.settings.cookie_name)
    user, session = authenticate(db, token, context.tokens, context.settings)
    return AuthenticatedSession(user=user, session=session)


def get_current_user(auth: AuthenticatedSession = Depends(get_current_session)) -> User:
    return auth.user
