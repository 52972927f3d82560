"""
Server-side session registry and the request-time auth gate.

A signed token alone cannot be revoked, so every login also creates a
Session row. A request is authorised only while that row is active, inside
its absolute expiry, and inside the idle window since its last activity.
Expiry is evaluated lazily on access; the sweeper handles rows nobody
touches again.
"""
from datetime import datetime, timedelta
from typing import Optional, Tuple

from loguru import logger
from sqlalchemy import or_, update
from sqlalchemy.orm import Session as DbSession

from app.config import Settings
from app.errors import (
    InvalidTokenError,
    SessionExpiredError,
    SessionNotFoundError,
    TokenExpiredError,
    UnauthenticatedError,
)
from app.models import Session, User, utcnow
from app.tokens import TokenCodec


def open_session(
    db: DbSession,
    user: User,
    codec: TokenCodec,
    settings: Settings,
    now: Optional[datetime] = None,
) -> Session:
    """
    Mint a token for user and record a new active session.

    The token lifetime and the session's absolute expiry are the same
    window, so the client can show a countdown from either.
    """
    now = now or utcnow()
    duration = timedelta(minutes=settings.session_duration_minutes)
    token = codec.sign(
        {"sub": str(user.id), "student_id": user.student_id, "email": user.email},
        duration,
        now=now,
    )

    session = Session(
        token=token,
        user_id=user.id,
        created_at=now,
        expires_at=now + duration,
        last_activity=now,
        is_active=True,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def _idle_cutoff(settings: Settings, now: datetime) -> Optional[datetime]:
    if settings.session_idle_timeout_minutes <= 0:
        return None
    return now - timedelta(minutes=settings.session_idle_timeout_minutes)


def session_expired(session: Session, settings: Settings, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    if now > session.expires_at:
        return True
    cutoff = _idle_cutoff(settings, now)
    return cutoff is not None and session.last_activity < cutoff


def authenticate(
    db: DbSession,
    token: Optional[str],
    codec: TokenCodec,
    settings: Settings,
    now: Optional[datetime] = None,
) -> Tuple[User, Session]:
    """
    Resolve a bearer token into its user and live session.

    Raises UnauthenticatedError, InvalidTokenError, SessionNotFoundError or
    SessionExpiredError. On success the session's last_activity is moved
    to now.
    """
    if not token:
        raise UnauthenticatedError()

    try:
        claims = codec.verify(token)
    except TokenExpiredError:
        # The token lifetime equals the absolute window, so a genuine but
        # expired token means its session is over too
        if close_session_by_token(db, token):
            logger.info("Session expired with its token")
        raise SessionExpiredError()

    try:
        user_id = int(claims["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidTokenError() from exc

    session = db.query(Session).filter(
        Session.token == token,
        Session.user_id == user_id,
        Session.is_active.is_(True),
    ).first()
    if session is None:
        raise SessionNotFoundError()

    now = now or utcnow()
    if session_expired(session, settings, now):
        session.is_active = False
        db.commit()
        logger.info(f"Session {session.id} expired for user {user_id}")
        raise SessionExpiredError()

    user = db.get(User, user_id)
    if user is None:
        raise SessionNotFoundError()

    session.last_activity = now
    db.commit()
    return user, session


def close_session_by_token(db: DbSession, token: str) -> bool:
    """
    Deactivate the active session holding token, if any (logout).
    Inactive is terminal.

    Returns True if a session was closed.
    """
    result = db.execute(
        update(Session)
        .where(Session.token == token, Session.is_active.is_(True))
        .values(is_active=False)
    )
    db.commit()
    return result.rowcount > 0


def close_user_sessions(db: DbSession, user_id: int, except_session_id: Optional[int] = None) -> int:
    """
    Deactivate every active session of a user.

    Useful for:
    - Password change (invalidate other devices)
    - "logout all devices" feature

    Returns number of sessions closed.
    """
    stmt = update(Session).where(Session.user_id == user_id, Session.is_active.is_(True))
    if except_session_id is not None:
        stmt = stmt.where(Session.id != except_session_id)
    result = db.execute(stmt.values(is_active=False))
    db.commit()
    return result.rowcount


def sweep_expired_sessions(db: DbSession, settings: Settings, now: Optional[datetime] = None) -> int:
    """
    Deactivate every active session past its absolute expiry or idle window.

    One bulk UPDATE; only rows still active match, so a second run with no
    new expirations changes nothing. Returns number of sessions deactivated.
    """
    now = now or utcnow()
    stale = [Session.expires_at < now]
    cutoff = _idle_cutoff(settings, now)
    if cutoff is not None:
        stale.append(Session.last_activity < cutoff)

    result = db.execute(
        update(Session)
        .where(Session.is_active.is_(True), or_(*stale))
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount
