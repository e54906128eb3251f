# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Server-side session store.

The browser only holds an opaque token in an HTTP-only cookie; everything
else (identity, role, anti-forgery token, post-login return path) lives in
the ``sessions`` table.

Lifetime
--------
* idle      – ``session_idle_minutes`` since the last request (the cookie
              Max-Age slides with every response, the row enforces it too)
* absolute  – ``session_absolute_hours`` since the row was created, no
              matter how active the user is

A session that crosses either limit is deleted by :func:`touch`, which then
raises :class:`SessionExpired`.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import SessionExpired
from core.security import new_token
from models.session import UserSession
from models.user import User

DEFAULT_LANDING = "/books/dashboard"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _is_local_path(path: str | None) -> bool:
    return bool(path) and path.startswith("/") and not path.startswith("//")


# ---------------------------------------------------------------------------
# Lookup / creation
# ---------------------------------------------------------------------------


def load(db: Session, token: str | None) -> UserSession | None:
    if not token:
        return None
    return db.query(UserSession).filter(UserSession.id == token).first()


def purge_expired(db: Session, now: datetime | None = None) -> int:
    """Bulk-delete every row past its idle or absolute limit."""
    now = now or _now()
    absolute_cutoff = now - timedelta(hours=settings.session_absolute_hours)
    idle_cutoff = now - timedelta(minutes=settings.session_idle_minutes)
    removed = (
        db.query(UserSession)
        .filter(
            or_(
                UserSession.created_at < absolute_cutoff,
                UserSession.last_accessed < idle_cutoff,
            )
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    return removed


def start_anonymous(db: Session) -> UserSession:
    """
    Open a session with no identity (needed for login/register CSRF).
    Expired rows nobody will present again are cleared out first.
    """
    now = _now()
    purge_expired(db, now)
    record = UserSession(
        id=new_token(),
        csrf_token=new_token(),
        created_at=now,
        last_accessed=now,
    )
    db.add(record)
    db.commit()
    return record


def regenerate(db: Session, current: UserSession | None, user: User) -> UserSession:
    """
    Bind *user* to a brand-new session.

    The old row (and with it the old token and CSRF token) is deleted first,
    so an identifier planted before login is useless afterwards.
    """
    if current is not None:
        db.delete(current)
        db.flush()

    now = _now()
    record = UserSession(
        id=new_token(),
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        csrf_token=new_token(),
        created_at=now,
        last_accessed=now,
    )
    db.add(record)
    db.commit()
    return record


# ---------------------------------------------------------------------------
# Per-request lifecycle
# ---------------------------------------------------------------------------


def is_expired(record: UserSession, now: datetime | None = None) -> bool:
    now = now or _now()
    absolute = timedelta(hours=settings.session_absolute_hours)
    idle = timedelta(minutes=settings.session_idle_minutes)
    return (
        now - _as_utc(record.created_at) > absolute
        or now - _as_utc(record.last_accessed) > idle
    )


def touch(db: Session, record: UserSession, now: datetime | None = None) -> UserSession:
    """
    Called on every request.  Destroys and rejects a session past its idle or
    absolute limit, otherwise records the access and passes it through.
    """
    now = now or _now()
    if is_expired(record, now):
        destroy(db, record)
        raise SessionExpired("Your session has expired. Please log in again.")

    record.last_accessed = now
    db.commit()
    return record


def destroy(db: Session, record: UserSession) -> None:
    db.delete(record)
    db.commit()


# ---------------------------------------------------------------------------
# Post-login redirect
# ---------------------------------------------------------------------------


def remember_return_path(db: Session, record: UserSession, path: str) -> None:
    if not _is_local_path(path):
        return
    record.return_to = path
    db.commit()


def consume_return_path(db: Session, record: UserSession | None, default: str = DEFAULT_LANDING) -> str:
    """Return the remembered path (once) or *default*."""
    if record is None or not record.return_to:
        return default
    path = record.return_to
    record.return_to = None
    db.commit()
    return path if _is_local_path(path) else default


# ---------------------------------------------------------------------------
# Keeping other users' sessions in step with admin actions
# ---------------------------------------------------------------------------


def refresh_identity(db: Session, user: User) -> None:
    """Copy the user's current username/email/role into all their sessions."""
    (
        db.query(UserSession)
        .filter(UserSession.user_id == user.id)
        .update(
            {
                UserSession.username: user.username,
                UserSession.email: user.email,
                UserSession.role: user.role,
            },
            synchronize_session=False,
        )
    )


def destroy_user_sessions(db: Session, user_id: int) -> None:
    (
        db.query(UserSession)
        .filter(UserSession.user_id == user_id)
        .delete(synchronize_session=False)
    )
