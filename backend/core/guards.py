# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Request guards – the authorization gate and the FastAPI dependencies that
apply it on every request.

Route classes
-------------
* ANONYMOUS      – always allowed
* AUTHENTICATED  – needs a user in the session, otherwise the requested path
                   is remembered and the client is sent to /login
* ADMIN          – needs ``role == 'admin'``, otherwise 403, whether or not
                   anyone is logged in

``authorize`` is a pure function of the session and the route class; the
dependencies below only add the side effects (remembering the return path,
raising the matching exception).
"""

import enum

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from core import sessions
from core.config import settings
from core.errors import CsrfError, Forbidden, NotAuthenticated, SessionExpired
from core.security import tokens_match
from database import get_db
from models.session import UserSession
from models.user import ROLE_ADMIN

CSRF_FORM_FIELD = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"

_SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}


class RouteClass(str, enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"


class Decision(str, enum.Enum):
    ALLOW = "allow"
    REDIRECT_TO_LOGIN = "redirect_to_login"
    FORBIDDEN = "forbidden"


def authorize(record: UserSession | None, route_class: RouteClass) -> Decision:
    if route_class is RouteClass.ANONYMOUS:
        return Decision.ALLOW

    if route_class is RouteClass.ADMIN:
        if record is not None and record.is_authenticated and record.role == ROLE_ADMIN:
            return Decision.ALLOW
        return Decision.FORBIDDEN

    if record is not None and record.is_authenticated:
        return Decision.ALLOW
    return Decision.REDIRECT_TO_LOGIN


# ---------------------------------------------------------------------------
# Request state
# ---------------------------------------------------------------------------
# Templates, exception handlers and the cookie middleware read plain values
# from request.state, never the ORM row: by the time they run the DB session
# may already be closed.


def bind(request: Request, record: UserSession | None) -> None:
    request.state.session = record
    if record is None:
        request.state.session_token = None
        request.state.csrf_token = ""
        request.state.viewer = None
        return

    request.state.session_token = record.id
    request.state.csrf_token = record.csrf_token
    request.state.viewer = (
        {
            "id": record.user_id,
            "username": record.username,
            "email": record.email,
            "role": record.role,
        }
        if record.is_authenticated
        else None
    )


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def current_session(request: Request, db: Session = Depends(get_db)) -> UserSession:
    """
    Load the session named by the cookie and apply the lifetime checks.
    Requests without a (live) session get a fresh anonymous one.
    """
    record = sessions.load(db, request.cookies.get(settings.session_cookie_name))

    if record is not None:
        authenticated = record.is_authenticated
        try:
            sessions.touch(db, record)
        except SessionExpired:
            if authenticated:
                bind(request, None)
                request.state.clear_session_cookie = True
                raise
            record = None

    if record is None:
        record = sessions.start_anonymous(db)

    bind(request, record)
    return record


def require_user(
    request: Request,
    record: UserSession = Depends(current_session),
    db: Session = Depends(get_db),
) -> UserSession:
    decision = authorize(record, RouteClass.AUTHENTICATED)
    if decision is Decision.REDIRECT_TO_LOGIN:
        if request.method == "GET":
            path = request.url.path
            if request.url.query:
                path = f"{path}?{request.url.query}"
            sessions.remember_return_path(db, record, path)
        raise NotAuthenticated("Please log in to continue.")
    return record


def require_admin(record: UserSession = Depends(current_session)) -> UserSession:
    if authorize(record, RouteClass.ADMIN) is not Decision.ALLOW:
        raise Forbidden("You need administrator privileges to access this page.")
    return record


async def verify_csrf(request: Request, record: UserSession = Depends(current_session)) -> None:
    """
    Reject state-changing requests whose anti-forgery token does not match
    the one stored in the session.
    """
    if request.method in _SAFE_METHODS:
        return

    supplied = request.headers.get(CSRF_HEADER)
    if not supplied:
        form = await request.form()
        supplied = form.get(CSRF_FORM_FIELD)

    if not tokens_match(request.state.csrf_token, supplied):
        raise CsrfError(
            "Form submission failed due to security validation. Please try again."
        )
