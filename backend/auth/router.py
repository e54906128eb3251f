# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Auth pages – login, registration, logout.

Security notes
--------------
* Login shows the *same* error message whether the username doesn't exist
  or the password is wrong.  This prevents user-enumeration attacks.
* A successful login or registration always gets a brand-new session id
  (``sessions.regenerate``) so a fixated id is worthless.
* The post-login return path is read *before* the old session is replaced.
"""

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from auth import store
from core import sessions
from core.errors import AuthenticationError, ConflictError, ValidationError
from core.guards import bind, current_session, require_user, verify_csrf
from core.logger import logger
from core.security import get_client_ip
from core.templating import render
from database import get_db
from models.audit_log import AuditLog
from models.session import UserSession

router = APIRouter(tags=["auth"])

# Generic message used for both "no such user" and "wrong password"
_LOGIN_FAIL = "Invalid username or password"


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@router.get("/login")
def login_page(request: Request, record: UserSession = Depends(current_session)):
    if record.is_authenticated:
        return _redirect(sessions.DEFAULT_LANDING)
    return render(request, "login.html")


@router.post("/login")
def login(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    record: UserSession = Depends(current_session),
    _csrf: None = Depends(verify_csrf),
    db: Session = Depends(get_db),
):
    """Verify credentials and bind the user to a fresh session."""
    if not username or not password:
        return render(
            request,
            "login.html",
            {"error": "Username and password are required", "username": username},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        user = store.verify_credentials(db, username, password)
    except AuthenticationError as exc:
        logger.info("Login failed | username=%r reason=%s client=%s", username, exc.code, get_client_ip(request))
        return render(
            request,
            "login.html",
            {"error": _LOGIN_FAIL, "username": username},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    return_to = sessions.consume_return_path(db, record)
    new_record = sessions.regenerate(db, record, user)
    bind(request, new_record)

    db.add(AuditLog(target_user_id=user.id, action="user_login", request_ip=get_client_ip(request)))
    db.commit()

    logger.info("Login succeeded | user=%s", user.username)
    return _redirect(return_to)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.get("/register")
def register_page(request: Request, record: UserSession = Depends(current_session)):
    if record.is_authenticated:
        return _redirect(sessions.DEFAULT_LANDING)
    return render(request, "register.html")


@router.post("/register")
def register(
    request: Request,
    username: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    record: UserSession = Depends(current_session),
    _csrf: None = Depends(verify_csrf),
    db: Session = Depends(get_db),
):
    """Create a guest account and log it in."""
    try:
        user = store.create_user(db, username, email, password, confirm_password=confirm_password)
    except (ValidationError, ConflictError) as exc:
        return render(
            request,
            "register.html",
            {"error": exc.message, "username": username, "email": email},
            status_code=exc.status_code,
        )

    new_record = sessions.regenerate(db, record, user)
    bind(request, new_record)

    db.add(AuditLog(target_user_id=user.id, action="user_register", request_ip=get_client_ip(request)))
    db.commit()

    logger.info("Registered new user | user=%s", user.username)
    return _redirect(sessions.DEFAULT_LANDING)


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------


@router.get("/logout")
def logout_page(request: Request, record: UserSession = Depends(require_user)):
    """Confirmation page; the actual logout is the POST (CSRF-protected)."""
    return render(request, "logout.html")


@router.post("/logout")
def logout(
    request: Request,
    record: UserSession = Depends(require_user),
    _csrf: None = Depends(verify_csrf),
    db: Session = Depends(get_db),
):
    username = record.username
    sessions.destroy(db, record)
    bind(request, None)
    request.state.clear_session_cookie = True

    logger.info("Logged out | user=%s", username)
    return _redirect("/login")
