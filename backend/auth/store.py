# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Credential store – user accounts, password verification and the admin-side
role / delete operations.

Validation runs in a fixed order (required fields → password confirmation →
password strength → e-mail format → uniqueness), each step assuming the
previous ones passed.  Plaintext passwords are hashed before they reach the
ORM and are never logged.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core import sessions
from core.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from core.security import hash_password, is_valid_email, password_problem, verify_password
from models.shelf_item import ShelfItem
from models.user import ROLE_ADMIN, ROLE_GUEST, User

VALID_ROLES = {ROLE_GUEST, ROLE_ADMIN}


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("The requested user does not exist", code="UserNotFound")
    return user


def get_user_by_username(db: Session, username: str) -> User | None:
    return db.query(User).filter(User.username == username).first()


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.id).all()


# ---------------------------------------------------------------------------
# Registration / login
# ---------------------------------------------------------------------------


def create_user(
    db: Session,
    username: str,
    email: str,
    password: str,
    confirm_password: str | None = None,
    role: str = ROLE_GUEST,
) -> User:
    """Validate and insert a new account.  Raises ValidationError / ConflictError."""
    username = (username or "").strip()
    email = (email or "").strip()

    if not username or not email or not password:
        raise ValidationError("All fields are required", code="MissingFields")

    if confirm_password is not None and password != confirm_password:
        raise ValidationError("Passwords do not match", code="PasswordMismatch")

    problem = password_problem(password)
    if problem:
        raise ValidationError(problem, code="WeakPassword")

    if not is_valid_email(email):
        raise ValidationError("Please enter a valid email address", code="InvalidEmail")

    if role not in VALID_ROLES:
        raise ValidationError("Invalid role. Must be 'guest' or 'admin'", code="InvalidRole")

    # Uniqueness check – the unique constraints below are the real guard,
    # this only picks the precise message.
    if db.query(User).filter(User.username == username).first():
        raise ConflictError("Username already exists", code="DuplicateUsername")
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("Email already exists", code="DuplicateEmail")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Username or email already exists", code="DuplicateUser")
    db.refresh(user)
    return user


def verify_credentials(db: Session, username: str, password: str) -> User:
    """
    Return the user if *password* is right.  The exception code tells the
    two failure reasons apart; callers must not show it to the client.
    """
    user = get_user_by_username(db, (username or "").strip())
    if not user:
        raise AuthenticationError("Invalid username or password", code="NotFound")
    if not verify_password(password or "", user.password_hash):
        raise AuthenticationError("Invalid username or password", code="WrongPassword")
    return user


# ---------------------------------------------------------------------------
# Admin operations
# ---------------------------------------------------------------------------


def _guard_self(acting_user_id: int, user_id: int, message: str) -> None:
    if int(acting_user_id) == int(user_id):
        raise ValidationError(message, code="SelfProtection")


def set_role(db: Session, acting_user_id: int, user_id: int, role: str) -> User:
    """
    Change the role of another user.  Guards:
    * Role value must be 'guest' or 'admin'.
    * An admin cannot change their own role (prevents accidental self-lockout).
    """
    if role not in VALID_ROLES:
        raise ValidationError("Invalid role. Must be 'guest' or 'admin'", code="InvalidRole")
    _guard_self(acting_user_id, user_id, "You cannot change your own role")

    target = get_user(db, user_id)
    target.role = role
    sessions.refresh_identity(db, target)
    db.commit()
    db.refresh(target)
    return target


def toggle_role(db: Session, acting_user_id: int, user_id: int) -> User:
    """Flip guest ↔ admin."""
    _guard_self(acting_user_id, user_id, "You cannot change your own role")
    target = get_user(db, user_id)
    new_role = ROLE_GUEST if target.role == ROLE_ADMIN else ROLE_ADMIN
    return set_role(db, acting_user_id, user_id, new_role)


def delete_user(db: Session, acting_user_id: int, user_id: int) -> None:
    """
    Remove a user together with their shelf entries and sessions.  The
    dependent rows are deleted here rather than left to engine cascades.
    """
    _guard_self(acting_user_id, user_id, "You cannot delete your own account")
    target = get_user(db, user_id)

    db.query(ShelfItem).filter(ShelfItem.user_id == target.id).delete(synchronize_session=False)
    sessions.destroy_user_sessions(db, target.id)
    db.delete(target)
    db.commit()
