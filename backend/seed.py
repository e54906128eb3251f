# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
First-run data – the default admin and guest accounts plus two sample
books on the guest's shelf.

``seed_database`` only acts on an empty ``users`` table.  Once any account
exists it does nothing, so a deleted default account or a removed sample
book is not brought back by the next start-up.
"""

from sqlalchemy.orm import Session

from auth import store as users
from books import store as shelf
from core.config import settings
from core.errors import ConflictError
from core.logger import logger
from database import SessionLocal, init_db
from models.user import ROLE_ADMIN, ROLE_GUEST, User

SAMPLE_BOOKS = [
    {
        "title": "The Great Gatsby",
        "author": "F. Scott Fitzgerald",
        "year": 1925,
        "rating": 4,
        "review": "A classic that captures the essence of the Jazz Age.",
    },
    {
        "title": "To Kill a Mockingbird",
        "author": "Harper Lee",
        "year": 1960,
        "rating": 5,
        "review": "A powerful exploration of racial injustice and moral growth.",
    },
]


def _create_user(db: Session, username: str, email: str, password: str, role: str) -> User:
    user = users.create_user(db, username, email, password, confirm_password=password, role=role)
    logger.info("Seeded account | user=%s role=%s", username, role)
    return user


def seed_database(db: Session) -> bool:
    """Seed a fresh database.  Returns False when users already exist."""
    if db.query(User.id).first() is not None:
        logger.info("Seed skipped | users table is not empty")
        return False

    _create_user(
        db,
        settings.first_admin_username,
        settings.first_admin_email,
        settings.first_admin_password,
        ROLE_ADMIN,
    )
    guest = _create_user(
        db,
        settings.first_guest_username,
        settings.first_guest_email,
        settings.first_guest_password,
        ROLE_GUEST,
    )

    for sample in SAMPLE_BOOKS:
        try:
            shelf.add_book_to_shelf(db, guest.id, **sample)
        except ConflictError:
            continue
    return True


def main() -> None:
    init_db()
    db = SessionLocal()
    try:
        seed_database(db)
    finally:
        db.close()
    logger.info("Seed complete")


if __name__ == "__main__":
    main()
