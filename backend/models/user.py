# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""User ORM model."""

from sqlalchemy import Column, Integer, String, Enum, DateTime
from sqlalchemy.sql import func

from database import Base

ROLE_GUEST = "guest"
ROLE_ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    # passlib hash string; the salt is embedded in it
    password_hash = Column(String(255), nullable=False)
    role = Column(
        Enum(ROLE_GUEST, ROLE_ADMIN, name="user_role"),
        nullable=False,
        default=ROLE_GUEST,
        server_default=ROLE_GUEST,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
