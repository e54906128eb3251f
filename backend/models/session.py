# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""UserSession ORM model – server-side session keyed by the cookie token."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from database import Base


class UserSession(Base):
    __tablename__ = "sessions"

    # Opaque random token; the only thing the client ever sees.
    id = Column(String(64), primary_key=True)
    # NULL for anonymous sessions (they still carry CSRF token + return path)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    username = Column(String(64), nullable=True)
    email = Column(String(255), nullable=True)
    role = Column(String(16), nullable=True)
    csrf_token = Column(String(64), nullable=False)
    return_to = Column(String(2048), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_accessed = Column(DateTime(timezone=True), nullable=False)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None
