# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""ShelfItem ORM model – a book on one user's shelf."""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class ShelfItem(Base):
    __tablename__ = "bookshelf_items"
    # A book can sit on a given user's shelf only once.  Enforced here so that
    # double submits cannot slip past the store's pre-check.
    __table_args__ = (
        UniqueConstraint("user_id", "book_id", name="uq_bookshelf_items_user_book"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=True)    # 1..5
    review = Column(Text, nullable=True)       # HTML-escaped
    date_added = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    book = relationship("Book", lazy="joined")
