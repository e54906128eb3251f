# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""Book ORM model – one row per distinct (title, author)."""

from sqlalchemy import Column, Integer, String, UniqueConstraint

from database import Base


class Book(Base):
    __tablename__ = "books"
    __table_args__ = (
        UniqueConstraint("title", "author", name="uq_books_title_author"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    # title/author are stored HTML-escaped (see books.store); 255 keeps the
    # (title, author) key under the InnoDB utf8mb4 index limit
    title = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False)
    year = Column(Integer, nullable=True)
    isbn = Column(String(32), nullable=True)
    cover_url = Column(String(2048), nullable=True)
    # Catalog volume id when the book came from a search result
    external_id = Column(String(64), unique=True, nullable=True, index=True)
