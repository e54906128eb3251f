# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Bookshelf store – the book catalogue, per-user shelves and the aggregate
queries behind the dashboards.

Invariants
----------
* Books are de-duplicated: by ``external_id`` when one is supplied, else by
  the exact (title, author) pair.  A match is returned unchanged.
* A book sits on a user's shelf at most once.  The store pre-checks for a
  friendly message, the ``uq_bookshelf_items_user_book`` constraint makes it
  hold under concurrent double submits.
* Every free-text column (title, author, review) is HTML-escaped here, on the
  way in, so callers never have to.
"""

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from books.schemas import (
    ActiveUser,
    AdminStats,
    DashboardSummary,
    PopularBook,
    ShelfEntryView,
    TopRatedBook,
    UserShelfStats,
)
from core.errors import ConflictError, NotFoundError, ValidationError
from core.security import sanitize
from models.book import Book
from models.shelf_item import ShelfItem
from models.user import User

RATING_MIN, RATING_MAX = 1, 5
YEAR_MIN, YEAR_MAX = 1000, 2025
# books.title / books.author column width, measured after escaping
TEXT_FIELD_MAX = 255

DASHBOARD_LIMIT = 5
STATS_LIMIT = 10


# ---------------------------------------------------------------------------
# Form value parsing
# ---------------------------------------------------------------------------


def _parse_int(value, lo: int, hi: int, message: str, code: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(message, code=code)
    if isinstance(value, int):
        number = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = int(text)
        except ValueError:
            raise ValidationError(message, code=code)
    if not lo <= number <= hi:
        raise ValidationError(message, code=code)
    return number


def parse_rating(value) -> int | None:
    """Empty → None; anything but an integer in 1..5 → ValidationError."""
    return _parse_int(
        value, RATING_MIN, RATING_MAX, "Rating must be between 1 and 5", "InvalidRating"
    )


def parse_year(value) -> int | None:
    return _parse_int(
        value,
        YEAR_MIN,
        YEAR_MAX,
        f"Year must be a valid year between {YEAR_MIN} and {YEAR_MAX}",
        "InvalidYear",
    )


def _clean(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------


def _lookup(db: Session, title: str, author: str, external_id: str | None) -> Book | None:
    if external_id:
        book = db.query(Book).filter(Book.external_id == external_id).first()
        if book:
            return book
    return db.query(Book).filter(Book.title == title, Book.author == author).first()


def find_or_create_book(
    db: Session,
    title: str,
    author: str,
    year=None,
    isbn: str | None = None,
    cover_url: str | None = None,
    external_id: str | None = None,
) -> Book:
    """
    Return the existing book for (external_id) or (title, author), or insert
    a new one.  Optional fields of an existing book are left untouched.
    """
    if not _clean(title) or not _clean(author):
        raise ValidationError("Title and author are required", code="MissingFields")
    year = parse_year(year)

    safe_title = sanitize(_clean(title))
    safe_author = sanitize(_clean(author))
    if len(safe_title) > TEXT_FIELD_MAX or len(safe_author) > TEXT_FIELD_MAX:
        raise ValidationError("Title and author are too long", code="FieldTooLong")
    external_id = _clean(external_id)

    book = _lookup(db, safe_title, safe_author, external_id)
    if book:
        return book

    book = Book(
        title=safe_title,
        author=safe_author,
        year=year,
        isbn=_clean(isbn),
        cover_url=_clean(cover_url),
        external_id=external_id,
    )
    db.add(book)
    try:
        db.commit()
    except IntegrityError:
        # Someone inserted the same book between our lookup and insert.
        db.rollback()
        book = _lookup(db, safe_title, safe_author, external_id)
        if book is None:
            raise ConflictError("This book already exists in the catalogue", code="DuplicateBook")
        return book
    db.refresh(book)
    return book


# ---------------------------------------------------------------------------
# Shelf entries
# ---------------------------------------------------------------------------


def _entry(db: Session, user_id: int, book_id: int) -> ShelfItem | None:
    return (
        db.query(ShelfItem)
        .filter(ShelfItem.user_id == user_id, ShelfItem.book_id == book_id)
        .first()
    )


def _view(item: ShelfItem) -> ShelfEntryView:
    book = item.book
    return ShelfEntryView(
        book_id=book.id,
        title=book.title,
        author=book.author,
        year=book.year,
        isbn=book.isbn,
        cover_url=book.cover_url,
        rating=item.rating,
        review=item.review,
        date_added=item.date_added,
    )


def add_to_shelf(db: Session, user_id: int, book: Book, rating=None, review: str | None = None) -> ShelfItem:
    rating = parse_rating(rating)

    if _entry(db, user_id, book.id):
        raise ConflictError("This book is already in your bookshelf", code="AlreadyOnShelf")

    item = ShelfItem(user_id=user_id, book_id=book.id, rating=rating, review=sanitize(review))
    db.add(item)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("This book is already in your bookshelf", code="AlreadyOnShelf")
    db.refresh(item)
    return item


def add_book_to_shelf(
    db: Session,
    user_id: int,
    title: str,
    author: str,
    year=None,
    isbn: str | None = None,
    rating=None,
    review: str | None = None,
    cover_url: str | None = None,
    external_id: str | None = None,
) -> ShelfItem:
    """
    The whole "add a book" flow used by every form: required fields, then
    rating / year ranges, then find-or-create, then the shelf insert.
    """
    if not _clean(title) or not _clean(author):
        raise ValidationError("Title and author are required", code="MissingFields")
    parse_rating(rating)
    parse_year(year)

    book = find_or_create_book(
        db,
        title,
        author,
        year=year,
        isbn=isbn,
        cover_url=cover_url,
        external_id=external_id,
    )
    return add_to_shelf(db, user_id, book, rating=rating, review=review)


def update_entry(db: Session, user_id: int, book_id: int, rating=None, review: str | None = None) -> ShelfItem:
    """Overwrite rating and review of an existing entry."""
    rating = parse_rating(rating)

    item = _entry(db, user_id, book_id)
    if not item:
        raise NotFoundError("The requested book was not found in your bookshelf", code="NotOnShelf")

    item.rating = rating
    item.review = sanitize(review)
    db.commit()
    db.refresh(item)
    return item


def remove_from_shelf(db: Session, user_id: int, book_id: int) -> None:
    """Delete the entry if present.  Removing an absent entry is a no-op."""
    (
        db.query(ShelfItem)
        .filter(ShelfItem.user_id == user_id, ShelfItem.book_id == book_id)
        .delete(synchronize_session=False)
    )
    db.commit()


def get_entry(db: Session, user_id: int, book_id: int) -> ShelfEntryView:
    item = _entry(db, user_id, book_id)
    if not item:
        raise NotFoundError("The requested book was not found in your bookshelf", code="NotOnShelf")
    return _view(item)


def _shelf_query(db: Session, user_id: int):
    return db.query(ShelfItem).filter(ShelfItem.user_id == user_id)


def list_shelf(db: Session, user_id: int) -> list[ShelfEntryView]:
    """All of a user's entries, newest first."""
    items = (
        _shelf_query(db, user_id)
        .order_by(ShelfItem.date_added.desc(), ShelfItem.id.desc())
        .all()
    )
    return [_view(item) for item in items]


def dashboard_summary(db: Session, user_id: int) -> DashboardSummary:
    recent = (
        _shelf_query(db, user_id)
        .order_by(ShelfItem.date_added.desc(), ShelfItem.id.desc())
        .limit(DASHBOARD_LIMIT)
        .all()
    )
    top_rated = (
        _shelf_query(db, user_id)
        .filter(ShelfItem.rating.isnot(None))
        .order_by(ShelfItem.rating.desc(), ShelfItem.date_added.desc(), ShelfItem.id.desc())
        .limit(DASHBOARD_LIMIT)
        .all()
    )
    return DashboardSummary(
        recent_books=[_view(item) for item in recent],
        top_rated=[_view(item) for item in top_rated],
    )


def favorite_authors(db: Session, user_id: int, limit: int = 3) -> list[str]:
    """Authors on the user's shelf, best-rated first (unrated last)."""
    best = func.coalesce(func.max(ShelfItem.rating), 0)
    rows = (
        db.query(Book.author)
        .join(ShelfItem, ShelfItem.book_id == Book.id)
        .filter(ShelfItem.user_id == user_id)
        .group_by(Book.author)
        .order_by(best.desc(), Book.author)
        .limit(limit)
        .all()
    )
    return [row.author for row in rows]


# ---------------------------------------------------------------------------
# Aggregates for the admin pages
# ---------------------------------------------------------------------------


def admin_stats(db: Session) -> AdminStats:
    reader_count = func.count(ShelfItem.id).label("reader_count")
    avg_rating = func.avg(ShelfItem.rating).label("avg_rating")
    popular = (
        db.query(Book.title, Book.author, reader_count, avg_rating)
        .join(ShelfItem, ShelfItem.book_id == Book.id)
        .group_by(Book.id, Book.title, Book.author)
        .order_by(reader_count.desc(), avg_rating.desc(), Book.id)
        .limit(STATS_LIMIT)
        .all()
    )

    rated_avg = func.avg(ShelfItem.rating).label("avg_rating")
    rating_count = func.count(ShelfItem.rating).label("rating_count")
    top_rated = (
        db.query(Book.title, Book.author, rated_avg, rating_count)
        .join(ShelfItem, ShelfItem.book_id == Book.id)
        .filter(ShelfItem.rating.isnot(None))
        .group_by(Book.id, Book.title, Book.author)
        .having(func.count(ShelfItem.rating) >= 1)
        .order_by(rated_avg.desc(), rating_count.desc(), Book.id)
        .limit(STATS_LIMIT)
        .all()
    )

    book_count = func.count(ShelfItem.id).label("book_count")
    active = (
        db.query(User.username, book_count)
        .join(ShelfItem, ShelfItem.user_id == User.id)
        .group_by(User.id, User.username)
        .order_by(book_count.desc(), User.id)
        .limit(STATS_LIMIT)
        .all()
    )

    return AdminStats(
        popular_books=[
            PopularBook(
                title=row.title,
                author=row.author,
                reader_count=row.reader_count,
                avg_rating=round(float(row.avg_rating), 1) if row.avg_rating is not None else None,
            )
            for row in popular
        ],
        top_rated_books=[
            TopRatedBook(
                title=row.title,
                author=row.author,
                avg_rating=round(float(row.avg_rating), 1),
                rating_count=row.rating_count,
            )
            for row in top_rated
        ],
        active_users=[
            ActiveUser(username=row.username, book_count=row.book_count) for row in active
        ],
    )


def library_counts(db: Session) -> tuple[int, int]:
    """(number of books, number of non-empty reviews)."""
    books = db.query(func.count(Book.id)).scalar() or 0
    reviews = (
        db.query(func.count(ShelfItem.id))
        .filter(ShelfItem.review.isnot(None), ShelfItem.review != "")
        .scalar()
        or 0
    )
    return books, reviews


def user_stats(db: Session, user_id: int) -> UserShelfStats:
    count = db.query(func.count(ShelfItem.id)).filter(ShelfItem.user_id == user_id).scalar() or 0
    avg = (
        db.query(func.avg(ShelfItem.rating))
        .filter(ShelfItem.user_id == user_id, ShelfItem.rating.isnot(None))
        .scalar()
    )
    return UserShelfStats(
        book_count=count,
        avg_rating=round(float(avg), 1) if avg is not None else None,
    )
