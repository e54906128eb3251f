# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Bookshelf pages – dashboard, shelf listing, manual add, edit, remove.

Every handler is guarded by ``require_user``; POSTs additionally check the
anti-forgery token.  Handlers only ever touch the logged-in user's own
entries: the user id comes from the session, never from the form.
"""

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from auth import store as users
from books import store
from core.errors import ConflictError, NotFoundError, ValidationError
from core.guards import require_user, verify_csrf
from core.logger import logger
from core.security import sanitize
from core.templating import render
from database import get_db
from models.session import UserSession

router = APIRouter(prefix="/books", tags=["books"])


def _to_shelf() -> RedirectResponse:
    return RedirectResponse(url="/books/bookshelf", status_code=status.HTTP_303_SEE_OTHER)


# ---------------------------------------------------------------------------
# GET /books/dashboard
# ---------------------------------------------------------------------------


@router.get("/dashboard")
def dashboard(
    request: Request,
    record: UserSession = Depends(require_user),
    db: Session = Depends(get_db),
):
    summary = store.dashboard_summary(db, record.user_id)
    return render(
        request,
        "dashboard.html",
        {"recent_books": summary.recent_books, "top_rated": summary.top_rated},
    )


# ---------------------------------------------------------------------------
# GET /books/bookshelf
# ---------------------------------------------------------------------------


@router.get("/bookshelf")
def bookshelf(
    request: Request,
    record: UserSession = Depends(require_user),
    db: Session = Depends(get_db),
):
    return render(request, "bookshelf.html", {"books": store.list_shelf(db, record.user_id)})


# ---------------------------------------------------------------------------
# GET/POST /books/add  – manual entry
# ---------------------------------------------------------------------------


@router.get("/add")
def add_book_page(request: Request, record: UserSession = Depends(require_user)):
    return render(request, "add_book.html", {"book": {}})


@router.post("/add")
def add_book(
    request: Request,
    title: str = Form(""),
    author: str = Form(""),
    year: str = Form(""),
    isbn: str = Form(""),
    rating: str = Form(""),
    review: str = Form(""),
    record: UserSession = Depends(require_user),
    _csrf: None = Depends(verify_csrf),
    db: Session = Depends(get_db),
):
    user_id = record.user_id
    submitted = {
        "title": title,
        "author": author,
        "year": year,
        "isbn": isbn,
        "rating": rating,
        "review": review,
    }
    try:
        item = store.add_book_to_shelf(
            db,
            user_id,
            title,
            author,
            year=year,
            isbn=isbn,
            rating=rating,
            review=review,
        )
    except (ValidationError, ConflictError) as exc:
        return render(
            request,
            "add_book.html",
            {"error": exc.message, "book": submitted},
            status_code=exc.status_code,
        )

    logger.info("Book added to shelf | user_id=%s book_id=%s", user_id, item.book_id)
    return _to_shelf()


# ---------------------------------------------------------------------------
# GET/POST /books/edit/{book_id}
# ---------------------------------------------------------------------------


@router.get("/edit/{book_id}")
def edit_book_page(
    book_id: int,
    request: Request,
    record: UserSession = Depends(require_user),
    db: Session = Depends(get_db),
):
    entry = store.get_entry(db, record.user_id, book_id)
    return render(request, "edit_book.html", {"book": entry.model_dump()})


@router.post("/edit/{book_id}")
def edit_book(
    book_id: int,
    request: Request,
    rating: str = Form(""),
    review: str = Form(""),
    record: UserSession = Depends(require_user),
    _csrf: None = Depends(verify_csrf),
    db: Session = Depends(get_db),
):
    user_id = record.user_id
    try:
        store.update_entry(db, user_id, book_id, rating=rating, review=review)
    except ValidationError as exc:
        entry = store.get_entry(db, user_id, book_id).model_dump()
        # stored fields are already escaped, the echoed review must match
        entry.update({"rating": rating, "review": sanitize(review) or ""})
        return render(
            request,
            "edit_book.html",
            {"error": exc.message, "book": entry},
            status_code=exc.status_code,
        )

    logger.info("Shelf entry updated | user_id=%s book_id=%s", user_id, book_id)
    return _to_shelf()


# ---------------------------------------------------------------------------
# POST /books/remove/{book_id}
# ---------------------------------------------------------------------------


@router.post("/remove/{book_id}")
def remove_book(
    book_id: int,
    record: UserSession = Depends(require_user),
    _csrf: None = Depends(verify_csrf),
    db: Session = Depends(get_db),
):
    user_id = record.user_id
    store.remove_from_shelf(db, user_id, book_id)
    logger.info("Shelf entry removed | user_id=%s book_id=%s", user_id, book_id)
    return _to_shelf()


# ---------------------------------------------------------------------------
# GET /books/user/{username}  – someone else's shelf (read-only)
# ---------------------------------------------------------------------------


@router.get("/user/{username}")
def user_bookshelf(
    username: str,
    request: Request,
    record: UserSession = Depends(require_user),
    db: Session = Depends(get_db),
):
    owner = users.get_user_by_username(db, username)
    if not owner:
        raise NotFoundError("The requested user profile does not exist.", code="UserNotFound")
    return render(
        request,
        "user_bookshelf.html",
        {"view_user": owner, "books": store.list_shelf(db, owner.id)},
    )
