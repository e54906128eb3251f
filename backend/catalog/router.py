# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Catalog pages – search the external catalog, add a hit to the shelf, and
author-based recommendations.

A catalog outage never fails the request: the page renders with an empty
result list and a "try again later" message.
"""

import asyncio
import html

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from books import store
from catalog.client import CatalogBook, CatalogClient
from core.config import settings
from core.errors import ConflictError, UpstreamError, ValidationError
from core.guards import require_user, verify_csrf
from core.logger import logger
from core.templating import render
from database import get_db
from models.session import UserSession

router = APIRouter(prefix="/api", tags=["catalog"])

_RECOMMENDATIONS_PER_AUTHOR = 3
_FALLBACK_QUERY = "subject:fiction"


def get_catalog(request: Request) -> CatalogClient:
    """The single client built at start-up (see main.py)."""
    return request.app.state.catalog


async def _search_or_empty(catalog: CatalogClient, query: str, max_results: int) -> list[CatalogBook]:
    try:
        return await catalog.search(query, max_results=max_results)
    except UpstreamError:
        return []


# ---------------------------------------------------------------------------
# GET /api/search?query=
# ---------------------------------------------------------------------------


@router.get("/search")
async def search(
    request: Request,
    query: str | None = None,
    record: UserSession = Depends(require_user),
    catalog: CatalogClient = Depends(get_catalog),
):
    if not query:
        return render(request, "search.html")

    try:
        books = await catalog.search(query, max_results=settings.catalog_max_results)
    except UpstreamError:
        return render(
            request,
            "search.html",
            {"query": query, "books": [], "error": "Error searching for books. Please try again later."},
        )

    if not books:
        return render(
            request,
            "search.html",
            {"query": query, "books": [], "error": "No books found with that search term. Try a different search."},
        )
    return render(request, "search.html", {"query": query, "books": books})


# ---------------------------------------------------------------------------
# POST /api/add-to-shelf
# ---------------------------------------------------------------------------


def _lenient_year(value: str) -> int | None:
    # Catalog dates are free-form ("2005", "2005-03", "19??"); keep only
    # values the shelf accepts instead of rejecting the whole book.
    try:
        return store.parse_year(value)
    except ValidationError:
        return None


@router.post("/add-to-shelf")
def add_to_shelf(
    request: Request,
    title: str = Form(""),
    author: str = Form(""),
    year: str = Form(""),
    isbn: str = Form(""),
    api_id: str = Form(""),
    cover_url: str = Form(""),
    rating: str = Form(""),
    review: str = Form(""),
    record: UserSession = Depends(require_user),
    _csrf: None = Depends(verify_csrf),
    db: Session = Depends(get_db),
):
    user_id = record.user_id
    try:
        item = store.add_book_to_shelf(
            db,
            user_id,
            title,
            author,
            year=_lenient_year(year),
            isbn=isbn,
            rating=rating,
            review=review,
            cover_url=cover_url,
            external_id=api_id,
        )
    except (ValidationError, ConflictError) as exc:
        return render(request, "search.html", {"error": exc.message}, status_code=exc.status_code)

    logger.info("Catalog book added to shelf | user_id=%s book_id=%s api_id=%s", user_id, item.book_id, api_id)
    return RedirectResponse(url="/books/bookshelf", status_code=status.HTTP_303_SEE_OTHER)


# ---------------------------------------------------------------------------
# GET /api/recommendations
# ---------------------------------------------------------------------------


@router.get("/recommendations")
async def recommendations(
    request: Request,
    record: UserSession = Depends(require_user),
    catalog: CatalogClient = Depends(get_catalog),
    db: Session = Depends(get_db),
):
    """More books by the user's best-rated authors, or general fiction."""
    authors = await run_in_threadpool(store.favorite_authors, db, request.state.viewer["id"])

    if authors:
        queries = [f"inauthor:{html.unescape(author)}" for author in authors]
        per_query = _RECOMMENDATIONS_PER_AUTHOR
    else:
        queries = [_FALLBACK_QUERY]
        per_query = settings.catalog_max_results

    batches = await asyncio.gather(
        *(_search_or_empty(catalog, q, per_query) for q in queries)
    )

    seen = set()
    books = []
    for batch in batches:
        for book in batch:
            if book.title not in seen:
                seen.add(book.title)
                books.append(book)

    if not books:
        return render(request, "recommendations.html", {"books": [], "error": "No recommendations available"})
    return render(request, "recommendations.html", {"books": books})
