# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""Pydantic read models handed from the bookshelf store to the templates."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class ShelfEntryView(BaseModel):
    book_id: int
    title: str
    author: str
    year: Optional[int] = None
    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    rating: Optional[int] = None
    review: Optional[str] = None
    date_added: Optional[datetime] = None


class DashboardSummary(BaseModel):
    recent_books: List[ShelfEntryView]
    top_rated: List[ShelfEntryView]


# -- Admin statistics ------------------------------------------------------


class PopularBook(BaseModel):
    title: str
    author: str
    reader_count: int
    avg_rating: Optional[float] = None


class TopRatedBook(BaseModel):
    title: str
    author: str
    avg_rating: float
    rating_count: int


class ActiveUser(BaseModel):
    username: str
    book_count: int


class AdminStats(BaseModel):
    popular_books: List[PopularBook]
    top_rated_books: List[TopRatedBook]
    active_users: List[ActiveUser]


class UserShelfStats(BaseModel):
    book_count: int
    avg_rating: Optional[float] = None
