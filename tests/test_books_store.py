"""
Tests for the bookshelf store: de-duplication, per-user shelf rules,
sanitising, and the aggregate queries.
"""

from datetime import datetime, timedelta, timezone

import pytest

from auth import store as users
from books import store as shelf
from core.errors import ConflictError, NotFoundError, ValidationError
from models.book import Book
from models.shelf_item import ShelfItem


def _make_user(db, name):
    return users.create_user(db, name, f"{name}@example.com", "secret123")


class TestParsing:
    @pytest.mark.parametrize("value,expected", [(None, None), ("", None), ("  ", None), ("3", 3), (5, 5)])
    def test_rating_accepts(self, value, expected):
        assert shelf.parse_rating(value) == expected

    @pytest.mark.parametrize("value", ["0", "6", "abc", "3.5", True])
    def test_rating_rejects(self, value):
        with pytest.raises(ValidationError) as exc:
            shelf.parse_rating(value)
        assert exc.value.message == "Rating must be between 1 and 5"

    @pytest.mark.parametrize("value", ["999", "2026", "19x5"])
    def test_year_rejects(self, value):
        with pytest.raises(ValidationError) as exc:
            shelf.parse_year(value)
        assert exc.value.message == "Year must be a valid year between 1000 and 2025"

    def test_year_bounds_inclusive(self):
        assert shelf.parse_year("1000") == 1000
        assert shelf.parse_year("2025") == 2025


class TestFindOrCreateBook:
    def test_same_title_and_author_is_one_book(self, db):
        first = shelf.find_or_create_book(db, "Dune", "Frank Herbert", year=1965)
        second = shelf.find_or_create_book(db, "Dune", "Frank Herbert", isbn="123")

        assert first.id == second.id
        assert db.query(Book).count() == 1
        # existing optional fields are left untouched
        assert second.isbn is None

    def test_external_id_wins_over_title(self, db):
        first = shelf.find_or_create_book(db, "Dune", "Frank Herbert", external_id="vol-1")
        second = shelf.find_or_create_book(db, "Dune (Deluxe)", "F. Herbert", external_id="vol-1")

        assert first.id == second.id

    def test_title_and_author_are_escaped(self, db):
        book = shelf.find_or_create_book(db, "<b>Bold</b>", "O'Brien & Co")

        assert book.title == "&lt;b&gt;Bold&lt;/b&gt;"
        assert book.author == "O&#x27;Brien &amp; Co"

    def test_missing_author(self, db):
        with pytest.raises(ValidationError) as exc:
            shelf.find_or_create_book(db, "Dune", "  ")
        assert exc.value.message == "Title and author are required"

    def test_title_must_fit_the_column(self, db):
        assert len(shelf.find_or_create_book(db, "x" * 255, "Frank Herbert").title) == 255

        with pytest.raises(ValidationError) as exc:
            shelf.find_or_create_book(db, "x" * 256, "Frank Herbert")
        assert exc.value.code == "FieldTooLong"

    def test_length_is_measured_after_escaping(self, db):
        # 60 ampersands grow to 300 characters once escaped
        with pytest.raises(ValidationError):
            shelf.find_or_create_book(db, "Dune", "&" * 60)
        assert db.query(Book).count() == 0

    def test_key_columns_fit_innodb_index(self):
        widths = [Book.__table__.c[name].type.length for name in ("title", "author")]
        # utf8mb4 is 4 bytes per character; InnoDB caps a key at 3072 bytes
        assert sum(widths) * 4 <= 3072


class TestShelf:
    def test_add_and_list(self, db, guest_user):
        shelf.add_book_to_shelf(db, guest_user.id, "Dune", "Frank Herbert", year="1965", rating="5", review="Spice!")

        [entry] = shelf.list_shelf(db, guest_user.id)
        assert entry.title == "Dune"
        assert entry.year == 1965
        assert entry.rating == 5
        assert entry.review == "Spice!"

    def test_same_book_twice_is_conflict(self, db, guest_user):
        shelf.add_book_to_shelf(db, guest_user.id, "Dune", "Frank Herbert")

        with pytest.raises(ConflictError) as exc:
            shelf.add_book_to_shelf(db, guest_user.id, "Dune", "Frank Herbert", rating=3)
        assert exc.value.message == "This book is already in your bookshelf"
        assert db.query(ShelfItem).count() == 1

    def test_two_users_share_one_book(self, db, guest_user):
        other = _make_user(db, "bob")
        shelf.add_book_to_shelf(db, guest_user.id, "Dune", "Frank Herbert")
        shelf.add_book_to_shelf(db, other.id, "Dune", "Frank Herbert")

        assert db.query(Book).count() == 1
        assert db.query(ShelfItem).count() == 2

    def test_invalid_rating_adds_nothing(self, db, guest_user):
        with pytest.raises(ValidationError):
            shelf.add_book_to_shelf(db, guest_user.id, "Dune", "Frank Herbert", rating="9")
        assert db.query(Book).count() == 0

    def test_review_is_escaped(self, db, guest_user):
        shelf.add_book_to_shelf(db, guest_user.id, "Dune", "Frank Herbert", review="<script>x</script>")

        [entry] = shelf.list_shelf(db, guest_user.id)
        assert entry.review == "&lt;script&gt;x&lt;/script&gt;"

    def test_update_entry(self, db, guest_user):
        item = shelf.add_book_to_shelf(db, guest_user.id, "Dune", "Frank Herbert", rating=5, review="Great")

        shelf.update_entry(db, guest_user.id, item.book_id, rating="", review="")

        entry = shelf.get_entry(db, guest_user.id, item.book_id)
        assert entry.rating is None
        assert entry.review is None

    def test_update_someone_elses_entry(self, db, guest_user):
        other = _make_user(db, "bob")
        item = shelf.add_book_to_shelf(db, other.id, "Dune", "Frank Herbert", rating=5)

        with pytest.raises(NotFoundError):
            shelf.update_entry(db, guest_user.id, item.book_id, rating=1)

    def test_remove_is_idempotent(self, db, guest_user):
        book_id = shelf.add_book_to_shelf(db, guest_user.id, "Dune", "Frank Herbert").book_id

        shelf.remove_from_shelf(db, guest_user.id, book_id)
        shelf.remove_from_shelf(db, guest_user.id, book_id)

        assert shelf.list_shelf(db, guest_user.id) == []
        assert db.query(Book).count() == 1

    def test_list_is_newest_first(self, db, guest_user):
        old = shelf.add_book_to_shelf(db, guest_user.id, "Old", "A")
        shelf.add_book_to_shelf(db, guest_user.id, "New", "B")
        old.date_added = datetime.now(timezone.utc) - timedelta(days=3)
        db.commit()

        assert [e.title for e in shelf.list_shelf(db, guest_user.id)] == ["New", "Old"]


class TestAggregates:
    def test_dashboard_summary(self, db, guest_user):
        for i, rating in enumerate([None, 2, 5, 4, None, 3, 1]):
            shelf.add_book_to_shelf(db, guest_user.id, f"Book {i}", "Author", rating=rating)

        summary = shelf.dashboard_summary(db, guest_user.id)

        assert len(summary.recent_books) == 5
        assert [b.rating for b in summary.top_rated] == [5, 4, 3, 2, 1]

    def test_favorite_authors(self, db, guest_user):
        shelf.add_book_to_shelf(db, guest_user.id, "Dune", "Frank Herbert", rating=5)
        shelf.add_book_to_shelf(db, guest_user.id, "Emma", "Jane Austen", rating=2)
        shelf.add_book_to_shelf(db, guest_user.id, "Ubik", "Philip K. Dick")
        shelf.add_book_to_shelf(db, guest_user.id, "Solaris", "Stanislaw Lem", rating=4)

        assert shelf.favorite_authors(db, guest_user.id) == ["Frank Herbert", "Stanislaw Lem", "Jane Austen"]

    def test_admin_stats(self, db, guest_user):
        bob = _make_user(db, "bob")
        shelf.add_book_to_shelf(db, guest_user.id, "Dune", "Frank Herbert", rating=4)
        shelf.add_book_to_shelf(db, bob.id, "Dune", "Frank Herbert", rating=5)
        shelf.add_book_to_shelf(db, bob.id, "Emma", "Jane Austen")

        stats = shelf.admin_stats(db)

        assert stats.popular_books[0].title == "Dune"
        assert stats.popular_books[0].reader_count == 2
        assert stats.popular_books[0].avg_rating == 4.5
        # unrated books never show up in the top-rated list
        assert [b.title for b in stats.top_rated_books] == ["Dune"]
        assert stats.top_rated_books[0].rating_count == 2
        assert [(u.username, u.book_count) for u in stats.active_users] == [("bob", 2), ("guest", 1)]

    def test_library_counts_and_user_stats(self, db, guest_user):
        shelf.add_book_to_shelf(db, guest_user.id, "Dune", "Frank Herbert", rating=4, review="Good")
        shelf.add_book_to_shelf(db, guest_user.id, "Emma", "Jane Austen", rating=5)
        shelf.add_book_to_shelf(db, guest_user.id, "Ubik", "Philip K. Dick", rating=5)

        assert shelf.library_counts(db) == (3, 1)
        stats = shelf.user_stats(db, guest_user.id)
        assert stats.book_count == 3
        assert stats.avg_rating == 4.7

    def test_user_stats_empty_shelf(self, db, guest_user):
        stats = shelf.user_stats(db, guest_user.id)
        assert stats.book_count == 0
        assert stats.avg_rating is None
