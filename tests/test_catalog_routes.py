"""
HTTP tests for catalog search, adding a search hit, and recommendations.
"""

import httpx

from books import store as shelf
from models.book import Book

from conftest import csrf_from, volume


def _found(*volumes):
    return lambda request: httpx.Response(200, json={"items": list(volumes)})


class TestSearch:
    def test_empty_form(self, guest_client, catalog_stub):
        response = guest_client.get("/api/search")

        assert response.status_code == 200
        assert catalog_stub.requests == []

    def test_results_are_listed(self, guest_client, catalog_stub):
        catalog_stub.responder = _found(volume("vol-1", "Dune"), volume("vol-2", "Dune Messiah"))

        response = guest_client.get("/api/search", params={"query": "dune"})

        assert response.status_code == 200
        assert "Dune Messiah" in response.text
        assert 'value="vol-2"' in response.text
        assert catalog_stub.queries == ["dune"]

    def test_no_results(self, guest_client, catalog_stub):
        response = guest_client.get("/api/search", params={"query": "qwxz"})

        assert "No books found with that search term" in response.text

    def test_catalog_down_still_renders(self, guest_client, catalog_stub):
        catalog_stub.responder = lambda request: httpx.Response(500)

        response = guest_client.get("/api/search", params={"query": "dune"})

        assert response.status_code == 200
        assert "Error searching for books. Please try again later." in response.text

    def test_catalog_text_is_escaped(self, guest_client, catalog_stub):
        catalog_stub.responder = _found(volume("vol-x", "<img src=x onerror=alert(1)>"))

        response = guest_client.get("/api/search", params={"query": "x"})

        assert "<img src=x onerror" not in response.text

    def test_requires_login(self, client):
        response = client.get("/api/search", params={"query": "dune"}, follow_redirects=False)

        assert response.status_code == 303


class TestAddToShelf:
    def _post(self, client, **fields):
        data = {
            "title": "Dune",
            "author": "Frank Herbert",
            "year": "1965",
            "isbn": "9780441013593",
            "api_id": "vol-1",
            "cover_url": "https://covers.test/vol-1.jpg",
            "rating": "",
            "csrf_token": csrf_from(client.get("/books/add")),
        }
        data.update(fields)
        return client.post("/api/add-to-shelf", data=data, follow_redirects=False)

    def test_adds_catalog_book(self, guest_client, guest_user, db):
        response = self._post(guest_client)

        assert response.status_code == 303
        assert response.headers["location"] == "/books/bookshelf"
        book = db.query(Book).one()
        assert book.external_id == "vol-1"
        assert book.cover_url == "https://covers.test/vol-1.jpg"
        assert len(shelf.list_shelf(db, guest_user.id)) == 1

    def test_unusable_year_is_dropped(self, guest_client, db):
        self._post(guest_client, year="19??")

        assert db.query(Book).one().year is None

    def test_same_volume_twice(self, guest_client):
        self._post(guest_client)
        response = self._post(guest_client)

        assert response.status_code == 409
        assert "This book is already in your bookshelf" in response.text


class TestRecommendations:
    def test_searches_by_favourite_authors(self, guest_client, guest_user, db, catalog_stub):
        shelf.add_book_to_shelf(db, guest_user.id, "Dune", "Frank Herbert", rating=5)
        shelf.add_book_to_shelf(db, guest_user.id, "Emma", "Jane Austen", rating=3)
        catalog_stub.responder = lambda request: httpx.Response(
            200,
            json={"items": [volume(f"v-{request.url.params['q']}", "Children of Dune")]},
        )

        response = guest_client.get("/api/recommendations")

        assert response.status_code == 200
        assert sorted(catalog_stub.queries) == ["inauthor:Frank Herbert", "inauthor:Jane Austen"]
        # duplicates across authors collapse to one card
        assert response.text.count("<h3>Children of Dune</h3>") == 1

    def test_empty_shelf_falls_back_to_fiction(self, guest_client, catalog_stub):
        catalog_stub.responder = _found(volume("vol-9", "Beloved", authors=["Toni Morrison"]))

        response = guest_client.get("/api/recommendations")

        assert catalog_stub.queries == ["subject:fiction"]
        assert "Beloved" in response.text

    def test_catalog_down(self, guest_client, catalog_stub):
        catalog_stub.responder = lambda request: httpx.Response(503)

        response = guest_client.get("/api/recommendations")

        assert response.status_code == 200
        assert "No recommendations available" in response.text
