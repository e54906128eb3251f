"""
HTTP tests for login, registration, logout and the session cookie.
"""

from datetime import datetime, timedelta, timezone

from core.config import settings
from models.audit_log import AuditLog
from models.session import UserSession

from conftest import csrf_from, login

COOKIE = settings.session_cookie_name


class TestLogin:
    def test_login_page_sets_session_cookie(self, client):
        response = client.get("/login")

        assert response.status_code == 200
        assert 'name="csrf_token"' in response.text
        assert client.cookies.get(COOKIE)
        set_cookie = response.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "samesite=lax" in set_cookie

    def test_success_redirects_to_dashboard(self, client, guest_user, db):
        response = login(client, "guest", "guest123")

        assert response.status_code == 303
        assert response.headers["location"] == "/books/dashboard"
        assert db.query(AuditLog).filter(AuditLog.action == "user_login").count() == 1

    def test_session_id_changes_on_login(self, client, guest_user, db):
        client.get("/login")
        before = client.cookies.get(COOKIE)

        login(client, "guest", "guest123")
        after = client.cookies.get(COOKIE)

        assert after and after != before
        db.expire_all()
        assert db.get(UserSession, before) is None
        assert db.get(UserSession, after).username == "guest"

    def test_wrong_password_and_unknown_user_look_the_same(self, client, guest_user):
        wrong = login(client, "guest", "nope12345")
        unknown = login(client, "nobody", "guest123")

        assert wrong.status_code == unknown.status_code == 401
        assert "Invalid username or password" in wrong.text
        assert "Invalid username or password" in unknown.text

    def test_missing_fields(self, client):
        page = client.get("/login")
        response = client.post("/login", data={"username": "guest", "csrf_token": csrf_from(page)})

        assert response.status_code == 400
        assert "Username and password are required" in response.text

    def test_returns_to_remembered_page(self, client, guest_user):
        response = client.get("/books/bookshelf", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/login"

        response = login(client, "guest", "guest123")

        assert response.headers["location"] == "/books/bookshelf"

    def test_logged_in_user_skips_login_page(self, guest_client):
        response = guest_client.get("/login", follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "/books/dashboard"

    def test_post_without_csrf_is_rejected(self, client, guest_user):
        client.get("/login")
        response = client.post("/login", data={"username": "guest", "password": "guest123"})

        assert response.status_code == 403


class TestRegister:
    def _register(self, client, **fields):
        page = client.get("/register")
        data = {
            "username": "alice",
            "email": "alice@example.com",
            "password": "secret123",
            "confirm_password": "secret123",
            "csrf_token": csrf_from(page),
        }
        data.update(fields)
        return client.post("/register", data=data, follow_redirects=False)

    def test_register_logs_in(self, client):
        response = self._register(client)

        assert response.status_code == 303
        assert response.headers["location"] == "/books/dashboard"
        assert "Welcome, alice" in client.get("/books/dashboard").text

    def test_errors_render_inline_and_keep_input(self, client):
        response = self._register(client, confirm_password="different1")

        assert response.status_code == 400
        assert "Passwords do not match" in response.text
        assert 'value="alice@example.com"' in response.text

    def test_duplicate_username(self, client, guest_user):
        response = self._register(client, username="guest")

        assert response.status_code == 409
        assert "Username already exists" in response.text


class TestLogout:
    def test_logout_ends_session(self, guest_client, db):
        token = guest_client.cookies.get(COOKIE)
        page = guest_client.get("/logout")

        response = guest_client.post(
            "/logout", data={"csrf_token": csrf_from(page)}, follow_redirects=False
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/login"
        db.expire_all()
        assert db.get(UserSession, token) is None
        assert guest_client.get("/books/dashboard", follow_redirects=False).status_code == 303


class TestExpiry:
    def _age(self, db, token, **changes):
        record = db.get(UserSession, token)
        for field, value in changes.items():
            setattr(record, field, value)
        db.commit()

    def test_idle_session_is_rejected(self, guest_client, db):
        token = guest_client.cookies.get(COOKIE)
        self._age(db, token, last_accessed=datetime.now(timezone.utc) - timedelta(hours=2))

        response = guest_client.get("/books/dashboard", follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "/login"
        assert f'{COOKIE}=""' in response.headers["set-cookie"] or "max-age=0" in response.headers["set-cookie"].lower()
        db.expire_all()
        assert db.get(UserSession, token) is None

    def test_absolute_lifetime(self, guest_client, db):
        token = guest_client.cookies.get(COOKIE)
        self._age(db, token, created_at=datetime.now(timezone.utc) - timedelta(hours=25))

        response = guest_client.get("/books/dashboard", follow_redirects=False)

        assert response.status_code == 303

    def test_unknown_token_gets_a_fresh_anonymous_session(self, client):
        response = client.get(
            "/books/dashboard",
            headers={"Cookie": f"{COOKIE}=forged-or-stale-token"},
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/login"
        assert "forged-or-stale-token" not in response.headers["set-cookie"]
