"""
Application configuration.
Secrets and connection strings are loaded from environment variables or the
etc/app.conf file.  The defaults below are development values only.
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Project root is two levels up from this file  (backend/core/config.py → bookshelf/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./bookshelf.db"

    # "production" turns on the Secure cookie flag
    environment: str = "development"

    # Server-side sessions: the cookie only carries an opaque token
    session_cookie_name: str = "bookshelf_session"
    session_idle_minutes: int = 60
    session_absolute_hours: int = 24

    # PBKDF2-SHA256 work factor.  Lower it only in tests.
    password_hash_rounds: int = 600_000

    # External book catalog (Google Books volumes API)
    catalog_api_url: str = "https://www.googleapis.com/books/v1/volumes"
    catalog_api_key: str = ""
    catalog_timeout_seconds: float = 5.0
    catalog_max_results: int = 10
    search_query_max_length: int = 100

    # First-run seed.  Create tables and the default accounts on startup.
    seed_on_startup: bool = True
    first_admin_username: str = "admin"
    first_admin_email: str = "admin@bookshelf.com"
    first_admin_password: str = "admin123"
    first_guest_username: str = "guest"
    first_guest_email: str = "guest@bookshelf.com"
    first_guest_password: str = "guest123"

    # app.conf lives in etc/ – resolved relative to the project root so that
    # the file is found regardless of the working directory.
    model_config = {"env_file": str(_PROJECT_ROOT / "etc" / "app.conf")}

    @property
    def secure_cookies(self) -> bool:
        return self.environment == "production"


# Module-level singleton – import this everywhere: from core.config import settings
settings = Settings()
