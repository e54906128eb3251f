# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
FastAPI application factory.

Responsibilities
----------------
* Instantiate the FastAPI app and the shared catalog client.
* Register the middlewares: security headers, session cookie, request log.
* Map the application exceptions onto pages / redirects.
* Mount the feature routers (auth, books, catalog, admin).
* Create tables and seed the default accounts on start-up.
* Expose a /health endpoint for container liveness checks.
"""

import time
from pathlib import Path

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from admin.router import router as admin_router
from auth.router import router as auth_router
from books.router import router as books_router
from catalog.client import CatalogClient
from catalog.router import router as catalog_router
from core import sessions
from core.config import settings
from core.errors import (
    BookshelfError,
    ConflictError,
    Forbidden,
    NotAuthenticated,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from core.logger import logger
from core.templating import render
from database import SessionLocal, engine, get_db, init_db
from seed import seed_database

app = FastAPI(title="Bookshelf", version="1.0.0")

# One HTTP client configuration for the whole process
app.state.catalog = CatalogClient.from_settings()


# ---------------------------------------------------------------------------
# Session-cookie middleware
# ---------------------------------------------------------------------------
# Guards put the session token on request.state; the cookie is written here,
# after the endpoint (or exception handler) produced its response, so it is
# set on redirects and error pages alike.


class _SessionCookieMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)

        token = getattr(request.state, "session_token", None)
        if token:
            response.set_cookie(
                settings.session_cookie_name,
                token,
                max_age=settings.session_idle_minutes * 60,
                httponly=True,
                samesite="lax",
                secure=settings.secure_cookies,
                path="/",
            )
        elif getattr(request.state, "clear_session_cookie", False):
            response.delete_cookie(settings.session_cookie_name, path="/")
        return response


# ---------------------------------------------------------------------------
# Security headers
# ---------------------------------------------------------------------------


class _SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        return response


# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Logs every inbound request: method, path, client IP, status, latency.
# Form bodies (passwords) are never echoed – only the URL and metadata.


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        client_ip = request.client.host if request.client else "unknown"

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            request.url.path,
            client_ip,
            response.status_code,
            elapsed_ms,
        )
        return response


# Last added runs first: the log sees the final status and headers.
app.add_middleware(_SessionCookieMiddleware)
app.add_middleware(_SecurityHeadersMiddleware)
app.add_middleware(_RequestLogMiddleware)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _error_page(request: Request, title: str, message: str, status_code: int):
    return render(
        request,
        "error.html",
        {"title": title, "message": message},
        status_code=status_code,
    )


@app.exception_handler(NotAuthenticated)
async def _not_authenticated(request: Request, exc: NotAuthenticated):
    # SessionExpired lands here too; the cookie middleware clears the cookie
    return RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)


@app.exception_handler(Forbidden)
async def _forbidden(request: Request, exc: Forbidden):
    logger.warning("Forbidden | path=%s reason=%s", request.url.path, exc.code)
    return _error_page(request, exc.title, exc.message, status.HTTP_403_FORBIDDEN)


@app.exception_handler(NotFoundError)
@app.exception_handler(ValidationError)
@app.exception_handler(ConflictError)
async def _client_error(request: Request, exc: BookshelfError):
    return _error_page(request, exc.title, exc.message, exc.status_code)


@app.exception_handler(UpstreamError)
async def _upstream_error(request: Request, exc: UpstreamError):
    return _error_page(
        request,
        exc.title,
        "The book catalog is unavailable. Please try again later.",
        exc.status_code,
    )


@app.exception_handler(BookshelfError)
async def _app_error(request: Request, exc: BookshelfError):
    logger.error("Unhandled application error | path=%s code=%s", request.url.path, exc.code)
    return _error_page(request, exc.title, "An unexpected error occurred.", exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def _db_error(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error | path=%s", request.url.path)
    return _error_page(
        request,
        "Database Error",
        "An unexpected error occurred. Please try again later.",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError):
    return _error_page(
        request,
        "Invalid Request",
        "The request could not be processed.",
        status.HTTP_400_BAD_REQUEST,
    )


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return _error_page(request, "Page Not Found", "The requested page does not exist.", exc.status_code)
    return _error_page(request, "Error", str(exc.detail), exc.status_code)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(auth_router)
app.include_router(books_router)
app.include_router(catalog_router)
app.include_router(admin_router)


# ---------------------------------------------------------------------------
# Static files – stylesheet for the server-rendered pages
# ---------------------------------------------------------------------------
_STATIC_DIR = Path(__file__).resolve().parent.parent / "static"

if _STATIC_DIR.is_dir():
    app.mount("/static", StaticFiles(directory=str(_STATIC_DIR)), name="static")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@app.on_event("startup")
async def _on_startup():
    logger.info("Bookshelf service starting up")
    if settings.seed_on_startup:
        init_db()
        db = SessionLocal()
        try:
            seed_database(db)
        finally:
            db.close()


@app.on_event("shutdown")
async def _on_shutdown():
    engine.dispose()
    logger.info("Bookshelf service shutting down")


# ---------------------------------------------------------------------------
# Health check / landing
# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/")
def index(request: Request, db: Session = Depends(get_db)):
    """Logged-in users go to their dashboard, everyone else to /login."""
    record = sessions.load(db, request.cookies.get(settings.session_cookie_name))
    authenticated = record is not None and record.is_authenticated and not sessions.is_expired(record)
    target = sessions.DEFAULT_LANDING if authenticated else "/login"
    return RedirectResponse(url=target, status_code=status.HTTP_303_SEE_OTHER)
