# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Application exception hierarchy.

Stores raise these; routers catch the form-level ones (ValidationError,
ConflictError) and re-render the originating page.  Everything else is
mapped to a response by the handlers registered in ``main.py``.
"""

from fastapi import status


class BookshelfError(Exception):
    """Base class.  ``status_code`` is the HTTP status the error maps to."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    title = "Error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


# -- Input / state conflicts -----------------------------------------------


class ValidationError(BookshelfError):
    status_code = status.HTTP_400_BAD_REQUEST
    title = "Invalid Request"


class ConflictError(BookshelfError):
    status_code = status.HTTP_409_CONFLICT
    title = "Conflict"


class NotFoundError(BookshelfError):
    status_code = status.HTTP_404_NOT_FOUND
    title = "Not Found"


# -- Authentication / authorization ----------------------------------------


class AuthenticationError(BookshelfError):
    """Bad credentials.  ``code`` is NotFound or WrongPassword."""

    status_code = status.HTTP_401_UNAUTHORIZED
    title = "Login Failed"


class NotAuthenticated(BookshelfError):
    """No user in the session – the handler redirects to /login."""

    status_code = status.HTTP_303_SEE_OTHER
    title = "Login Required"


class SessionExpired(NotAuthenticated):
    title = "Session Expired"


class Forbidden(BookshelfError):
    status_code = status.HTTP_403_FORBIDDEN
    title = "Access Denied"


class CsrfError(Forbidden):
    title = "Security Error"


# -- Infrastructure --------------------------------------------------------


class StorageError(BookshelfError):
    title = "Database Error"


class UpstreamError(BookshelfError):
    """The external catalog failed or timed out."""

    status_code = status.HTTP_502_BAD_GATEWAY
    title = "Catalog Unavailable"
