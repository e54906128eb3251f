# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Central security module.  Cryptographic primitives and input-neutralising
helpers live here.  No other module should touch raw crypto directly.

Responsibilities
----------------
1. Password hashing / verification          (passlib pbkdf2_sha256)
2. Password policy and e-mail format checks
3. HTML escaping of user-supplied free text (the single sanitising boundary)
4. Opaque tokens for sessions and anti-forgery (secrets)
5. Client IP extraction for the audit trail
"""

import html
import re
import secrets

from fastapi import Request
from passlib.hash import pbkdf2_sha256 as _pbkdf2  # pure Python, no binary deps

from core.config import settings

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – password hashing
# ---------------------------------------------------------------------------
# passlib embeds the random salt and the round count in the hash string, so a
# later change of ``password_hash_rounds`` does not invalidate stored hashes.
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Hash a plaintext password with PBKDF2-SHA256."""
    return _pbkdf2.using(rounds=settings.password_hash_rounds).hash(plain)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification of a plaintext password against a hash
    produced by :func:`hash_password`.  Malformed hashes verify as False.
    """
    try:
        return _pbkdf2.verify(plain, stored_hash)
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# 2.  Input policy
# ---------------------------------------------------------------------------

PASSWORD_MIN_LENGTH = 8

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def password_problem(pw: str) -> str | None:
    """
    Return an error string if the password does not meet the minimum policy,
    or None if it is acceptable.

    Policy: >= 8 chars, at least one letter, at least one digit.
    """
    if (
        len(pw) < PASSWORD_MIN_LENGTH
        or not re.search(r"[A-Za-z]", pw)
        or not re.search(r"[0-9]", pw)
    ):
        return (
            "Password must be at least 8 characters long and contain "
            "at least one letter and one number"
        )
    return None


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


# ---------------------------------------------------------------------------
# 3.  Sanitising
# ---------------------------------------------------------------------------


def sanitize(value: str | None) -> str | None:
    """
    Escape HTML special characters (& < > " ').  Empty input becomes None so
    optional text columns stay NULL rather than "".
    """
    if value is None:
        return None
    text = str(value)
    if not text:
        return None
    return html.escape(text, quote=True)


# ---------------------------------------------------------------------------
# 4.  Tokens
# ---------------------------------------------------------------------------


def new_token() -> str:
    """256-bit URL-safe random token."""
    return secrets.token_urlsafe(32)


def tokens_match(expected: str | None, supplied: str | None) -> bool:
    """Constant-time token comparison; a missing value never matches."""
    if not expected or not supplied:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


# -- IP Address extraction ----------------------------------------------------


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.
    Checks X-Forwarded-For header first (for proxies), then falls back to client host.
    Returns the IP address as a string (supports both IPv4 and IPv6).
    """
    # Check X-Forwarded-For header (common when behind proxy/load balancer)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded.split(",")[0].strip()

    # Fall back to direct client address
    if request.client:
        return request.client.host

    return "unknown"
