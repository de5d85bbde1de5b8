"""Request-scoped session context, CSRF double-submit check, origin guard and rate limits.

Everything here is a FastAPI dependency; no session state is kept at module
level.
"""
import hmac
import logging
import re
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Request, Response
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from worklog.config import settings
from worklog.errors import AuthError, ForbiddenError, RateLimitError
from worklog.services.auth_service import decode_session_token

logger = logging.getLogger(__name__)

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
CSRF_HEADER = "X-CSRF-Token"
SESSION_MAX_AGE = 7 * 24 * 60 * 60
CSRF_MAX_AGE = 2 * 60 * 60
AUTH_RATE_LIMIT_MESSAGE = "Too many attempts. Try again in a few minutes."

rate_limit_storage = MemoryStorage()
rate_limiter = FixedWindowRateLimiter(rate_limit_storage)


@dataclass(frozen=True)
class SessionContext:
    """The authenticated caller, as bound into the session token."""

    user_id: str
    email: str
    name: str


def _token_from_request(request: Request) -> str:
    cookie_token = request.cookies.get(settings.COOKIE_NAME)
    if cookie_token:
        return cookie_token
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme == "Bearer" and token:
        return token
    return ""


def get_session_context(request: Request) -> SessionContext:
    """Verify the session token and expose the caller; 401 if absent or invalid."""
    token = _token_from_request(request)
    if not token:
        raise AuthError("Invalid session.")
    claims = decode_session_token(token)
    return SessionContext(
        user_id=str(claims["sub"]),
        email=str(claims.get("email", "")),
        name=str(claims.get("name", "")),
    )


def require_csrf(request: Request) -> None:
    """Double-submit check: header token must equal the CSRF cookie on unsafe methods."""
    if request.method.upper() in SAFE_METHODS:
        return
    cookie_token = request.cookies.get(settings.CSRF_COOKIE_NAME, "")
    header_token = request.headers.get(CSRF_HEADER, "")
    if not cookie_token or not header_token:
        raise ForbiddenError("CSRF token missing.")
    if not hmac.compare_digest(cookie_token.encode("utf-8"), header_token.encode("utf-8")):
        logger.warning("CSRF mismatch on %s %s", request.method, request.url.path)
        raise ForbiddenError("Invalid CSRF token.")


def origin_allowed(origin: str, exact: str, pattern: str) -> bool:
    if not origin:
        return False
    if exact and origin == exact:
        return True
    if pattern and re.search(pattern, origin):
        return True
    return False


def check_origin(request: Request) -> None:
    """In production, unsafe requests must come from the configured origin."""
    if not settings.is_production:
        return
    if request.method.upper() in SAFE_METHODS:
        return
    origin = request.headers.get("origin", "")
    if not origin_allowed(origin, settings.APP_ORIGIN, settings.APP_ORIGIN_REGEX):
        logger.warning("Blocked %s %s from origin %r", request.method, request.url.path, origin)
        raise ForbiddenError("Origin not allowed.")


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _enforce_limit(request: Request, limit: str, scope: str, message: Optional[str] = None) -> None:
    if not settings.RATE_LIMIT_ENABLED:
        return
    key = _client_key(request)
    if not rate_limiter.hit(parse(limit), scope, key):
        logger.warning("Rate limit %s (%s) exceeded by %s on %s", scope, limit, key, request.url.path)
        raise RateLimitError(message)


def global_rate_limit(request: Request) -> None:
    """Per-client budget shared by every API route."""
    _enforce_limit(request, settings.RATE_LIMIT_GLOBAL, "global")


def auth_rate_limit(request: Request) -> None:
    """Tighter per-client budget for the auth routes."""
    _enforce_limit(request, settings.RATE_LIMIT_AUTH, "auth", AUTH_RATE_LIMIT_MESSAGE)


def new_csrf_token() -> str:
    return secrets.token_urlsafe(32)


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        settings.COOKIE_NAME, path="/", httponly=True, secure=settings.is_production, samesite="lax"
    )


def set_csrf_cookie(response: Response, token: str) -> None:
    # readable by client script so it can echo the value in the header
    response.set_cookie(
        key=settings.CSRF_COOKIE_NAME,
        value=token,
        max_age=CSRF_MAX_AGE,
        httponly=False,
        secure=settings.is_production,
        samesite="strict",
        path="/",
    )


def clear_csrf_cookie(response: Response) -> None:
    response.delete_cookie(
        settings.CSRF_COOKIE_NAME, path="/", httponly=False, secure=settings.is_production, samesite="strict"
    )


def apply_security_headers(response: Response, production: Optional[bool] = None) -> None:
    production = settings.is_production if production is None else production
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault(
        "Content-Security-Policy",
        "default-src 'self'; script-src 'self'; connect-src 'self'; img-src 'self' data:; "
        "frame-ancestors 'none'; object-src 'none'",
    )
    if production:
        response.headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains")
