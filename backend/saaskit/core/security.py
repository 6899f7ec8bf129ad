from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Iterable

import jwt
from fastapi import Request
from fastapi.responses import JSONResponse
from passlib.context import CryptContext
from starlette.responses import Response

from saaskit.core.settings import Settings

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"
JWT_ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class AuthConfigError(Exception):
    pass


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str
    email: str = ""


AuthedHandler = Callable[[Request, CurrentUser], Awaitable[Response]]


def json_error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def _require_secret(settings: Settings) -> str:
    if not settings.auth_secret:
        raise AuthConfigError("AUTH_SECRET is not configured")
    return settings.auth_secret


def create_session_token(settings: Settings, user_id: str, role: str, email: str) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "role": role,
        "email": email,
        "iat": now,
        "exp": now + timedelta(hours=settings.session_ttl_hours),
    }
    return jwt.encode(claims, _require_secret(settings), algorithm=JWT_ALGORITHM)


def _get_session_token(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        token = auth.split(" ", 1)[1].strip()
        if token:
            return token
    cookie = (request.cookies.get(SESSION_COOKIE) or "").strip()
    return cookie or None


def resolve_session(request: Request, settings: Settings) -> CurrentUser | None:
    """The signed-in identity, or None when the request carries no usable session."""
    token = _get_session_token(request)
    if token is None:
        return None
    secret = _require_secret(settings)
    try:
        claims: dict[str, Any] = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError:
        return None
    user_id = str(claims.get("sub") or "").strip()
    role = str(claims.get("role") or "").strip()
    if not user_id or not role:
        return None
    return CurrentUser(id=user_id, role=role, email=str(claims.get("email") or ""))


def with_auth(handler: AuthedHandler, allowed_roles: Iterable[str] | None = None) -> Callable[[Request], Awaitable[Response]]:
    """Wrap ``handler(request, user)`` so it only runs for a signed-in user with an allowed role.

    No session gives 401, a role outside ``allowed_roles`` gives 403, and a
    failure while resolving the session gives 500. Errors raised by the
    handler itself are left alone.
    """
    roles = {getattr(r, "value", r) for r in allowed_roles} if allowed_roles is not None else None

    async def endpoint(request: Request) -> Response:
        try:
            user = resolve_session(request, request.app.state.settings)
        except Exception:
            logger.exception("auth.session_failed path=%s", request.url.path)
            return json_error("Internal server error", 500)
        if user is None:
            return json_error("Unauthorized", 401)
        if roles is not None and user.role not in roles:
            return json_error("Forbidden", 403)
        return await handler(request, user)

    endpoint.__name__ = getattr(handler, "__name__", "endpoint")
    return endpoint
