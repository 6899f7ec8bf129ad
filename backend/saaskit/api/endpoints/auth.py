from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from urllib.parse import quote

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from saaskit.api.deps import InvalidBodyError, get_providers, get_settings, read_json
from saaskit.core.security import SESSION_COOKIE, create_session_token, hash_password, json_error, verify_password
from saaskit.core.settings import Settings
from saaskit.models.user import User, UserRole
from saaskit.models.verification_token import TokenPurpose
from saaskit.services.database.base import DatabaseClient
from saaskit.services.email.templates import magic_link_email, reset_password_email, verification_email

logger = logging.getLogger(__name__)

router = APIRouter()

EMAILED_TOKEN_TTL = timedelta(hours=1)


class SignupRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None
    magicLinkToken: str | None = None


class EmailRequest(BaseModel):
    email: str | None = None


class ResetPasswordRequest(BaseModel):
    token: str | None = None
    password: str | None = None


def _normalize_email(value: str | None) -> str:
    return str(value or "").strip().lower()


@router.post("/auth/signup")
async def signup(request: Request) -> JSONResponse:
    try:
        body = SignupRequest.model_validate(await read_json(request))
    except (InvalidBodyError, ValueError):
        return json_error("Missing required fields", 400)

    name = (body.name or "").strip()
    email = _normalize_email(body.email)
    if not name or not email or not body.password:
        return json_error("Missing required fields", 400)

    settings = get_settings(request)
    providers = get_providers(request)
    try:
        is_first_user = await providers.database.user.count() == 0
        if await providers.database.user.find_by_email(email) is not None:
            return json_error("User already exists", 409)

        verification_token = None if settings.disable_email_verification else str(uuid.uuid4())
        user = await providers.database.user.create(
            {
                "name": name,
                "email": email,
                "image": None,
                "password_hash": hash_password(body.password),
                "role": UserRole.ADMIN if is_first_user else UserRole.USER,
                "verification_token": verification_token,
                "email_verified": settings.disable_email_verification,
            }
        )
        logger.info("auth.signup user_id=%s first_user=%s", user.id, is_first_user)

        if verification_token is None:
            return JSONResponse({"ok": True, "message": "Account created."})

        verify_url = f"{settings.base_url}/verify-email?token={quote(verification_token)}"
        await providers.email.send_email(user.email, "Verify your email address", verification_email(verify_url))
        return JSONResponse({"ok": True, "message": "Verification email sent."})
    except Exception:
        logger.exception("auth.signup.failed")
        return json_error("Internal server error", 500)


async def _issue_emailed_token(db: DatabaseClient, email: str, purpose: TokenPurpose) -> str:
    """Store a fresh single-use token for ``email``, replacing earlier ones of the same purpose."""
    await db.verification_token.delete_by_identifier(email, purpose)
    token = str(uuid.uuid4())
    await db.verification_token.create(
        {
            "identifier": email,
            "token": token,
            "purpose": purpose,
            "expires": datetime.now(timezone.utc) + EMAILED_TOKEN_TTL,
        }
    )
    return token


async def _authenticate_with_magic_link(db: DatabaseClient, email: str, token: str) -> User | None:
    row = await db.verification_token.consume(token, TokenPurpose.MAGIC_LINK, identifier=email)
    if row is None or row.is_expired():
        return None
    user = await db.user.find_by_email(email)
    if user is not None and not user.email_verified:
        # The link was delivered to this address.
        user = await db.user.update(user.id, {"email_verified": True, "verification_token": None})
    return user


def _session_response(settings: Settings, user: User) -> JSONResponse:
    token = create_session_token(settings, user.id, user.role, user.email)
    response = JSONResponse({"access_token": token, "token_type": "bearer"})
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.session_ttl_hours * 3600,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


@router.post("/auth/login")
async def login(request: Request) -> JSONResponse:
    """Password login, or magic-link login when ``magicLinkToken`` is sent instead of a password."""
    try:
        body = LoginRequest.model_validate(await read_json(request))
    except (InvalidBodyError, ValueError):
        return json_error("Missing credentials", 400)

    email = _normalize_email(body.email)
    magic_token = (body.magicLinkToken or "").strip()
    if not email or not (body.password or magic_token):
        return json_error("Missing credentials", 400)

    settings = get_settings(request)
    db = get_providers(request).database
    try:
        if magic_token:
            user = await _authenticate_with_magic_link(db, email, magic_token)
            if user is None:
                return json_error("Invalid or expired token", 401)
        else:
            user = await db.user.find_by_email(email)
            if user is None or not verify_password(body.password, user.password_hash):
                return json_error("Invalid credentials", 401)
            if not user.email_verified and not settings.disable_email_verification:
                return json_error("Email not verified", 403)

        response = _session_response(settings, user)
    except Exception:
        logger.exception("auth.login.failed")
        return json_error("Internal server error", 500)

    logger.info("auth.login user_id=%s method=%s", user.id, "magic_link" if magic_token else "password")
    return response


@router.post("/auth/magic-link")
async def request_magic_link(request: Request) -> JSONResponse:
    try:
        body = EmailRequest.model_validate(await read_json(request))
    except (InvalidBodyError, ValueError):
        return json_error("Email is required", 400)
    email = _normalize_email(body.email)
    if not email:
        return json_error("Email is required", 400)

    settings = get_settings(request)
    providers = get_providers(request)
    try:
        user = await providers.database.user.find_by_email(email)
        if user is None:
            return json_error("User not found", 404)

        token = await _issue_emailed_token(providers.database, email, TokenPurpose.MAGIC_LINK)
        login_url = f"{settings.base_url}/magic-link?token={quote(token)}&email={quote(email)}"
        await providers.email.send_email(user.email, "Login to your account", magic_link_email(login_url))
        logger.info("auth.magic_link.sent user_id=%s", user.id)
        return JSONResponse({"ok": True})
    except Exception:
        logger.exception("auth.magic_link.failed")
        return json_error("Internal server error", 500)


@router.post("/forgot-password")
async def forgot_password(request: Request) -> JSONResponse:
    """Always answers ``{success: true}`` for a well-formed request, whether or not the account exists."""
    try:
        body = EmailRequest.model_validate(await read_json(request))
    except (InvalidBodyError, ValueError):
        return json_error("Email is required", 400)
    email = _normalize_email(body.email)
    if not email:
        return json_error("Email is required", 400)

    settings = get_settings(request)
    providers = get_providers(request)
    try:
        user = await providers.database.user.find_by_email(email)
        if user is None:
            logger.info("auth.forgot_password.unknown_email")
            return JSONResponse({"success": True})

        token = await _issue_emailed_token(providers.database, email, TokenPurpose.RESET_PASSWORD)
        reset_url = f"{settings.base_url}/reset-password?token={quote(token)}"
        await providers.email.send_email(email, "Reset your password", reset_password_email(reset_url, email))
        logger.info("auth.forgot_password.sent user_id=%s", user.id)
        return JSONResponse({"success": True})
    except Exception:
        logger.exception("auth.forgot_password.failed")
        return json_error("An unexpected error occurred.", 500)


@router.post("/reset-password")
async def reset_password(request: Request) -> JSONResponse:
    try:
        body = ResetPasswordRequest.model_validate(await read_json(request))
    except (InvalidBodyError, ValueError):
        return json_error("Missing required fields", 400)
    token = (body.token or "").strip()
    if not token or not body.password:
        return json_error("Missing required fields", 400)

    db = get_providers(request).database
    try:
        row = await db.verification_token.consume(token, TokenPurpose.RESET_PASSWORD)
        if row is None or row.is_expired():
            return json_error("Invalid or expired token", 400)
        user = await db.user.find_by_email(row.identifier)
        if user is None:
            return json_error("Invalid or expired token", 400)
        await db.user.update(user.id, {"password_hash": hash_password(body.password)})
    except Exception:
        logger.exception("auth.reset_password.failed")
        return json_error("Internal server error", 500)

    logger.info("auth.password_reset user_id=%s", user.id)
    return JSONResponse({"success": True})


@router.get("/verify-email")
async def verify_email(request: Request) -> JSONResponse:
    token = (request.query_params.get("token") or "").strip()
    if not token:
        return json_error("Missing token", 400)

    db = get_providers(request).database
    try:
        user = await db.user.find_by_verification_token(token)
        if user is None:
            return json_error("Invalid or expired token", 400)
        await db.user.update(user.id, {"email_verified": True, "verification_token": None})
    except Exception:
        logger.exception("auth.verify_email.failed")
        return json_error("Internal server error", 500)
    return JSONResponse({"success": True})
