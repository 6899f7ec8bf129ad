from __future__ import annotations

import logging
import os
import uuid
from urllib.parse import urlparse

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from saaskit.api.deps import get_providers
from saaskit.core.security import CurrentUser, hash_password, json_error, verify_password, with_auth

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024


def file_name_from_url(url: str | None) -> str | None:
    if not url:
        return None
    path = urlparse(url).path
    name = path.rsplit("/", 1)[-1]
    return name or None


async def update_profile(request: Request, user: CurrentUser) -> JSONResponse:
    try:
        async with request.form() as form:
            new_name = form.get("name")
            upload = form.get("file")

            if new_name is not None and not str(new_name).strip():
                return json_error("Name invalid", 400)

            providers = get_providers(request)
            db_user = await providers.database.user.find_by_id(user.id)
            if db_user is None:
                return json_error("User doesn't exist", 404)

            fields: dict[str, str] = {}
            old_name = None
            if isinstance(upload, UploadFile) and upload.filename:
                if upload.content_type not in ALLOWED_IMAGE_TYPES:
                    return json_error("Only JPG or PNG files are allowed", 400)
                data = await upload.read(MAX_IMAGE_BYTES + 1)
                if len(data) > MAX_IMAGE_BYTES:
                    return json_error("File size must be 5MB or less", 400)

                extension = os.path.splitext(upload.filename)[1]
                file_name = f"{uuid.uuid4()}{extension}"
                storage = providers.storage
                stored_name = await storage.upload_file(
                    user.id, file_name, data, content_type=upload.content_type, acl="public-read"
                )
                fields["image"] = (await storage.get_file_url(user.id, stored_name)).split("?")[0]
                old_name = file_name_from_url(db_user.image)

            if new_name is not None:
                fields["name"] = str(new_name).strip()

            if fields:
                db_user = await providers.database.user.update(user.id, fields)

            # Best-effort once the row points at the new image.
            if old_name:
                try:
                    await providers.storage.delete_file(user.id, old_name)
                except Exception:
                    logger.exception("profile.old_image_delete_failed user_id=%s file=%s", user.id, old_name)
            return JSONResponse({"name": db_user.name, "image": db_user.image})
    except Exception:
        logger.exception("profile.update.failed user_id=%s", user.id)
        return json_error("Internal server error", 500)


async def update_password(request: Request, user: CurrentUser) -> JSONResponse:
    try:
        async with request.form() as form:
            current_password = str(form.get("currentPassword") or "")
            new_password = str(form.get("newPassword") or "")
            confirm_new_password = str(form.get("confirmNewPassword") or "")

        if not current_password:
            return json_error("Current password cannot be empty", 400)
        if not new_password:
            return json_error("New password cannot be empty", 400)
        if not confirm_new_password:
            return json_error("Confirm new password cannot be empty", 400)
        if new_password != confirm_new_password:
            return json_error("New passwords do not match", 400)

        db = get_providers(request).database
        db_user = await db.user.find_by_id(user.id)
        if db_user is None:
            return json_error("User doesn't exist", 404)
        if not verify_password(current_password, db_user.password_hash):
            return json_error("Current password is incorrect", 401)

        db_user = await db.user.update(user.id, {"password_hash": hash_password(new_password)})
        logger.info("profile.password_changed user_id=%s", user.id)
        return JSONResponse({"name": db_user.name, "image": db_user.image})
    except Exception:
        logger.exception("profile.password.failed user_id=%s", user.id)
        return json_error("Internal server error", 500)


router.add_api_route("/profile", with_auth(update_profile), methods=["PUT"])
router.add_api_route("/password", with_auth(update_password), methods=["PUT"])
