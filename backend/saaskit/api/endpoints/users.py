from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from saaskit.api.deps import InvalidBodyError, get_providers, parse_positive_int, read_json
from saaskit.core.security import CurrentUser, json_error, with_auth
from saaskit.models.subscription import SubscriptionPlan, SubscriptionStatus
from saaskit.models.user import UserRole
from saaskit.schemas.account import UserResponse, UserWithSubscriptionsResponse, dump
from saaskit.services.database.base import RecordNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_FIELDS = ("name", "role", "subscription")


def _valid(value: Any, enum_cls) -> bool:
    return value is None or value in {m.value for m in enum_cls}


async def list_users(request: Request, user: CurrentUser) -> JSONResponse:
    params = request.query_params
    try:
        users, total = await get_providers(request).database.user.find_all(
            page=parse_positive_int(params.get("page"), 1),
            page_size=parse_positive_int(params.get("pageSize"), 10),
            search_name=params.get("searchName") or None,
            filter_plan=params.get("filterPlan") or None,
            filter_status=params.get("filterStatus") or None,
        )
        return JSONResponse({"users": [dump(UserWithSubscriptionsResponse, u) for u in users], "total": total})
    except Exception:
        logger.exception("users.list.failed")
        return json_error("Internal server error", 500)


async def update_user(request: Request, user: CurrentUser) -> JSONResponse:
    user_id = str(request.path_params.get("user_id") or "").strip()
    if not user_id:
        return json_error("User ID is required", 400)
    try:
        try:
            body = await read_json(request)
        except InvalidBodyError:
            return json_error("No valid fields to update", 400)
        updates = {k: body[k] for k in ALLOWED_FIELDS if k in body}
        if not updates:
            return json_error("No valid fields to update", 400)

        user_fields = {k: updates[k] for k in ("name", "role") if k in updates}
        if not _valid(user_fields.get("role"), UserRole):
            return json_error("Invalid role", 400)

        sub_fields: dict[str, Any] = {}
        raw_sub = updates.get("subscription")
        if raw_sub is not None:
            if not isinstance(raw_sub, dict):
                return json_error("Invalid subscription", 400)
            sub_fields = {k: raw_sub[k] for k in ("plan", "status") if k in raw_sub}
            if not _valid(sub_fields.get("plan"), SubscriptionPlan) or not _valid(sub_fields.get("status"), SubscriptionStatus):
                return json_error("Invalid subscription", 400)

        db = get_providers(request).database
        if user_fields:
            updated = await db.user.update(user_id, user_fields)
        else:
            updated = await db.user.find_by_id(user_id)
            if updated is None:
                return json_error("User not found", 404)

        if sub_fields:
            # Admin edits target the user's first subscription row.
            rows = await db.subscription.find_by_user_id(user_id)
            if rows:
                await db.subscription.update(rows[0].id, sub_fields)
            else:
                await db.subscription.create({"user_id": user_id, **sub_fields})

        logger.info("users.updated user_id=%s by=%s fields=%s", user_id, user.id, sorted(updates))
        return JSONResponse({"user": dump(UserResponse, updated)})
    except RecordNotFoundError:
        return json_error("User not found", 404)
    except Exception:
        logger.exception("users.update.failed user_id=%s", user_id)
        return json_error("Internal server error", 500)


router.add_api_route("/users", with_auth(list_users, allowed_roles=[UserRole.ADMIN]), methods=["GET"])
router.add_api_route("/users/{user_id}", with_auth(update_user, allowed_roles=[UserRole.ADMIN]), methods=["PATCH"])
