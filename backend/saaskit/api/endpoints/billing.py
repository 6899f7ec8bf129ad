from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from saaskit.api.deps import InvalidBodyError, get_providers, get_settings, read_json
from saaskit.core.security import CurrentUser, json_error, with_auth
from saaskit.models.subscription import SubscriptionPlan, SubscriptionStatus
from saaskit.services.providers import Providers

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateSubscriptionRequest(BaseModel):
    priceId: str | None = None


async def _resolve_customer(providers: Providers, user: CurrentUser) -> str:
    """External customer id for ``user``, creating and recording one when missing."""
    customers = await providers.billing.list_customer(user.email)
    if customers:
        return customers[0].id

    customer = await providers.billing.create_customer(user.email, {"userId": user.id})
    rows = await providers.database.subscription.find_by_user_id(user.id)
    if rows and not rows[0].customer_id:
        await providers.database.subscription.update(rows[0].id, {"customer_id": customer.id})
    elif not rows:
        await providers.database.subscription.create(
            {"user_id": user.id, "customer_id": customer.id, "plan": None, "status": None}
        )
    logger.info("billing.customer.created user_id=%s customer=%s", user.id, customer.id)
    return customer.id


async def create_customer(request: Request, user: CurrentUser) -> JSONResponse:
    try:
        customer_id = await _resolve_customer(get_providers(request), user)
        return JSONResponse({"customerId": customer_id})
    except Exception:
        logger.exception("billing.create_customer.failed user_id=%s", user.id)
        return json_error("Internal Server Error", 500)


async def create_subscription(request: Request, user: CurrentUser) -> JSONResponse:
    try:
        try:
            body = CreateSubscriptionRequest.model_validate(await read_json(request))
        except (InvalidBodyError, ValueError):
            return json_error("Price ID is required", 400)
        price_id = (body.priceId or "").strip()
        if not price_id:
            return json_error("Price ID is required", 400)

        providers = get_providers(request)
        settings = get_settings(request)
        customer_id = await _resolve_customer(providers, user)
        result = await providers.billing.create_subscription(customer_id, price_id)

        plan = SubscriptionPlan.PRO if price_id == settings.stripe_pro_price_id else SubscriptionPlan.FREE
        fields = {"customer_id": customer_id, "status": SubscriptionStatus.ACTIVE, "plan": plan}
        rows = await providers.database.subscription.find_by_user_id(user.id)
        if rows:
            await providers.database.subscription.update(rows[0].id, fields)
        else:
            await providers.database.subscription.create({"user_id": user.id, **fields})

        logger.info("billing.subscription.created user_id=%s plan=%s", user.id, plan.value)
        return JSONResponse({"clientSecret": result.get("client_secret")})
    except Exception:
        logger.exception("billing.create_subscription.failed user_id=%s", user.id)
        return json_error("Internal Server Error", 500)


async def get_subscription(request: Request, user: CurrentUser) -> JSONResponse:
    try:
        billing = get_providers(request).billing
        customers = await billing.list_customer(user.email)
        if not customers:
            return JSONResponse({"subscription": None})
        subscriptions = await billing.list_subscription(customers[0].id)
        if not subscriptions:
            return JSONResponse({"subscription": None})
        sub = subscriptions[0]
        return JSONResponse(
            {
                "subscription": {
                    "id": sub.id,
                    "status": sub.status,
                    "items": [{"id": item.id, "priceId": item.price_id} for item in sub.items],
                }
            }
        )
    except Exception:
        logger.exception("billing.get_subscription.failed user_id=%s", user.id)
        return json_error("Internal Server Error", 500)


async def cancel_subscription(request: Request, user: CurrentUser) -> JSONResponse:
    try:
        providers = get_providers(request)
        customers = await providers.billing.list_customer(user.email)
        if not customers:
            return json_error("Customer not found", 404)

        subscriptions = await providers.billing.list_subscription(customers[0].id)
        if not subscriptions:
            return json_error("No active subscription", 400)

        await providers.billing.cancel_subscription(subscriptions[0].id)

        local = await providers.database.subscription.find_by_user_and_status(user.id, SubscriptionStatus.ACTIVE)
        if local is None:
            logger.warning("billing.cancel.local_drift user_id=%s subscription=%s", user.id, subscriptions[0].id)
            return json_error("Active subscription not found in database", 404)

        await providers.database.subscription.update(local.id, {"status": SubscriptionStatus.CANCELED})
        logger.info("billing.subscription.canceled user_id=%s", user.id)
        return JSONResponse({"canceled": True})
    except Exception:
        logger.exception("billing.cancel_subscription.failed user_id=%s", user.id)
        return json_error("Internal Server Error", 500)


async def checkout(request: Request, user: CurrentUser) -> JSONResponse:
    settings = get_settings(request)
    if not settings.stripe_pro_price_id:
        logger.error("billing.checkout.missing_pro_price")
        return json_error("Missing Pro Price", 500)

    try:
        providers = get_providers(request)
        rows = await providers.database.subscription.find_by_user_id(user.id)
        if not rows or not rows[0].customer_id:
            return json_error("No subscription found", 404)

        url = await providers.billing.manage_subscription(
            settings.stripe_pro_price_id,
            rows[0].customer_id,
            f"{settings.base_url}/dashboard/subscription",
        )
        if not url:
            logger.error("billing.checkout.no_portal_url user_id=%s", user.id)
            return json_error("Internal Server Error", 500)
        return JSONResponse({"url": url})
    except Exception:
        logger.exception("billing.checkout.failed user_id=%s", user.id)
        return json_error("Internal Server Error", 500)


async def upgrade_to_pro(request: Request, user: CurrentUser) -> JSONResponse:
    try:
        providers = get_providers(request)
        settings = get_settings(request)
        customers = await providers.billing.list_customer(user.email)
        if not customers:
            return json_error("Customer not found", 404)

        subscriptions = await providers.billing.list_subscription(customers[0].id)
        if not subscriptions or not subscriptions[0].items:
            return json_error("Subscription not found", 404)
        sub = subscriptions[0]

        if not settings.stripe_pro_price_id:
            return json_error("Pro price ID is not configured", 500)

        result = await providers.billing.update_subscription(sub.id, sub.items[0].id, settings.stripe_pro_price_id)

        rows = await providers.database.subscription.find_by_user_id(user.id)
        if not rows:
            return json_error("Active subscription not found in database", 404)
        await providers.database.subscription.update(
            rows[0].id, {"status": SubscriptionStatus.PENDING, "plan": SubscriptionPlan.PRO}
        )
        return JSONResponse({"clientSecret": result.get("client_secret")})
    except Exception:
        logger.exception("billing.upgrade_to_pro.failed user_id=%s", user.id)
        return json_error("Internal Server Error", 500)


async def pricing(request: Request) -> JSONResponse:
    try:
        products = await get_providers(request).billing.get_products()
        return JSONResponse([p.to_dict() for p in products])
    except Exception:
        logger.exception("billing.pricing.failed")
        return json_error("Internal Server Error", 500)


router.add_api_route("/billing/create-customer", with_auth(create_customer), methods=["POST"])
router.add_api_route("/billing/create-subscription", with_auth(create_subscription), methods=["POST"])
router.add_api_route("/billing/get-subscription", with_auth(get_subscription), methods=["GET"])
router.add_api_route("/billing/cancel-subscription", with_auth(cancel_subscription), methods=["POST"])
router.add_api_route("/billing/checkout", with_auth(checkout), methods=["POST"])
router.add_api_route("/billing/upgrade-to-pro", with_auth(upgrade_to_pro), methods=["POST"])
router.add_api_route("/billing/pricing", pricing, methods=["GET"])
