"""Maps billing-provider subscription events onto local subscription rows.

Every write sets a target state rather than applying a delta, so replaying a
delivered event leaves the row unchanged.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from saaskit.core.settings import Settings
from saaskit.models.subscription import SubscriptionPlan, SubscriptionStatus
from saaskit.services.database.base import DatabaseClient
from saaskit.services.email.base import EmailService
from saaskit.services.email.templates import subscription_updated_email

logger = logging.getLogger(__name__)


class WebhookEventType(str, Enum):
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"


class MissingEventFieldError(ValueError):
    pass


def parse_event_type(raw: Any) -> WebhookEventType | None:
    try:
        return WebhookEventType(raw)
    except ValueError:
        return None


def _event_object(event: dict[str, Any]) -> dict[str, Any]:
    data = event.get("data") or {}
    obj = data.get("object") if isinstance(data, dict) else None
    return obj if isinstance(obj, dict) else {}


def _customer_id(obj: dict[str, Any]) -> str:
    customer = obj.get("customer")
    if isinstance(customer, dict):
        customer = customer.get("id")
    customer = str(customer or "").strip()
    if not customer:
        raise MissingEventFieldError("Customer ID is required")
    return customer


def _first_price_id(obj: dict[str, Any]) -> str | None:
    items = obj.get("items") or {}
    data = items.get("data") if isinstance(items, dict) else None
    if not data:
        return None
    price = (data[0] or {}).get("price") or {}
    price_id = price.get("id") if isinstance(price, dict) else price
    return str(price_id or "").strip() or None


async def handle_subscription_created(event: dict[str, Any], db: DatabaseClient, settings: Settings) -> None:
    obj = _event_object(event)
    customer_id = _customer_id(obj)
    price_id = _first_price_id(obj)

    fields: dict[str, Any] = {"status": SubscriptionStatus.ACTIVE}
    if settings.stripe_pro_price_id and price_id == settings.stripe_pro_price_id:
        fields["plan"] = SubscriptionPlan.PRO

    await db.subscription.update_by_customer_id(customer_id, fields)
    logger.info("webhook.subscription.created customer=%s plan=%s", customer_id, fields.get("plan"))


async def handle_subscription_updated(
    event: dict[str, Any],
    db: DatabaseClient,
    settings: Settings,
    email: EmailService | None = None,
) -> None:
    obj = _event_object(event)
    customer_id = _customer_id(obj)
    price_id = _first_price_id(obj)
    if not price_id:
        raise MissingEventFieldError("Invalid event payload: missing price ID")

    plan_by_price: dict[str, SubscriptionPlan] = {}
    if settings.stripe_pro_price_id:
        plan_by_price[settings.stripe_pro_price_id] = SubscriptionPlan.PRO
    if settings.stripe_free_price_id:
        plan_by_price[settings.stripe_free_price_id] = SubscriptionPlan.FREE

    plan = plan_by_price.get(price_id)
    if plan is None:
        logger.warning("webhook.subscription.updated.unknown_price customer=%s price=%s", customer_id, price_id)
        return

    sub = await db.subscription.update_by_customer_id(
        customer_id, {"status": SubscriptionStatus.ACTIVE, "plan": plan}
    )
    logger.info("webhook.subscription.updated customer=%s plan=%s", customer_id, plan.value)

    if email is None:
        return
    try:
        user = await db.user.find_by_id(sub.user_id)
        if user is None or not user.email:
            return
        await email.send_email(user.email, "Your subscription was updated", subscription_updated_email(plan.value))
    except Exception:
        logger.exception("webhook.subscription.updated.email_failed customer=%s", customer_id)


async def handle_subscription_deleted(event: dict[str, Any], db: DatabaseClient) -> None:
    obj = _event_object(event)
    customer_id = _customer_id(obj)
    await db.subscription.update_by_customer_id(customer_id, {"status": SubscriptionStatus.CANCELED})
    logger.info("webhook.subscription.deleted customer=%s", customer_id)


async def dispatch_event(
    event: dict[str, Any],
    db: DatabaseClient,
    settings: Settings,
    email: EmailService | None = None,
) -> WebhookEventType | None:
    """Apply one verified event. Returns the handled type, or None when it was ignored."""
    event_type = parse_event_type(event.get("type"))
    if event_type is WebhookEventType.SUBSCRIPTION_CREATED:
        await handle_subscription_created(event, db, settings)
    elif event_type is WebhookEventType.SUBSCRIPTION_UPDATED:
        await handle_subscription_updated(event, db, settings, email)
    elif event_type is WebhookEventType.SUBSCRIPTION_DELETED:
        await handle_subscription_deleted(event, db)
    else:
        logger.warning("webhook.unhandled type=%s", event.get("type"))
    return event_type
