from __future__ import annotations

import json
import logging
from typing import Any

import stripe
from starlette.concurrency import run_in_threadpool

from saaskit.core.settings import Settings
from saaskit.services.billing.base import (
    BillingService,
    BillingSubscription,
    BillingSubscriptionItem,
    Customer,
    Product,
    WebhookVerificationError,
)
from saaskit.services.status import ProviderNotConfiguredError, ServiceConfigStatus, missing_settings

logger = logging.getLogger(__name__)

SERVICE_NAME = "Billing (Stripe)"


def _client_secret(subscription: Any) -> str | None:
    invoice = subscription["latest_invoice"] if "latest_invoice" in subscription else None
    if not invoice or isinstance(invoice, str):
        return None
    intent = invoice["payment_intent"] if "payment_intent" in invoice else None
    if intent and not isinstance(intent, str):
        return intent["client_secret"]
    confirmation = invoice["confirmation_secret"] if "confirmation_secret" in invoice else None
    if confirmation and not isinstance(confirmation, str):
        return confirmation["client_secret"]
    return None


def _to_subscription(raw: Any) -> BillingSubscription:
    items = [
        BillingSubscriptionItem(id=item["id"], price_id=item["price"]["id"])
        for item in raw["items"]["data"]
    ]
    return BillingSubscription(id=raw["id"], status=raw["status"], items=items)


class StripeBillingService(BillingService):
    """Stripe-backed billing. The API key is passed per call; no module-level stripe state."""

    def __init__(self, settings: Settings):
        self.secret_key = settings.stripe_secret_key
        self.webhook_secret = settings.stripe_webhook_secret
        self.free_price_id = settings.stripe_free_price_id
        self.pro_price_id = settings.stripe_pro_price_id
        self.portal_config_id = settings.stripe_portal_config_id

    def _api_key(self) -> str:
        if not self.secret_key:
            raise ProviderNotConfiguredError(SERVICE_NAME, ["STRIPE_SECRET_KEY"])
        return self.secret_key

    async def list_customer(self, email: str) -> list[Customer]:
        result = await run_in_threadpool(stripe.Customer.list, email=email, limit=1, api_key=self._api_key())
        return [Customer(id=c["id"]) for c in result["data"]]

    async def create_customer(self, email: str, metadata: dict[str, str] | None = None) -> Customer:
        customer = await run_in_threadpool(
            stripe.Customer.create, email=email, metadata=metadata or {}, api_key=self._api_key()
        )
        logger.info("stripe.customer.created customer=%s", customer["id"])
        return Customer(id=customer["id"])

    async def list_subscription(self, customer_id: str) -> list[BillingSubscription]:
        result = await run_in_threadpool(
            stripe.Subscription.list,
            customer=customer_id,
            status="active",
            limit=1,
            api_key=self._api_key(),
        )
        return [_to_subscription(s) for s in result["data"]]

    async def create_subscription(self, customer_id: str, price_id: str) -> dict[str, str | None]:
        sub = await run_in_threadpool(
            stripe.Subscription.create,
            customer=customer_id,
            items=[{"price": price_id}],
            payment_behavior="default_incomplete",
            payment_settings={"save_default_payment_method": "on_subscription"},
            expand=["latest_invoice.payment_intent"],
            api_key=self._api_key(),
        )
        return {"client_secret": _client_secret(sub), "id": sub["id"]}

    async def cancel_subscription(self, subscription_id: str) -> None:
        await run_in_threadpool(stripe.Subscription.cancel, subscription_id, api_key=self._api_key())

    async def update_subscription(self, subscription_id: str, item_id: str, price_id: str) -> dict[str, str | None]:
        sub = await run_in_threadpool(
            stripe.Subscription.modify,
            subscription_id,
            items=[{"id": item_id, "price": price_id}],
            proration_behavior="always_invoice",
            payment_behavior="default_incomplete",
            expand=["latest_invoice.payment_intent"],
            api_key=self._api_key(),
        )
        return {"client_secret": _client_secret(sub)}

    async def manage_subscription(self, price_id: str, customer_id: str, return_url: str) -> str | None:
        api_key = self._api_key()
        result = await run_in_threadpool(stripe.Subscription.list, customer=customer_id, limit=1, api_key=api_key)
        subscriptions = [_to_subscription(s) for s in result["data"]]
        if not subscriptions or not subscriptions[0].items:
            logger.warning("stripe.portal.no_subscription customer=%s", customer_id)
            return None
        current = subscriptions[0]

        params: dict[str, Any] = {
            "customer": customer_id,
            "flow_data": {
                "type": "subscription_update_confirm",
                "subscription_update_confirm": {
                    "subscription": current.id,
                    "items": [{"id": current.items[0].id, "price": price_id, "quantity": 1}],
                },
            },
            "return_url": return_url,
            "api_key": api_key,
        }
        if self.portal_config_id:
            params["configuration"] = self.portal_config_id
        session = await run_in_threadpool(stripe.billing_portal.Session.create, **params)
        return session["url"] if "url" in session else None

    async def get_products(self) -> list[Product]:
        api_key = self._api_key()
        products = []
        for price_id in (self.free_price_id, self.pro_price_id):
            if not price_id:
                continue
            price = await run_in_threadpool(stripe.Price.retrieve, price_id, expand=["product"], api_key=api_key)
            product = price["product"]
            features = await run_in_threadpool(stripe.Product.list_features, product["id"], api_key=api_key)
            recurring = price["recurring"] if "recurring" in price else None
            products.append(
                Product(
                    price_id=price["id"],
                    amount=(price["unit_amount"] or 0) / 100,
                    interval=recurring["interval"] if recurring else None,
                    name=product["name"],
                    description=(product["description"] if "description" in product else None) or "",
                    features=[f["entitlement_feature"]["name"] for f in features["data"]],
                )
            )
        return products

    def construct_event(self, payload: bytes, signature: str, secret: str) -> dict[str, Any]:
        body = payload.decode("utf-8")
        try:
            stripe.WebhookSignature.verify_header(body, signature, secret, stripe.Webhook.DEFAULT_TOLERANCE)
        except stripe.SignatureVerificationError as exc:
            raise WebhookVerificationError(str(exc)) from exc
        try:
            return json.loads(body)
        except ValueError as exc:
            raise WebhookVerificationError("Invalid JSON payload") from exc

    def _missing(self) -> list[str]:
        return missing_settings(
            {
                "STRIPE_SECRET_KEY": self.secret_key,
                "STRIPE_WEBHOOK_SECRET": self.webhook_secret,
                "STRIPE_FREE_PRICE_ID": self.free_price_id,
                "STRIPE_PRO_PRICE_ID": self.pro_price_id,
            }
        )

    async def check_configuration(self) -> ServiceConfigStatus:
        missing = self._missing()
        if missing:
            return ServiceConfigStatus(
                name=SERVICE_NAME,
                configured=False,
                connected=False,
                config_to_review=missing,
                error=f"Missing required configuration: {', '.join(missing)}",
            )
        return ServiceConfigStatus(name=SERVICE_NAME, configured=True)

    async def check_connection(self) -> ServiceConfigStatus:
        try:
            await run_in_threadpool(stripe.Balance.retrieve, api_key=self._api_key())
        except stripe.StripeError as exc:
            logger.warning("stripe.ping_failed error=%s", exc)
            return ServiceConfigStatus(
                name=SERVICE_NAME,
                configured=True,
                connected=False,
                config_to_review=["STRIPE_SECRET_KEY"],
                error="Connection error: failed to reach Stripe",
            )
        return ServiceConfigStatus(name=SERVICE_NAME, configured=True, connected=True)
