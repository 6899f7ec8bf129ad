from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from saaskit.api.deps import get_providers, get_settings
from saaskit.core.security import json_error
from saaskit.services.billing.base import WebhookVerificationError
from saaskit.services.reconciliation import dispatch_event

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook")
async def billing_webhook(request: Request) -> JSONResponse:
    """Receives billing-provider events. Anything but a 200 makes the provider redeliver."""
    settings = get_settings(request)
    providers = get_providers(request)

    signature = (request.headers.get("stripe-signature") or "").strip()
    if not signature:
        logger.error("webhook.missing_signature")
        return json_error("Internal Server Error", 500)
    if not settings.stripe_webhook_secret:
        logger.error("webhook.missing_secret")
        return json_error("Internal Server Error", 500)

    raw_body = await request.body()
    try:
        event = providers.billing.construct_event(raw_body, signature, settings.stripe_webhook_secret)
    except WebhookVerificationError as exc:
        logger.error("webhook.invalid_signature error=%s", exc)
        return json_error("Internal Server Error", 500)
    except Exception:
        logger.exception("webhook.construct_failed")
        return json_error("Internal Server Error", 500)

    try:
        await dispatch_event(event, providers.database, settings, providers.email)
    except Exception:
        logger.exception("webhook.handler_failed type=%s id=%s", event.get("type"), event.get("id"))
        return json_error("Internal Server Error", 500)

    return JSONResponse({"status": 200})
