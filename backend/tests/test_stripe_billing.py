import hashlib
import hmac
import json
import time
import unittest
from unittest.mock import patch

from fakes import WEBHOOK_SECRET, make_settings
from saaskit.services.billing.base import WebhookVerificationError
from saaskit.services.billing.stripe_billing import StripeBillingService
from saaskit.services.status import ProviderNotConfiguredError


def _sign(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class TestConstructEvent(unittest.TestCase):
    def setUp(self):
        self.service = StripeBillingService(make_settings())
        self.payload = json.dumps({"id": "evt_1", "type": "customer.subscription.deleted"}).encode()

    def test_valid_signature_returns_event(self):
        event = self.service.construct_event(self.payload, _sign(self.payload, WEBHOOK_SECRET), WEBHOOK_SECRET)
        self.assertEqual(event["type"], "customer.subscription.deleted")

    def test_wrong_secret_rejected(self):
        with self.assertRaises(WebhookVerificationError):
            self.service.construct_event(self.payload, _sign(self.payload, "whsec_other"), WEBHOOK_SECRET)

    def test_tampered_body_rejected(self):
        signature = _sign(self.payload, WEBHOOK_SECRET)
        tampered = self.payload.replace(b"deleted", b"created")
        with self.assertRaises(WebhookVerificationError):
            self.service.construct_event(tampered, signature, WEBHOOK_SECRET)

    def test_stale_timestamp_rejected(self):
        signature = _sign(self.payload, WEBHOOK_SECRET, timestamp=int(time.time()) - 3600)
        with self.assertRaises(WebhookVerificationError):
            self.service.construct_event(self.payload, signature, WEBHOOK_SECRET)


class TestStripeConfiguration(unittest.IsolatedAsyncioTestCase):
    async def test_configured(self):
        status = await StripeBillingService(make_settings()).check_configuration()
        self.assertTrue(status.configured)

    async def test_missing_settings_are_listed(self):
        service = StripeBillingService(make_settings(STRIPE_SECRET_KEY=None, STRIPE_PRO_PRICE_ID=None))
        status = await service.check_configuration()
        self.assertFalse(status.configured)
        self.assertEqual(status.config_to_review, ["STRIPE_SECRET_KEY", "STRIPE_PRO_PRICE_ID"])

    async def test_calls_without_key_raise_not_configured(self):
        service = StripeBillingService(make_settings(STRIPE_SECRET_KEY=None))
        with self.assertRaises(ProviderNotConfiguredError):
            await service.list_customer("a@example.com")

    async def test_list_customer_passes_key_per_call(self):
        service = StripeBillingService(make_settings())
        with patch("stripe.Customer.list", return_value={"data": [{"id": "cus_9"}]}) as list_mock:
            customers = await service.list_customer("a@example.com")
        self.assertEqual([c.id for c in customers], ["cus_9"])
        list_mock.assert_called_once_with(email="a@example.com", limit=1, api_key="sk_test_123")


if __name__ == "__main__":
    unittest.main()
