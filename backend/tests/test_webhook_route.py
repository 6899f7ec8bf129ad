import json
import unittest

from fastapi.testclient import TestClient

from fakes import PRO_PRICE, load_subscriptions, make_app, make_settings, seed_subscription, seed_user


def _payload(event_type: str, customer: str | None = "cus_1", price_id: str = PRO_PRICE) -> bytes:
    obj = {"id": "sub_1", "items": {"data": [{"id": "si_1", "price": {"id": price_id}}]}}
    if customer is not None:
        obj["customer"] = customer
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": obj}}).encode()


class TestWebhookRoute(unittest.TestCase):
    def setUp(self):
        self.app, self.settings, self.providers = make_app()
        self.client = TestClient(self.app)
        self.user = seed_user(self.providers, email="owner@example.com")
        seed_subscription(self.providers, self.user.id, customer_id="cus_1", plan="FREE", status="PENDING")

    def _post(self, body: bytes, signature: str | None = "valid"):
        headers = {"Content-Type": "application/json"}
        if signature is not None:
            headers["Stripe-Signature"] = signature
        return self.client.post("/api/webhook", content=body, headers=headers)

    def _row(self):
        return load_subscriptions(self.providers, self.user.id)[0]

    def test_missing_signature(self):
        with self.assertLogs("saaskit.api.endpoints.webhook", level="ERROR"):
            res = self._post(_payload("customer.subscription.updated"), signature=None)
        self.assertEqual(res.status_code, 500)
        self.assertEqual(self._row().plan, "FREE")

    def test_bad_signature(self):
        with self.assertLogs("saaskit.api.endpoints.webhook", level="ERROR"):
            res = self._post(_payload("customer.subscription.updated"), signature="forged")
        self.assertEqual(res.status_code, 500)
        self.assertEqual((self._row().plan, self._row().status), ("FREE", "PENDING"))

    def test_missing_webhook_secret(self):
        app, _settings, providers = make_app(make_settings(STRIPE_WEBHOOK_SECRET=None))
        with self.assertLogs("saaskit.api.endpoints.webhook", level="ERROR"):
            res = TestClient(app).post(
                "/api/webhook", content=_payload("invoice.paid"), headers={"Stripe-Signature": "valid"}
            )
        self.assertEqual(res.status_code, 500)

    def test_updated_event_is_applied_and_acknowledged(self):
        res = self._post(_payload("customer.subscription.updated"))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"status": 200})
        self.assertEqual((self._row().plan, self._row().status), ("PRO", "ACTIVE"))
        self.assertEqual([to for to, _subject, _html in self.providers.email.sent], ["owner@example.com"])

    def test_redelivery_converges(self):
        body = _payload("customer.subscription.updated")
        self.assertEqual(self._post(body).status_code, 200)
        self.assertEqual(self._post(body).status_code, 200)
        rows = load_subscriptions(self.providers, self.user.id)
        self.assertEqual(len(rows), 1)
        self.assertEqual((rows[0].plan, rows[0].status), ("PRO", "ACTIVE"))

    def test_deleted_event_cancels(self):
        res = self._post(_payload("customer.subscription.deleted"))
        self.assertEqual(res.status_code, 200)
        self.assertEqual((self._row().plan, self._row().status), ("FREE", "CANCELED"))

    def test_unhandled_event_is_acknowledged(self):
        res = self._post(_payload("invoice.paid"))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(self._row().status, "PENDING")

    def test_missing_customer_asks_for_redelivery(self):
        with self.assertLogs("saaskit.api.endpoints.webhook", level="ERROR"):
            res = self._post(_payload("customer.subscription.created", customer=None))
        self.assertEqual(res.status_code, 500)
        self.assertEqual(self._row().status, "PENDING")

    def test_unknown_customer_asks_for_redelivery(self):
        with self.assertLogs("saaskit.api.endpoints.webhook", level="ERROR"):
            res = self._post(_payload("customer.subscription.deleted", customer="cus_other"))
        self.assertEqual(res.status_code, 500)


if __name__ == "__main__":
    unittest.main()
