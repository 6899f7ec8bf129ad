import unittest

from fastapi.testclient import TestClient

from fakes import FREE_PRICE, PRO_PRICE, auth_headers, load_subscriptions, make_app, make_settings, seed_subscription, seed_user


class BillingRouteTestCase(unittest.TestCase):
    settings_overrides: dict = {}

    def setUp(self):
        self.app, self.settings, self.providers = make_app(make_settings(**self.settings_overrides))
        self.billing = self.providers.billing
        self.client = TestClient(self.app)
        self.user = seed_user(self.providers, email="buyer@example.com")
        self.headers = auth_headers(self.settings, self.user.id, email="buyer@example.com")


class TestCancelSubscription(BillingRouteTestCase):
    def test_requires_session(self):
        res = self.client.post("/api/billing/cancel-subscription")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(self.billing.calls, [])

    def test_customer_not_found(self):
        res = self.client.post("/api/billing/cancel-subscription", headers=self.headers)
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json(), {"error": "Customer not found"})
        self.assertEqual(self.billing.called("cancel_subscription"), [])

    def test_no_active_subscription(self):
        self.billing.add_customer("buyer@example.com", "cus_1")
        res = self.client.post("/api/billing/cancel-subscription", headers=self.headers)
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json(), {"error": "No active subscription"})
        self.assertEqual(self.billing.called("cancel_subscription"), [])

    def test_remote_canceled_but_local_row_missing(self):
        self.billing.add_customer("buyer@example.com", "cus_1")
        self.billing.add_subscription("cus_1", "sub_1")
        seed_subscription(self.providers, self.user.id, customer_id="cus_1", plan="PRO", status="PENDING")

        res = self.client.post("/api/billing/cancel-subscription", headers=self.headers)
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json(), {"error": "Active subscription not found in database"})
        self.assertEqual(self.billing.called("cancel_subscription"), [("sub_1",)])
        self.assertEqual(load_subscriptions(self.providers, self.user.id)[0].status, "PENDING")

    def test_cancels_remote_then_local(self):
        self.billing.add_customer("buyer@example.com", "cus_1")
        self.billing.add_subscription("cus_1", "sub_1")
        seed_subscription(self.providers, self.user.id, customer_id="cus_1", plan="PRO", status="ACTIVE")

        res = self.client.post("/api/billing/cancel-subscription", headers=self.headers)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"canceled": True})
        self.assertEqual(self.billing.called("cancel_subscription"), [("sub_1",)])
        rows = load_subscriptions(self.providers, self.user.id)
        self.assertEqual((rows[0].plan, rows[0].status), ("PRO", "CANCELED"))

    def test_provider_failure_is_internal_error(self):
        self.billing.fail_with = RuntimeError("stripe down")
        with self.assertLogs("saaskit.api.endpoints.billing", level="ERROR"):
            res = self.client.post("/api/billing/cancel-subscription", headers=self.headers)
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json(), {"error": "Internal Server Error"})


class TestCreateSubscription(BillingRouteTestCase):
    def test_missing_price_id(self):
        for body in ({}, {"priceId": ""}, {"priceId": "   "}):
            with self.subTest(body=body):
                res = self.client.post("/api/billing/create-subscription", json=body, headers=self.headers)
                self.assertEqual(res.status_code, 400)
                self.assertEqual(res.json(), {"error": "Price ID is required"})
        self.assertEqual(self.billing.calls, [])

    def test_non_json_body(self):
        res = self.client.post(
            "/api/billing/create-subscription",
            content=b"priceId=price_pro",
            headers={**self.headers, "Content-Type": "text/plain"},
        )
        self.assertEqual(res.status_code, 400)

    def test_pro_price_creates_customer_and_active_pro_row(self):
        res = self.client.post("/api/billing/create-subscription", json={"priceId": PRO_PRICE}, headers=self.headers)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"clientSecret": "pi_secret_123"})

        self.assertEqual(len(self.billing.called("create_customer")), 1)
        customer_id = self.billing.customers["buyer@example.com"].id
        self.assertEqual(self.billing.called("create_subscription"), [(customer_id, PRO_PRICE)])

        rows = load_subscriptions(self.providers, self.user.id)
        self.assertEqual(len(rows), 1)
        self.assertEqual((rows[0].customer_id, rows[0].plan, rows[0].status), (customer_id, "PRO", "ACTIVE"))

    def test_other_price_is_free_plan_and_reuses_customer(self):
        self.billing.add_customer("buyer@example.com", "cus_existing")
        seed_subscription(self.providers, self.user.id, customer_id="cus_existing")

        res = self.client.post("/api/billing/create-subscription", json={"priceId": FREE_PRICE}, headers=self.headers)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(self.billing.called("create_customer"), [])

        rows = load_subscriptions(self.providers, self.user.id)
        self.assertEqual(len(rows), 1)
        self.assertEqual((rows[0].customer_id, rows[0].plan, rows[0].status), ("cus_existing", "FREE", "ACTIVE"))


class TestGetSubscription(BillingRouteTestCase):
    def test_none_without_customer(self):
        res = self.client.get("/api/billing/get-subscription", headers=self.headers)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"subscription": None})

    def test_returns_first_active_subscription(self):
        self.billing.add_customer("buyer@example.com", "cus_1")
        self.billing.add_subscription("cus_1", "sub_1", price_id=PRO_PRICE)
        res = self.client.get("/api/billing/get-subscription", headers=self.headers)
        self.assertEqual(
            res.json(),
            {"subscription": {"id": "sub_1", "status": "active", "items": [{"id": "si_sub_1", "priceId": PRO_PRICE}]}},
        )


class TestCreateCustomer(BillingRouteTestCase):
    def test_creates_and_records_customer_once(self):
        first = self.client.post("/api/billing/create-customer", headers=self.headers)
        second = self.client.post("/api/billing/create-customer", headers=self.headers)
        self.assertEqual(first.json(), second.json())
        self.assertEqual(len(self.billing.called("create_customer")), 1)
        rows = load_subscriptions(self.providers, self.user.id)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].customer_id, first.json()["customerId"])
        self.assertIsNone(rows[0].plan)


class TestCheckout(BillingRouteTestCase):
    def test_no_local_customer(self):
        res = self.client.post("/api/billing/checkout", headers=self.headers)
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json(), {"error": "No subscription found"})

    def test_returns_portal_url(self):
        seed_subscription(self.providers, self.user.id, customer_id="cus_1", plan="FREE", status="ACTIVE")
        res = self.client.post("/api/billing/checkout", headers=self.headers)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"url": "https://billing.example/portal/session"})
        self.assertEqual(
            self.billing.called("manage_subscription"),
            [(PRO_PRICE, "cus_1", "http://testserver/dashboard/subscription")],
        )

    def test_missing_portal_url(self):
        seed_subscription(self.providers, self.user.id, customer_id="cus_1")
        self.billing.portal_url = None
        with self.assertLogs("saaskit.api.endpoints.billing", level="ERROR"):
            res = self.client.post("/api/billing/checkout", headers=self.headers)
        self.assertEqual(res.status_code, 500)


class TestCheckoutWithoutProPrice(BillingRouteTestCase):
    settings_overrides = {"STRIPE_PRO_PRICE_ID": None}

    def test_missing_pro_price(self):
        with self.assertLogs("saaskit.api.endpoints.billing", level="ERROR"):
            res = self.client.post("/api/billing/checkout", headers=self.headers)
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json(), {"error": "Missing Pro Price"})


class TestUpgradeToPro(BillingRouteTestCase):
    def test_customer_not_found(self):
        res = self.client.post("/api/billing/upgrade-to-pro", headers=self.headers)
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json(), {"error": "Customer not found"})

    def test_subscription_not_found(self):
        self.billing.add_customer("buyer@example.com", "cus_1")
        res = self.client.post("/api/billing/upgrade-to-pro", headers=self.headers)
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json(), {"error": "Subscription not found"})

    def test_swaps_price_and_marks_pending_pro(self):
        self.billing.add_customer("buyer@example.com", "cus_1")
        self.billing.add_subscription("cus_1", "sub_1", price_id=FREE_PRICE)
        seed_subscription(self.providers, self.user.id, customer_id="cus_1", plan="FREE", status="ACTIVE")

        res = self.client.post("/api/billing/upgrade-to-pro", headers=self.headers)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"clientSecret": "pi_secret_123"})
        self.assertEqual(self.billing.called("update_subscription"), [("sub_1", "si_sub_1", PRO_PRICE)])
        rows = load_subscriptions(self.providers, self.user.id)
        self.assertEqual((rows[0].plan, rows[0].status), ("PRO", "PENDING"))


class TestPricing(BillingRouteTestCase):
    def test_public_product_list(self):
        res = self.client.get("/api/billing/pricing")
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual([p["priceId"] for p in body], [FREE_PRICE, PRO_PRICE])


if __name__ == "__main__":
    unittest.main()
