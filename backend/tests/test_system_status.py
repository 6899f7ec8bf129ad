import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from fakes import make_app
from saaskit.services.status import ServiceConfigStatus, build_system_report, check_service


class _BrokenService:
    required = False

    async def check_configuration(self):
        raise RuntimeError("boom")


class _OfflineService:
    async def check_configuration(self):
        return ServiceConfigStatus(name="Offline", configured=True)

    async def check_connection(self):
        return ServiceConfigStatus(name="Offline", configured=True, connected=False, error="Connection error")


class TestStatusChecks(unittest.IsolatedAsyncioTestCase):
    async def test_exception_becomes_error_status(self):
        with self.assertLogs("saaskit.services.status", level="ERROR"):
            status = await check_service("Broken", _BrokenService())
        self.assertEqual((status.configured, status.connected, status.required), (False, False, False))
        self.assertEqual(status.error, "boom")

    async def test_connection_checked_only_when_configured(self):
        status = await check_service("Offline", _OfflineService())
        self.assertTrue(status.configured)
        self.assertFalse(status.connected)

    def test_report_status(self):
        healthy = ServiceConfigStatus(name="A", configured=True, connected=True)
        optional_down = ServiceConfigStatus(name="B", configured=False, connected=False, required=False)
        self.assertEqual(build_system_report([healthy], "test")["status"], "ok")
        report = build_system_report([healthy, optional_down], "test")
        self.assertEqual(report["status"], "issues_detected")
        self.assertEqual(report["services"][1]["configToReview"], [])
        self.assertEqual(report["systemInfo"]["environment"], "test")


class TestSystemRoutes(unittest.TestCase):
    def setUp(self):
        self.app, self.settings, self.providers = make_app()
        self.client = TestClient(self.app)

    def test_health(self):
        self.assertEqual(self.client.get("/api/health").json(), {"status": "ok"})

    def test_system_status_lists_every_service(self):
        res = self.client.get("/api/system-status")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.headers["cache-control"], "no-store, max-age=0")
        body = res.json()
        by_name = {s["name"]: s for s in body["services"]}
        self.assertEqual(len(by_name), 4)
        self.assertTrue(by_name["Database (Postgres)"]["connected"])
        self.assertFalse(by_name["Storage (fake)"]["required"])
        self.assertEqual(body["status"], "issues_detected")

    def test_failure_body_hides_exception_detail(self):
        with patch("saaskit.api.endpoints.system.collect_service_statuses", side_effect=RuntimeError("dsn=postgres://secret")):
            with self.assertLogs("saaskit.api.endpoints.system", level="ERROR"):
                res = self.client.get("/api/system-status")
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json(), {"error": "Failed to check system status"})
        self.assertNotIn("secret", res.text)


if __name__ == "__main__":
    unittest.main()
