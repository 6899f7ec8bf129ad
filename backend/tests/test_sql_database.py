import unittest
from datetime import datetime, timedelta, timezone

from fakes import make_providers, seed_subscription, seed_user
from saaskit.models.subscription import SubscriptionPlan, SubscriptionStatus
from saaskit.models.verification_token import TokenPurpose
from saaskit.services.database.base import RecordNotFoundError
from saaskit.services.database.sql import SqlDatabaseClient
from saaskit.services.status import ProviderNotConfiguredError


class TestSqlRepositories(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.providers = make_providers()
        self.db = self.providers.database

    async def test_create_converts_enums(self):
        user = await self.db.user.create({"email": "e@example.com", "name": "E", "role": "USER"})
        sub = await self.db.subscription.create(
            {"user_id": user.id, "plan": SubscriptionPlan.PRO, "status": SubscriptionStatus.PENDING}
        )
        self.assertEqual((sub.plan, sub.status), ("PRO", "PENDING"))

    async def test_unknown_column_rejected(self):
        with self.assertRaises(ValueError):
            await self.db.user.create({"email": "e@example.com", "nickname": "x"})

    async def test_update_by_customer_id(self):
        user = seed_user(self.providers)
        seed_subscription(self.providers, user.id, customer_id="cus_1", plan="FREE", status="ACTIVE")
        sub = await self.db.subscription.update_by_customer_id("cus_1", {"status": SubscriptionStatus.CANCELED})
        self.assertEqual((sub.plan, sub.status), ("FREE", "CANCELED"))

        with self.assertRaises(RecordNotFoundError):
            await self.db.subscription.update_by_customer_id("cus_missing", {"status": "ACTIVE"})

    async def test_find_by_user_and_status(self):
        user = seed_user(self.providers)
        seed_subscription(self.providers, user.id, customer_id="cus_1", status="CANCELED")
        active = seed_subscription(self.providers, user.id, customer_id="cus_2", status="ACTIVE")
        found = await self.db.subscription.find_by_user_and_status(user.id, SubscriptionStatus.ACTIVE)
        self.assertEqual(found.id, active.id)
        self.assertIsNone(await self.db.subscription.find_by_user_and_status(user.id, "PENDING"))

    async def test_find_all_filters_and_pages(self):
        names = ["Carol", "alice", "Bob", "Alina"]
        for i, name in enumerate(names):
            user = seed_user(self.providers, email=f"u{i}@example.com", name=name)
            seed_subscription(self.providers, user.id, plan="PRO" if i % 2 else "FREE", status="ACTIVE")

        users, total = await self.db.user.find_all(search_name="ALI")
        self.assertEqual(total, 2)
        self.assertEqual({u.name for u in users}, {"alice", "Alina"})

        users, total = await self.db.user.find_all(filter_plan="PRO")
        self.assertEqual({u.name for u in users}, {"alice", "Alina"})

        users, total = await self.db.user.find_all(page=2, page_size=3)
        self.assertEqual(total, 4)
        self.assertEqual(len(users), 1)
        self.assertEqual(len(users[0].subscriptions), 1)

    async def test_deleting_user_removes_owned_rows(self):
        user = seed_user(self.providers)
        seed_subscription(self.providers, user.id, customer_id="cus_1")
        await self.db.note.create({"user_id": user.id, "title": "t", "content": "c"})
        await self.db.user.delete(user.id)
        self.assertEqual(await self.db.subscription.find_by_user_id(user.id), [])
        self.assertEqual(await self.db.note.count_by_user_id(user.id), 0)

    async def test_verification_tokens_are_single_use(self):
        expires = datetime.now(timezone.utc) + timedelta(hours=1)
        await self.db.verification_token.create(
            {"identifier": "a@example.com", "token": "t1", "purpose": TokenPurpose.MAGIC_LINK, "expires": expires}
        )
        await self.db.verification_token.create(
            {"identifier": "a@example.com", "token": "t2", "purpose": TokenPurpose.RESET_PASSWORD, "expires": expires}
        )

        self.assertIsNone(await self.db.verification_token.consume("t1", TokenPurpose.RESET_PASSWORD))
        self.assertIsNone(await self.db.verification_token.consume("t1", TokenPurpose.MAGIC_LINK, identifier="b@example.com"))
        row = await self.db.verification_token.consume("t1", TokenPurpose.MAGIC_LINK, identifier="a@example.com")
        self.assertEqual((row.identifier, row.purpose), ("a@example.com", "MAGIC_LINK"))
        self.assertFalse(row.is_expired())
        self.assertIsNone(await self.db.verification_token.consume("t1", TokenPurpose.MAGIC_LINK))

        self.assertEqual(await self.db.verification_token.delete_by_identifier("a@example.com", TokenPurpose.MAGIC_LINK), 0)
        self.assertEqual(await self.db.verification_token.delete_by_identifier("a@example.com", TokenPurpose.RESET_PASSWORD), 1)

    async def test_connection_check(self):
        status = await self.db.check_connection()
        self.assertTrue(status.connected)


class TestUnconfiguredDatabase(unittest.IsolatedAsyncioTestCase):
    async def test_reports_missing_url(self):
        client = SqlDatabaseClient(None)
        status = await client.check_configuration()
        self.assertEqual(status.config_to_review, ["DATABASE_URL"])
        with self.assertRaises(ProviderNotConfiguredError):
            await client.user.count()


if __name__ == "__main__":
    unittest.main()
