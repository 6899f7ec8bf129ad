from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from saaskit.core.settings import BillingProvider, DatabaseProvider, EmailProvider, Settings, StorageProvider
from saaskit.services.billing.base import BillingService
from saaskit.services.billing.stripe_billing import StripeBillingService
from saaskit.services.database.base import DatabaseClient
from saaskit.services.database.sql import SqlDatabaseClient
from saaskit.services.email.base import EmailService
from saaskit.services.email.resend import ResendEmailService
from saaskit.services.storage.base import StorageService
from saaskit.services.storage.spaces import SpacesStorageService

logger = logging.getLogger(__name__)


def _sql_database(settings: Settings) -> DatabaseClient:
    client = SqlDatabaseClient(settings.database_url)
    if settings.db_auto_create and settings.database_url:
        client.create_all()
    return client


DATABASE_PROVIDERS: dict[DatabaseProvider, Callable[[Settings], DatabaseClient]] = {
    DatabaseProvider.POSTGRES: _sql_database,
}

BILLING_PROVIDERS: dict[BillingProvider, Callable[[Settings], BillingService]] = {
    BillingProvider.STRIPE: StripeBillingService,
}

STORAGE_PROVIDERS: dict[StorageProvider, Callable[[Settings], StorageService]] = {
    StorageProvider.SPACES: SpacesStorageService,
}

EMAIL_PROVIDERS: dict[EmailProvider, Callable[[Settings], EmailService]] = {
    EmailProvider.RESEND: ResendEmailService,
}


def create_database_client(settings: Settings) -> DatabaseClient:
    return DATABASE_PROVIDERS[settings.database_provider](settings)


def create_billing_service(settings: Settings) -> BillingService:
    return BILLING_PROVIDERS[settings.billing_provider](settings)


def create_storage_service(settings: Settings) -> StorageService:
    return STORAGE_PROVIDERS[settings.storage_provider](settings)


def create_email_service(settings: Settings) -> EmailService:
    return EMAIL_PROVIDERS[settings.email_provider](settings)


@dataclass
class Providers:
    database: DatabaseClient
    billing: BillingService
    storage: StorageService
    email: EmailService


def build_providers(settings: Settings) -> Providers:
    providers = Providers(
        database=create_database_client(settings),
        billing=create_billing_service(settings),
        storage=create_storage_service(settings),
        email=create_email_service(settings),
    )
    logger.info(
        "providers.ready database=%s billing=%s storage=%s email=%s",
        settings.database_provider.value,
        settings.billing_provider.value,
        settings.storage_provider.value,
        settings.email_provider.value,
    )
    return providers
