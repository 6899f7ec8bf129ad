from __future__ import annotations

import os
from enum import Enum
from typing import Mapping


class ConfigError(Exception):
    pass


class DatabaseProvider(str, Enum):
    POSTGRES = "Postgres"


class BillingProvider(str, Enum):
    STRIPE = "Stripe"


class StorageProvider(str, Enum):
    SPACES = "Spaces"


class EmailProvider(str, Enum):
    RESEND = "Resend"


def _getenv(env: Mapping[str, str], name: str, default: str | None = None) -> str | None:
    value = env.get(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _getenv_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = _getenv(env, name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


def _getenv_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _getenv(env, name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid {name}={raw!r} (expected a positive integer)") from exc
    if value <= 0:
        raise ConfigError(f"Invalid {name}={raw!r} (expected a positive integer)")
    return value


def _getenv_choice(env: Mapping[str, str], name: str, enum_cls: type[Enum], default: Enum) -> Enum:
    raw = _getenv(env, name)
    if raw is None:
        return default
    for member in enum_cls:
        if member.value.lower() == raw.lower():
            return member
    allowed = ", ".join(m.value for m in enum_cls)
    raise ConfigError(f"Unsupported {name}={raw!r} (expected one of: {allowed})")


class Settings:
    """Process configuration, read once at startup and passed to whatever needs it."""

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        env = os.environ if env is None else env

        self.environment = (_getenv(env, "ENVIRONMENT", "development") or "development").lower()
        self.base_url = (_getenv(env, "BASE_URL", "http://localhost:8000") or "http://localhost:8000").rstrip("/")
        self.log_level = (_getenv(env, "LOG_LEVEL", "INFO") or "INFO").upper()
        self.cors_allow_origins = _getenv(env, "CORS_ALLOW_ORIGINS")

        self.database_provider = _getenv_choice(env, "DATABASE_PROVIDER", DatabaseProvider, DatabaseProvider.POSTGRES)
        self.billing_provider = _getenv_choice(env, "BILLING_PROVIDER", BillingProvider, BillingProvider.STRIPE)
        self.storage_provider = _getenv_choice(env, "STORAGE_PROVIDER", StorageProvider, StorageProvider.SPACES)
        self.email_provider = _getenv_choice(env, "EMAIL_PROVIDER", EmailProvider, EmailProvider.RESEND)

        self.database_url = _getenv(env, "DATABASE_URL")
        self.db_auto_create = _getenv_bool(env, "DB_AUTO_CREATE", default=True)

        self.auth_secret = _getenv(env, "AUTH_SECRET")
        self.session_ttl_hours = _getenv_int(env, "SESSION_TTL_HOURS", 12)
        self.disable_email_verification = _getenv_bool(env, "DISABLE_EMAIL_VERIFICATION")

        self.stripe_secret_key = _getenv(env, "STRIPE_SECRET_KEY")
        self.stripe_webhook_secret = _getenv(env, "STRIPE_WEBHOOK_SECRET")
        self.stripe_free_price_id = _getenv(env, "STRIPE_FREE_PRICE_ID")
        self.stripe_pro_price_id = _getenv(env, "STRIPE_PRO_PRICE_ID")
        self.stripe_pro_gift_price_id = _getenv(env, "STRIPE_PRO_GIFT_PRICE_ID")
        self.stripe_portal_config_id = _getenv(env, "STRIPE_PORTAL_CONFIG_ID")

        self.spaces_key_id = _getenv(env, "SPACES_KEY_ID")
        self.spaces_key_secret = _getenv(env, "SPACES_KEY_SECRET")
        self.spaces_bucket_name = _getenv(env, "SPACES_BUCKET_NAME")
        self.spaces_region = _getenv(env, "SPACES_REGION")

        self.resend_api_key = _getenv(env, "RESEND_API_KEY")
        self.resend_email_sender = _getenv(env, "RESEND_EMAIL_SENDER")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def resolved_cors_origins(self) -> list[str]:
        raw = self.cors_allow_origins
        if raw is None:
            return ["http://localhost:3000", "http://localhost:8000"]
        if raw.strip() == "*":
            return ["*"]
        origins = [o.strip() for o in raw.split(",") if o.strip()]
        return origins
