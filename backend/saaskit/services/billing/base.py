from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from saaskit.services.status import ServiceConfigStatus


class WebhookVerificationError(Exception):
    pass


@dataclass(frozen=True)
class Customer:
    id: str


@dataclass(frozen=True)
class BillingSubscriptionItem:
    id: str
    price_id: str


@dataclass(frozen=True)
class BillingSubscription:
    id: str
    status: str
    items: list[BillingSubscriptionItem] = field(default_factory=list)


@dataclass(frozen=True)
class Product:
    price_id: str
    amount: float
    interval: str | None
    name: str
    description: str
    features: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "priceId": self.price_id,
            "amount": self.amount,
            "interval": self.interval,
            "name": self.name,
            "description": self.description,
            "features": list(self.features),
        }


class BillingService(ABC):
    """Talks to the billing provider. Never writes local subscription state."""

    required = True

    @abstractmethod
    async def list_customer(self, email: str) -> list[Customer]:
        """Zero or one customer registered under ``email``."""

    @abstractmethod
    async def create_customer(self, email: str, metadata: dict[str, str] | None = None) -> Customer: ...

    @abstractmethod
    async def list_subscription(self, customer_id: str) -> list[BillingSubscription]:
        """Active subscriptions of ``customer_id``."""

    @abstractmethod
    async def create_subscription(self, customer_id: str, price_id: str) -> dict[str, str | None]:
        """Returns ``{"client_secret", "id"}``; the secret is None when no payment is due."""

    @abstractmethod
    async def cancel_subscription(self, subscription_id: str) -> None: ...

    @abstractmethod
    async def update_subscription(self, subscription_id: str, item_id: str, price_id: str) -> dict[str, str | None]: ...

    @abstractmethod
    async def manage_subscription(self, price_id: str, customer_id: str, return_url: str) -> str | None:
        """Hosted portal URL confirming a switch of the customer's subscription to ``price_id``."""

    @abstractmethod
    async def get_products(self) -> list[Product]: ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str, secret: str) -> dict[str, Any]:
        """Verify a webhook delivery and return the decoded event.

        Raises WebhookVerificationError when the signature does not match.
        """

    @abstractmethod
    async def check_configuration(self) -> ServiceConfigStatus: ...

    @abstractmethod
    async def check_connection(self) -> ServiceConfigStatus: ...
