from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from saaskit.models.note import Note
from saaskit.models.subscription import Subscription
from saaskit.models.user import User
from saaskit.models.verification_token import VerificationToken
from saaskit.services.status import ServiceConfigStatus


class RecordNotFoundError(Exception):
    def __init__(self, entity: str, key: str, value: Any):
        self.entity = entity
        self.key = key
        self.value = value
        super().__init__(f"{entity} not found ({key}={value})")


class UserRepository(ABC):
    @abstractmethod
    async def find_by_id(self, user_id: str) -> User | None: ...

    @abstractmethod
    async def find_by_email(self, email: str) -> User | None: ...

    @abstractmethod
    async def find_by_verification_token(self, token: str) -> User | None: ...

    @abstractmethod
    async def find_all(
        self,
        page: int = 1,
        page_size: int = 10,
        search_name: str | None = None,
        filter_plan: str | None = None,
        filter_status: str | None = None,
    ) -> tuple[list[User], int]:
        """Users with their subscriptions loaded, ordered by name, plus the unpaged total.

        ``search_name`` is a case-insensitive substring match. Plan and status
        filters must both hold on the same subscription row.
        """

    @abstractmethod
    async def create(self, fields: dict[str, Any]) -> User: ...

    @abstractmethod
    async def update(self, user_id: str, fields: dict[str, Any]) -> User: ...

    @abstractmethod
    async def delete(self, user_id: str) -> None: ...

    @abstractmethod
    async def count(self) -> int: ...


class SubscriptionRepository(ABC):
    @abstractmethod
    async def find_by_id(self, subscription_id: int) -> Subscription | None: ...

    @abstractmethod
    async def find_by_user_id(self, user_id: str) -> list[Subscription]: ...

    @abstractmethod
    async def find_by_user_and_status(self, user_id: str, status: str) -> Subscription | None: ...

    @abstractmethod
    async def find_by_customer_id(self, customer_id: str) -> Subscription | None: ...

    @abstractmethod
    async def create(self, fields: dict[str, Any]) -> Subscription: ...

    @abstractmethod
    async def update(self, subscription_id: int, fields: dict[str, Any]) -> Subscription: ...

    @abstractmethod
    async def update_by_customer_id(self, customer_id: str, fields: dict[str, Any]) -> Subscription:
        """Apply ``fields`` to the row holding ``customer_id``.

        Raises RecordNotFoundError when no row carries that customer id.
        """

    @abstractmethod
    async def delete(self, subscription_id: int) -> None: ...


class NoteRepository(ABC):
    @abstractmethod
    async def find_by_id(self, note_id: int) -> Note | None: ...

    @abstractmethod
    async def find_by_user_id(
        self, user_id: str, page: int | None = None, page_size: int | None = None
    ) -> list[Note]: ...

    @abstractmethod
    async def count_by_user_id(self, user_id: str) -> int: ...

    @abstractmethod
    async def create(self, fields: dict[str, Any]) -> Note: ...

    @abstractmethod
    async def update(self, note_id: int, fields: dict[str, Any]) -> Note: ...

    @abstractmethod
    async def delete(self, note_id: int) -> None: ...


class VerificationTokenRepository(ABC):
    @abstractmethod
    async def create(self, fields: dict[str, Any]) -> VerificationToken: ...

    @abstractmethod
    async def consume(self, token: str, purpose: str, identifier: str | None = None) -> VerificationToken | None:
        """Delete and return the matching token, expired or not.

        Returns None when nothing matches. Callers check ``is_expired()`` on the result.
        """

    @abstractmethod
    async def delete_by_identifier(self, identifier: str, purpose: str) -> int: ...


class DatabaseClient(ABC):
    """Repository access for users, subscriptions, notes and emailed tokens.

    Every repository call is its own unit of work; nothing spans two calls.
    """

    required = True

    user: UserRepository
    subscription: SubscriptionRepository
    note: NoteRepository
    verification_token: VerificationTokenRepository

    @abstractmethod
    async def check_configuration(self) -> ServiceConfigStatus: ...

    @abstractmethod
    async def check_connection(self) -> ServiceConfigStatus: ...
