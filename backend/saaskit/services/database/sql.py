from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, TypeVar

from sqlalchemy import and_, func, text
from sqlalchemy.orm import Session, selectinload
from starlette.concurrency import run_in_threadpool

from saaskit.core.database import Base, create_db_engine, create_session_factory
from saaskit.models.note import Note
from saaskit.models.subscription import Subscription
from saaskit.models.user import User
from saaskit.models.verification_token import VerificationToken
from saaskit.services.database.base import (
    DatabaseClient,
    NoteRepository,
    RecordNotFoundError,
    SubscriptionRepository,
    UserRepository,
    VerificationTokenRepository,
)
from saaskit.services.status import ProviderNotConfiguredError, ServiceConfigStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

SERVICE_NAME = "Database (Postgres)"


def _column_values(model: type, fields: dict[str, Any]) -> dict[str, Any]:
    columns = set(model.__table__.columns.keys())
    values: dict[str, Any] = {}
    for key, value in fields.items():
        if key not in columns:
            raise ValueError(f"Unknown {model.__name__} field: {key}")
        values[key] = value.value if isinstance(value, Enum) else value
    return values


class _SessionRunner:
    def __init__(self, client: "SqlDatabaseClient"):
        self._client = client

    async def _run(self, fn: Callable[[Session], T]) -> T:
        return await run_in_threadpool(self._client.run_sync, fn)


class SqlUserRepository(_SessionRunner, UserRepository):
    async def find_by_id(self, user_id: str) -> User | None:
        return await self._run(lambda db: db.query(User).filter(User.id == user_id).first())

    async def find_by_email(self, email: str) -> User | None:
        return await self._run(lambda db: db.query(User).filter(User.email == email).first())

    async def find_by_verification_token(self, token: str) -> User | None:
        return await self._run(lambda db: db.query(User).filter(User.verification_token == token).first())

    async def find_all(
        self,
        page: int = 1,
        page_size: int = 10,
        search_name: str | None = None,
        filter_plan: str | None = None,
        filter_status: str | None = None,
    ) -> tuple[list[User], int]:
        def _query(db: Session) -> tuple[list[User], int]:
            q = db.query(User)
            if search_name:
                q = q.filter(func.lower(User.name).contains(search_name.lower()))
            sub_filters = []
            if filter_plan:
                sub_filters.append(Subscription.plan == filter_plan)
            if filter_status:
                sub_filters.append(Subscription.status == filter_status)
            if sub_filters:
                q = q.filter(User.subscriptions.any(and_(*sub_filters)))
            total = q.count()
            offset = max(page - 1, 0) * page_size
            users = (
                q.options(selectinload(User.subscriptions))
                .order_by(User.name.asc())
                .offset(offset)
                .limit(page_size)
                .all()
            )
            return users, total

        return await self._run(_query)

    async def create(self, fields: dict[str, Any]) -> User:
        def _create(db: Session) -> User:
            user = User(**_column_values(User, fields))
            db.add(user)
            db.flush()
            db.refresh(user)
            return user

        return await self._run(_create)

    async def update(self, user_id: str, fields: dict[str, Any]) -> User:
        def _update(db: Session) -> User:
            user = db.query(User).filter(User.id == user_id).first()
            if user is None:
                raise RecordNotFoundError("User", "id", user_id)
            for key, value in _column_values(User, fields).items():
                setattr(user, key, value)
            db.flush()
            db.refresh(user)
            return user

        return await self._run(_update)

    async def delete(self, user_id: str) -> None:
        def _delete(db: Session) -> None:
            user = db.query(User).filter(User.id == user_id).first()
            if user is None:
                raise RecordNotFoundError("User", "id", user_id)
            db.delete(user)

        await self._run(_delete)

    async def count(self) -> int:
        return await self._run(lambda db: db.query(User).count())


class SqlSubscriptionRepository(_SessionRunner, SubscriptionRepository):
    async def find_by_id(self, subscription_id: int) -> Subscription | None:
        return await self._run(lambda db: db.query(Subscription).filter(Subscription.id == subscription_id).first())

    async def find_by_user_id(self, user_id: str) -> list[Subscription]:
        return await self._run(
            lambda db: db.query(Subscription)
            .filter(Subscription.user_id == user_id)
            .order_by(Subscription.id.asc())
            .all()
        )

    async def find_by_user_and_status(self, user_id: str, status: str) -> Subscription | None:
        status_value = status.value if isinstance(status, Enum) else status
        return await self._run(
            lambda db: db.query(Subscription)
            .filter(Subscription.user_id == user_id, Subscription.status == status_value)
            .order_by(Subscription.id.asc())
            .first()
        )

    async def find_by_customer_id(self, customer_id: str) -> Subscription | None:
        return await self._run(
            lambda db: db.query(Subscription).filter(Subscription.customer_id == customer_id).first()
        )

    async def create(self, fields: dict[str, Any]) -> Subscription:
        def _create(db: Session) -> Subscription:
            sub = Subscription(**_column_values(Subscription, fields))
            db.add(sub)
            db.flush()
            db.refresh(sub)
            return sub

        return await self._run(_create)

    async def update(self, subscription_id: int, fields: dict[str, Any]) -> Subscription:
        def _update(db: Session) -> Subscription:
            sub = db.query(Subscription).filter(Subscription.id == subscription_id).first()
            if sub is None:
                raise RecordNotFoundError("Subscription", "id", subscription_id)
            for key, value in _column_values(Subscription, fields).items():
                setattr(sub, key, value)
            db.flush()
            db.refresh(sub)
            return sub

        return await self._run(_update)

    async def update_by_customer_id(self, customer_id: str, fields: dict[str, Any]) -> Subscription:
        def _update(db: Session) -> Subscription:
            sub = db.query(Subscription).filter(Subscription.customer_id == customer_id).first()
            if sub is None:
                raise RecordNotFoundError("Subscription", "customer_id", customer_id)
            for key, value in _column_values(Subscription, fields).items():
                setattr(sub, key, value)
            db.flush()
            db.refresh(sub)
            return sub

        return await self._run(_update)

    async def delete(self, subscription_id: int) -> None:
        def _delete(db: Session) -> None:
            sub = db.query(Subscription).filter(Subscription.id == subscription_id).first()
            if sub is None:
                raise RecordNotFoundError("Subscription", "id", subscription_id)
            db.delete(sub)

        await self._run(_delete)


class SqlNoteRepository(_SessionRunner, NoteRepository):
    async def find_by_id(self, note_id: int) -> Note | None:
        return await self._run(lambda db: db.query(Note).filter(Note.id == note_id).first())

    async def find_by_user_id(
        self, user_id: str, page: int | None = None, page_size: int | None = None
    ) -> list[Note]:
        def _query(db: Session) -> list[Note]:
            q = db.query(Note).filter(Note.user_id == user_id).order_by(Note.created_at.desc(), Note.id.desc())
            if page is not None and page_size is not None:
                q = q.offset(max(page - 1, 0) * page_size).limit(page_size)
            return q.all()

        return await self._run(_query)

    async def count_by_user_id(self, user_id: str) -> int:
        return await self._run(lambda db: db.query(Note).filter(Note.user_id == user_id).count())

    async def create(self, fields: dict[str, Any]) -> Note:
        def _create(db: Session) -> Note:
            note = Note(**_column_values(Note, fields))
            db.add(note)
            db.flush()
            db.refresh(note)
            return note

        return await self._run(_create)

    async def update(self, note_id: int, fields: dict[str, Any]) -> Note:
        def _update(db: Session) -> Note:
            note = db.query(Note).filter(Note.id == note_id).first()
            if note is None:
                raise RecordNotFoundError("Note", "id", note_id)
            for key, value in _column_values(Note, fields).items():
                setattr(note, key, value)
            db.flush()
            db.refresh(note)
            return note

        return await self._run(_update)

    async def delete(self, note_id: int) -> None:
        def _delete(db: Session) -> None:
            note = db.query(Note).filter(Note.id == note_id).first()
            if note is None:
                raise RecordNotFoundError("Note", "id", note_id)
            db.delete(note)

        await self._run(_delete)


class SqlVerificationTokenRepository(_SessionRunner, VerificationTokenRepository):
    async def create(self, fields: dict[str, Any]) -> VerificationToken:
        def _create(db: Session) -> VerificationToken:
            row = VerificationToken(**_column_values(VerificationToken, fields))
            db.add(row)
            db.flush()
            db.refresh(row)
            return row

        return await self._run(_create)

    async def consume(self, token: str, purpose: str, identifier: str | None = None) -> VerificationToken | None:
        purpose_value = purpose.value if isinstance(purpose, Enum) else purpose

        def _consume(db: Session) -> VerificationToken | None:
            q = db.query(VerificationToken).filter(
                VerificationToken.token == token, VerificationToken.purpose == purpose_value
            )
            if identifier is not None:
                q = q.filter(VerificationToken.identifier == identifier)
            row = q.first()
            if row is not None:
                db.delete(row)
            return row

        return await self._run(_consume)

    async def delete_by_identifier(self, identifier: str, purpose: str) -> int:
        purpose_value = purpose.value if isinstance(purpose, Enum) else purpose
        return await self._run(
            lambda db: db.query(VerificationToken)
            .filter(VerificationToken.identifier == identifier, VerificationToken.purpose == purpose_value)
            .delete(synchronize_session=False)
        )


class SqlDatabaseClient(DatabaseClient):
    def __init__(self, database_url: str | None):
        self.database_url = database_url
        self.engine = create_db_engine(database_url) if database_url else None
        self._session_factory = create_session_factory(self.engine) if self.engine is not None else None

        self.user = SqlUserRepository(self)
        self.subscription = SqlSubscriptionRepository(self)
        self.note = SqlNoteRepository(self)
        self.verification_token = SqlVerificationTokenRepository(self)

    def create_all(self) -> None:
        if self.engine is None:
            raise ProviderNotConfiguredError(SERVICE_NAME, ["DATABASE_URL"])
        Base.metadata.create_all(bind=self.engine)

    def run_sync(self, fn: Callable[[Session], T]) -> T:
        if self._session_factory is None:
            raise ProviderNotConfiguredError(SERVICE_NAME, ["DATABASE_URL"])
        db = self._session_factory()
        try:
            result = fn(db)
            db.commit()
            return result
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def check_configuration(self) -> ServiceConfigStatus:
        if not self.database_url:
            return ServiceConfigStatus(
                name=SERVICE_NAME,
                configured=False,
                connected=False,
                config_to_review=["DATABASE_URL"],
                error="Missing required configuration: DATABASE_URL",
            )
        return ServiceConfigStatus(name=SERVICE_NAME, configured=True)

    async def check_connection(self) -> ServiceConfigStatus:
        def _ping() -> None:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))

        try:
            await run_in_threadpool(_ping)
        except Exception as exc:
            logger.warning("database.ping_failed dialect=%s error=%s", self.engine.dialect.name, exc)
            return ServiceConfigStatus(
                name=SERVICE_NAME,
                configured=True,
                connected=False,
                config_to_review=["DATABASE_URL"],
                error="Connection error: failed to reach the database",
            )
        return ServiceConfigStatus(name=SERVICE_NAME, configured=True, connected=True)
