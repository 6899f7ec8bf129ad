from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from saaskit.core.database import Base


class TokenPurpose(str, Enum):
    MAGIC_LINK = "MAGIC_LINK"
    RESET_PASSWORD = "RESET_PASSWORD"


class VerificationToken(Base):
    """Single-use emailed token. ``identifier`` is the user's email."""

    __tablename__ = "verification_tokens"

    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String, index=True, nullable=False)
    token = Column(String, unique=True, index=True, nullable=False)
    purpose = Column(String, index=True, nullable=False)
    expires = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires = self.expires
        # sqlite hands back naive datetimes
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return expires <= now
