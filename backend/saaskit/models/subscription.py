from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from saaskit.core.database import Base


class SubscriptionPlan(str, Enum):
    FREE = "FREE"
    PRO = "PRO"
    GIFT = "GIFT"


class SubscriptionStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CANCELED = "CANCELED"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    # Unique when present; NULLs are allowed on any number of rows.
    customer_id = Column(String, index=True, unique=True, nullable=True)
    plan = Column(String, index=True, nullable=True)
    status = Column(String, index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="subscriptions")
