from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SubscriptionResponse(BaseModel):
    id: int
    user_id: str = Field(serialization_alias="userId")
    customer_id: Optional[str] = Field(default=None, serialization_alias="customerId")
    plan: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    image: Optional[str] = None
    role: str
    email_verified: bool = Field(default=False, serialization_alias="emailVerified")
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")

    class Config:
        from_attributes = True


class UserWithSubscriptionsResponse(UserResponse):
    subscriptions: List[SubscriptionResponse] = []


class NoteResponse(BaseModel):
    id: int
    user_id: str = Field(serialization_alias="userId")
    title: str
    content: str
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")

    class Config:
        from_attributes = True


def dump(model: type[BaseModel], obj) -> dict:
    return model.model_validate(obj).model_dump(mode="json", by_alias=True)
