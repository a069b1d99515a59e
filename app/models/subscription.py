from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional


class SubscribeRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1, max_length=4096, description="FCM registration token")
    platform: Literal["web", "native"] = "web"

    @field_validator('user_id', 'token')
    def strip_value(cls, v):
        if not v.strip():
            raise ValueError('Value cannot be blank')
        return v.strip()


class SubscriptionStatus(BaseModel):
    user_id: str
    subscribed: bool
    channel: Literal["broker", "fcm"] = "fcm"
    platform: Optional[Literal["web", "native"]] = None
