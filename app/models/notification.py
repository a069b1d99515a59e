from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Literal, Optional, Tuple

NotificationType = Literal["new_workout", "workout_updated", "workout_deleted", "spot_freed", "workout_full"]
Language = Literal["en", "bg"]
ChannelKind = Literal["broker", "fcm"]

DEFAULT_LANGUAGE = "en"
SECONDARY_LANGUAGE = "bg"


class NotificationRequest(BaseModel):
    """
    One workout lifecycle event to deliver. Field names follow the camelCase
    keys the clients send; snake_case names work too.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: NotificationType
    workout_id: str = Field(alias="workoutId", min_length=1)
    workout_title: str = Field(alias="workoutTitle")
    workout_title_bg: Optional[str] = Field(default=None, alias="workoutTitleBg")
    workout_date: Optional[str] = Field(default=None, alias="workoutDate")
    workout_time: Optional[str] = Field(default=None, alias="workoutTime")
    target_user_ids: Tuple[str, ...] = Field(default=(), alias="targetUserIds")
    exclude_user_ids: Tuple[str, ...] = Field(default=(), alias="excludeUserIds")
    priority_only: bool = Field(default=False, alias="priorityOnly")
    notify_staff: bool = Field(default=False, alias="notifyStaff")
    exclude_members: bool = Field(default=False, alias="excludeMembers")

    @field_validator("target_user_ids", "exclude_user_ids", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return () if v is None else v

    @field_validator("priority_only", "notify_staff", "exclude_members", mode="before")
    @classmethod
    def none_as_false(cls, v):
        return False if v is None else v


class NotificationContent(BaseModel):
    heading: str
    body: str


class Recipient(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Literal["member", "staff", "admin"] = "member"
    member_type: str = "regular"
    preferred_language: Language = DEFAULT_LANGUAGE

    @property
    def is_staff(self) -> bool:
        return self.role in ("staff", "admin")

    @property
    def is_card_member(self) -> bool:
        return self.member_type == "card"


class DispatchOutcome(BaseModel):
    channel: ChannelKind
    success: bool
    details: Dict[str, Any] = Field(default_factory=dict)


class DispatchResponse(BaseModel):
    success: bool
    outcomes: List[DispatchOutcome]
