"""Pydantic models for notifications, events and preferences."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from episodic.models.enums import NotificationType


class Notification(BaseModel):
    """A persisted notification as delivered to clients and the grouper."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    notification_id: str
    recipient_id: str
    event_type: NotificationType
    sender_id: str | None = None
    related_entity_key: str | None = None
    message: str
    read: bool = False
    sender_deleted: bool = False
    created_at: datetime


class GroupedFeed(BaseModel):
    """One card per logical group plus the unread badge count."""

    items: list[Notification]
    unread_count: int = Field(..., ge=0)


class EventRequest(BaseModel):
    """Side-effect hook payload sent by comment/follow writers."""

    model_config = ConfigDict(extra="forbid")

    recipient_id: str = Field(..., min_length=1, max_length=128)
    event_type: NotificationType
    sender_id: str | None = Field(None, min_length=1, max_length=128)
    related_entity_key: str | None = Field(None, min_length=1, max_length=400)
    message: str | None = Field(None, max_length=2000)
    context: dict[str, Any] | None = None


class EventAccepted(BaseModel):
    intent_id: str | None


class PreferenceUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_type: NotificationType
    enabled: bool


class CountResponse(BaseModel):
    count: int = Field(..., ge=0)
