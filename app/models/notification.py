# app/models/notification.py

from sqlmodel import SQLModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.models.enums import NotificationKind, NotificationLevel
from app.utils.dates import utcnow

class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(foreign_key="user.id", index=True)
    kind: NotificationKind = Field(index=True)
    level: NotificationLevel = Field(default=NotificationLevel.info)
    title: str
    message: str
    related_type: Optional[str] = None
    related_id: Optional[str] = Field(default=None, index=True)
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, index=True)
