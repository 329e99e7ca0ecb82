# app/schemas/notification.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.models.enums import NotificationKind, NotificationLevel


class NotificationRead(BaseModel):
    id: int
    kind: NotificationKind
    level: NotificationLevel
    title: str
    message: str
    related_type: Optional[str] = None
    related_id: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
