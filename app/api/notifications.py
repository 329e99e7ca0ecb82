# app/api/notifications.py

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.core.security import get_current_user
from app.database import get_session
from app.schemas.notification import NotificationRead
from app.services import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationRead])
@router.get("/", response_model=List[NotificationRead])
def list_notifications(
    unread: bool = Query(False),
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return notifications.list_notifications(session, user_id, unread_only=unread)


@router.post("/mark-all-read")
def mark_all_read(
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    updated = notifications.mark_all_read(session, user_id)
    return {"message": "Notificaciones marcadas como leídas", "updated": updated}
