from uuid import UUID
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas
from ..services import notifications as notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("/", response_model=List[schemas.NotificationOut])
async def list_notifications(
    unread_only: bool = Query(False, description="Only unread notifications"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return notification_service.list_notifications(db, user.id, unread_only=unread_only)


@router.get("/unread-count", response_model=schemas.UnreadCountOut)
async def unread_count(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return schemas.UnreadCountOut(unread=notification_service.unread_count(db, user.id))


@router.post("/read-all")
async def mark_all_read(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return {"updated": notification_service.mark_all_read(db, user.id)}


@router.get("/preferences", response_model=List[schemas.NotificationPreferenceOut])
async def get_preferences(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return notification_service.list_preferences(db, user.id)


@router.put("/preferences/{event_type}", response_model=schemas.NotificationPreferenceOut)
async def update_preference(
    event_type: str,
    payload: schemas.NotificationPreferenceIn,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return notification_service.set_preference(
        db,
        user.id,
        event_type,
        in_app_enabled=payload.in_app_enabled,
        email_enabled=payload.email_enabled,
        email_frequency=payload.email_frequency,
    )


@router.post("/{notification_id}/read", response_model=schemas.NotificationOut)
async def mark_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return notification_service.mark_read(db, user.id, notification_id)
