from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from app.core.exceptions import NotFound
from app.core.security import get_current_active_user
from app.database import get_db
from app.models.notification import NotificationKind
from app.models.user import User
from app.services import notifications as notification_service
from pydantic import BaseModel, ConfigDict
from datetime import datetime

router = APIRouter(prefix="/api/notifications", tags=["notifications"])

class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    type: NotificationKind
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    appointment_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

@router.get("", response_model=List[NotificationResponse])
async def get_notifications(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return notification_service.list_notifications(db, current_user.id)

@router.put("/read-all")
async def mark_all_notifications_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    notification_service.mark_all_read(db, current_user.id)
    return {"message": "All notifications marked as read"}

@router.put("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    if notification_service.mark_read(db, current_user.id, notification_id) is None:
        raise NotFound("Notification not found")
    return {"message": "Notification marked as read"}
