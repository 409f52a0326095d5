from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from coursework.core.response import format_response, serialize
from coursework.db.database import get_db
from coursework.schemas.notification_schema import NotificationResponse
from coursework.services.notification_service import get_notifications_for_user

router = APIRouter()

@router.get("/notifications")
def get_notifications(user_id: int, db: Session = Depends(get_db)):
    notifications = get_notifications_for_user(db, user_id)
    return format_response(status.HTTP_200_OK, "OK", serialize(NotificationResponse, notifications))
