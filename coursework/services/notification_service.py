from typing import Dict, Iterable, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from coursework.core.logger import get_logger
from coursework.models.enrollment import Enrollment, EnrollmentStatus
from coursework.models.notification import Notification

logger = get_logger("notifications")


def notify_users(
    db: Session,
    user_ids: Iterable[int],
    title: str,
    message: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
) -> int:
    """
    Fire-and-forget: queue one notification per user in its own commit.

    Callers commit their own work first, so a failure here is logged and
    rolled back without touching the write that triggered it.
    """
    user_ids = list(user_ids)
    if not user_ids:
        return 0

    try:
        db.add_all([
            Notification(
                user_id=user_id,
                title=title,
                message=message,
                entity_type=entity_type,
                entity_id=entity_id,
            )
            for user_id in user_ids
        ])
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to queue %s notification(s): %s", len(user_ids), title)
        return 0

    return len(user_ids)


def notify_enrolled_students(db: Session, instance_id: int, title: str, message: str,
                             entity_type: Optional[str] = None, entity_id: Optional[int] = None) -> int:
    student_ids = [
        row.student_id
        for row in db.query(Enrollment.student_id).filter(
            Enrollment.instance_id == instance_id,
            Enrollment.status == EnrollmentStatus.enrolled,
        ).all()
    ]
    return notify_users(db, student_ids, title, message, entity_type, entity_id)


def get_notifications_for_user(db: Session, user_id: int) -> List[Dict]:
    """Newest first."""
    notifications = db.query(Notification).filter(
        Notification.user_id == user_id
    ).order_by(Notification.created_at.desc(), Notification.notification_id.desc()).all()

    return [
        {
            "notification_id": n.notification_id,
            "title": n.title,
            "message": n.message,
            "entity_type": n.entity_type,
            "entity_id": n.entity_id,
            "is_read": n.is_read,
            "created_at": n.created_at,
        }
        for n in notifications
    ]
