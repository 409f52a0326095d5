from typing import Optional
from datetime import datetime
from coursework.schemas.base_schema import CamelModel

class NotificationResponse(CamelModel):
    notification_id: int
    title: str
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    is_read: bool
    created_at: datetime
