from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from coursework.core.response import format_response, serialize
from coursework.db.database import get_db
from coursework.schemas.dashboard_schema import InstanceAnalytics
from coursework.services.gradebook_service import get_instance_analytics

router = APIRouter()

@router.get("/instances/{instance_id}/analytics")
def instance_analytics(
    instance_id: int,
    assignment_id: Optional[int] = Query(default=None, alias="assignmentId"),
    db: Session = Depends(get_db),
):
    analytics = get_instance_analytics(db, instance_id, assignment_id)
    return format_response(status.HTTP_200_OK, "OK", serialize(InstanceAnalytics, analytics))
