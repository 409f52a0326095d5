from typing import Optional
from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session
from coursework.core.response import format_response, serialize
from coursework.db.database import get_db
from coursework.models.published_assignment import AssignmentStatus
from coursework.schemas.assignment_schema import (
    AssignmentStatusRequest,
    PublishAssignmentRequest,
    PublishedAssignmentInfo,
)
from coursework.services.publish_service import (
    change_assignment_status,
    get_instance_assignments,
    get_published_assignment,
    publish_assignment,
    trigger_scheduled_publish,
)

router = APIRouter()


@router.post("/{instance_id}/assignments/publish", status_code=status.HTTP_201_CREATED)
def publish_template(
    instance_id: int,
    body: PublishAssignmentRequest,
    x_user_id: Optional[int] = Header(default=None, alias="X-User-Id"),
    db: Session = Depends(get_db),
):
    assignment = publish_assignment(
        db,
        instance_id,
        body.template_id,
        deadline=body.deadline,
        publish_at=body.publish_at,
        late_deadline=body.late_deadline,
        late_penalty_percent=body.late_penalty_percent,
        auto_publish=body.auto_publish,
        published_by=x_user_id,
    )
    return format_response(
        status.HTTP_201_CREATED,
        f"Assignment {assignment.status.value}",
        serialize(PublishedAssignmentInfo, assignment),
    )


@router.get("/{instance_id}/assignments")
def list_instance_assignments(
    instance_id: int,
    status_filter: Optional[AssignmentStatus] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    assignments = get_instance_assignments(db, instance_id, status_filter)
    return format_response(status.HTTP_200_OK, "OK", serialize(PublishedAssignmentInfo, assignments))


@router.get("/assignments/{assignment_id}")
def get_assignment(assignment_id: int, db: Session = Depends(get_db)):
    assignment = get_published_assignment(db, assignment_id)
    return format_response(status.HTTP_200_OK, "OK", serialize(PublishedAssignmentInfo, assignment))


@router.patch("/assignments/{assignment_id}/status")
def update_assignment_status(assignment_id: int, body: AssignmentStatusRequest, db: Session = Depends(get_db)):
    assignment = change_assignment_status(db, assignment_id, body.action)
    return format_response(
        status.HTTP_200_OK,
        f"Assignment is now {assignment.status.value}",
        serialize(PublishedAssignmentInfo, assignment),
    )


@router.post("/assignments/{assignment_id}/trigger-publish")
def trigger_publish(assignment_id: int, db: Session = Depends(get_db)):
    assignment = trigger_scheduled_publish(db, assignment_id)
    return format_response(status.HTTP_200_OK, "Assignment published", serialize(PublishedAssignmentInfo, assignment))
