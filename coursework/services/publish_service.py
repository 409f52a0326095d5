from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from coursework.core.errors import BadRequestError, InvalidStateError, NotFoundError
from coursework.core.logger import get_logger
from coursework.core.state_machines import AssignmentAction, next_assignment_status
from coursework.models.assignment_template import AssignmentTemplate
from coursework.models.course import CourseInstance
from coursework.models.published_assignment import AssignmentStatus, PublishedAssignment, PublishedGradingCriteria
from coursework.services.notification_service import notify_enrolled_students
from coursework.utils.timeutils import utcnow

logger = get_logger("publish")


def _check_schedule(deadline, late_deadline, late_penalty_percent, now: datetime) -> None:
    if deadline is None:
        raise BadRequestError("DeadlineRequired", "A deadline is required to publish an assignment")
    if deadline <= now:
        raise BadRequestError("DeadlineInPast", "Deadline must be in the future")
    if late_deadline is not None and late_deadline < deadline:
        raise BadRequestError("InvalidLateDeadline", "Late deadline must not be before the regular deadline")
    if late_penalty_percent is not None and not 0 <= late_penalty_percent <= 100:
        raise BadRequestError("InvalidLatePenalty", "Late penalty must be between 0 and 100 percent")


def _initial_status(auto_publish: bool, publish_at: Optional[datetime], now: datetime) -> AssignmentStatus:
    if not auto_publish:
        return AssignmentStatus.draft
    if publish_at is None or publish_at <= now:
        return AssignmentStatus.published
    return AssignmentStatus.scheduled


def _announce(db: Session, assignment: PublishedAssignment) -> None:
    notify_enrolled_students(
        db,
        assignment.instance_id,
        title="New Assignment",
        message=f'A new assignment "{assignment.title}" has been published',
        entity_type="assignment",
        entity_id=assignment.assignment_id,
    )


def publish_assignment(
    db: Session,
    instance_id: int,
    template_id: int,
    deadline: Optional[datetime],
    publish_at: Optional[datetime] = None,
    late_deadline: Optional[datetime] = None,
    late_penalty_percent: Optional[float] = None,
    auto_publish: bool = False,
    published_by: Optional[int] = None,
    now: Optional[datetime] = None,
) -> PublishedAssignment:
    """
    Snapshot a template and its rubric into a new assignment for one instance.

    The assignment row and every copied criteria row are written in a single
    commit; any failure leaves nothing behind.
    """
    now = now or utcnow()

    # --- 1. Check instance and template ---
    instance = db.get(CourseInstance, instance_id)
    if not instance:
        raise NotFoundError("InstanceNotFound", f"Course instance {instance_id} not found")

    template = db.get(AssignmentTemplate, template_id)
    if not template:
        raise NotFoundError("TemplateNotFound", f"Assignment template {template_id} not found")

    if template.course_id != instance.course_id:
        raise BadRequestError(
            "TemplateCourseMismatch",
            f"Template {template_id} does not belong to the course of instance {instance_id}",
        )

    # --- 2. Check schedule ---
    _check_schedule(deadline, late_deadline, late_penalty_percent, now)
    status = _initial_status(auto_publish, publish_at, now)
    if publish_at is None and status == AssignmentStatus.published:
        publish_at = now

    # --- 3. Copy template fields and rubric ---
    assignment = PublishedAssignment(
        instance_id=instance_id,
        template_id=template.template_id,
        title=template.title,
        description=template.description,
        assignment_type=template.assignment_type,
        grading_mode=template.grading_mode,
        max_points=template.max_points,
        weight_percentage=template.weight_percentage,
        instructions=template.instructions,
        publish_at=publish_at,
        deadline=deadline,
        late_deadline=late_deadline,
        late_penalty_percent=late_penalty_percent,
        auto_publish=auto_publish,
        status=status,
        published_by=published_by,
    )
    for index, criteria in enumerate(template.criteria):
        assignment.criteria.append(PublishedGradingCriteria(
            template_criteria_id=criteria.criteria_id,
            name=criteria.name,
            description=criteria.description,
            max_points=criteria.max_points,
            sort_order=index,
        ))

    try:
        db.add(assignment)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(assignment)
    logger.info(
        "Published template %s into instance %s as assignment %s (%s)",
        template_id, instance_id, assignment.assignment_id, status.value,
    )

    if status == AssignmentStatus.published:
        _announce(db, assignment)
    return assignment


def get_published_assignment(db: Session, assignment_id: int) -> PublishedAssignment:
    assignment = db.get(PublishedAssignment, assignment_id)
    if not assignment:
        raise NotFoundError("AssignmentNotFound", f"Published assignment {assignment_id} not found")
    return assignment


def get_instance_assignments(db: Session, instance_id: int,
                             status: Optional[AssignmentStatus] = None) -> List[PublishedAssignment]:
    instance = db.get(CourseInstance, instance_id)
    if not instance:
        raise NotFoundError("InstanceNotFound", f"Course instance {instance_id} not found")

    query = db.query(PublishedAssignment).filter(PublishedAssignment.instance_id == instance_id)
    if status is not None:
        query = query.filter(PublishedAssignment.status == status)

    return query.order_by(PublishedAssignment.deadline, PublishedAssignment.assignment_id).all()


def change_assignment_status(db: Session, assignment_id: int, action: AssignmentAction,
                             now: Optional[datetime] = None) -> PublishedAssignment:
    now = now or utcnow()
    assignment = get_published_assignment(db, assignment_id)

    previous = assignment.status
    target = next_assignment_status(previous, action)

    if action == AssignmentAction.schedule and assignment.publish_at is None:
        raise BadRequestError("PublishAtRequired", "Scheduling requires a publishAt time")

    assignment.status = target
    if target == AssignmentStatus.published and (assignment.publish_at is None or assignment.publish_at > now):
        assignment.publish_at = now
    db.commit()
    db.refresh(assignment)

    logger.info("Assignment %s: %s -> %s (%s)", assignment_id, previous.value, target.value, action.value)

    if target == AssignmentStatus.published:
        _announce(db, assignment)
    return assignment


def trigger_scheduled_publish(db: Session, assignment_id: int, now: Optional[datetime] = None) -> PublishedAssignment:
    """
    Hook for the external scheduler: publish once `now` has reached publishAt.
    """
    now = now or utcnow()
    assignment = get_published_assignment(db, assignment_id)

    # Reject published/closed through the transition table first
    next_assignment_status(assignment.status, AssignmentAction.publish)

    if assignment.publish_at is None:
        raise InvalidStateError("NotScheduled", f"Assignment {assignment_id} has no publishAt time")
    if now < assignment.publish_at:
        raise InvalidStateError("PublishTimeNotReached", f"Assignment {assignment_id} is not due for publishing yet")

    return change_assignment_status(db, assignment_id, AssignmentAction.publish, now=now)


def process_due_assignments(db: Session, now: Optional[datetime] = None) -> int:
    """Sweep run by the external scheduler; returns how many assignments went live."""
    now = now or utcnow()

    due = db.query(PublishedAssignment).filter(
        PublishedAssignment.status == AssignmentStatus.scheduled,
        PublishedAssignment.auto_publish.is_(True),
        PublishedAssignment.publish_at <= now,
    ).all()

    for assignment in due:
        assignment.status = next_assignment_status(assignment.status, AssignmentAction.publish)
    db.commit()

    for assignment in due:
        _announce(db, assignment)

    if due:
        logger.info("Scheduled sweep published %s assignment(s)", len(due))
    return len(due)
