"""
Enrollment state machine with capacity accounting.

Capacity is a guarded counter on the instance row (`enrolled_count`). A seat is
taken with one conditional UPDATE that only matches while the instance is open
and below its limit; the database write-locks that row until the transaction
ends, so concurrent enrolls on one instance queue behind each other and the
limit holds. The enrollment insert (or the dropped -> enrolled flip) commits in
the same transaction as the seat. A unique-constraint race on the
(instance, student) pair rolls back, returning the seat, and retries against
the row that won.
"""
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from coursework.core.config import settings
from coursework.core.errors import BadRequestError, ConflictError, InvalidStateError, NotFoundError, ServiceError
from coursework.core.logger import get_logger
from coursework.core.state_machines import (
    STATUS_UPDATE_ACTIONS,
    EnrollmentAction,
    next_enrollment_status,
)
from coursework.models.course import CourseInstance
from coursework.models.enrollment import Enrollment, EnrollmentStatus
from coursework.models.user import User
from coursework.services.notification_service import notify_users
from coursework.utils.timeutils import utcnow

logger = get_logger("enrollment")


class _EnrollmentRace(Exception):
    """The pair's row changed between our read and our guarded write."""


def _get_instance(db: Session, instance_id: int) -> CourseInstance:
    instance = db.get(CourseInstance, instance_id)
    if not instance:
        raise NotFoundError("InstanceNotFound", f"Course instance {instance_id} not found")
    return instance


def _find_enrollment(db: Session, instance_id: int, student_id: int) -> Optional[Enrollment]:
    return db.query(Enrollment).filter(
        Enrollment.instance_id == instance_id,
        Enrollment.student_id == student_id,
    ).first()


# ----------------------------------------------------
# Seat counter
# ----------------------------------------------------
def _acquire_seat(db: Session, instance_id: int) -> bool:
    result = db.execute(
        update(CourseInstance)
        .where(
            CourseInstance.instance_id == instance_id,
            CourseInstance.enrollment_open.is_(True),
            or_(
                CourseInstance.enrollment_limit.is_(None),
                CourseInstance.enrolled_count < CourseInstance.enrollment_limit,
            ),
        )
        .values(enrolled_count=CourseInstance.enrolled_count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _release_seat(db: Session, instance_id: int) -> None:
    db.execute(
        update(CourseInstance)
        .where(CourseInstance.instance_id == instance_id, CourseInstance.enrolled_count > 0)
        .values(enrolled_count=CourseInstance.enrolled_count - 1)
        .execution_options(synchronize_session=False)
    )


# ----------------------------------------------------
# Enroll
# ----------------------------------------------------
def _enroll_once(db: Session, instance_id: int, student_id: int, now: datetime) -> Tuple[Enrollment, bool]:
    # --- 1. Check instance, student and the existing row ---
    instance = _get_instance(db, instance_id)
    if not instance.enrollment_open:
        raise BadRequestError("EnrollmentClosed", "Enrollment is closed for this course")

    if not db.get(User, student_id):
        raise NotFoundError("StudentNotFound", f"Student {student_id} not found")

    existing = _find_enrollment(db, instance_id, student_id)
    next_enrollment_status(existing.status if existing else None, EnrollmentAction.enroll)

    # --- 2. Take a seat (row-locks the instance until commit/rollback) ---
    if not _acquire_seat(db, instance_id):
        db.refresh(instance)
        if not instance.enrollment_open:
            raise BadRequestError("EnrollmentClosed", "Enrollment is closed for this course")
        raise BadRequestError("EnrollmentLimitReached", "Enrollment limit reached for this course")

    # --- 3. Flip the dropped row back, or insert a new one ---
    if existing:
        result = db.execute(
            update(Enrollment)
            .where(
                Enrollment.enrollment_id == existing.enrollment_id,
                Enrollment.status == EnrollmentStatus.dropped,
            )
            .values(status=EnrollmentStatus.enrolled, enrolled_at=now, completed_at=None)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise _EnrollmentRace()
        db.expire(existing)
        return existing, True

    enrollment = Enrollment(
        instance_id=instance_id,
        student_id=student_id,
        status=EnrollmentStatus.enrolled,
        enrolled_at=now,
    )
    db.add(enrollment)
    db.flush()
    return enrollment, False


def enroll_student(db: Session, instance_id: int, student_id: int, now: Optional[datetime] = None) -> Enrollment:
    """
    Enroll a student, or re-activate their dropped enrollment (same row).

    Raises NotFound (instance/student), BadRequest (closed, full),
    Conflict (already enrolled, completed).
    """
    now = now or utcnow()

    for attempt in range(settings.ENROLL_RETRY_ATTEMPTS + 1):
        try:
            enrollment, reenrolled = _enroll_once(db, instance_id, student_id, now)
            db.commit()
        except (IntegrityError, _EnrollmentRace):
            db.rollback()
            logger.warning("Enroll race for student %s on instance %s (attempt %s)", student_id, instance_id, attempt + 1)
            continue
        except ServiceError as exc:
            db.rollback()
            logger.warning("Enroll rejected for student %s on instance %s: %s", student_id, instance_id, exc.code)
            raise
        except Exception:
            db.rollback()
            raise

        db.refresh(enrollment)
        logger.info(
            "Student %s %s instance %s",
            student_id, "re-enrolled in" if reenrolled else "enrolled in", instance_id,
        )
        course_title = enrollment.instance.course.title
        notify_users(
            db,
            [student_id],
            title="Enrollment Confirmed",
            message=f"You have been {'re-enrolled' if reenrolled else 'enrolled'} in {course_title}",
            entity_type="enrollment",
            entity_id=enrollment.enrollment_id,
        )
        return enrollment

    raise ConflictError("EnrollmentConflict", "Enrollment changed concurrently, retry the request")


def bulk_enroll(db: Session, instance_id: int, student_ids: Sequence[int],
                now: Optional[datetime] = None) -> Dict[str, List]:
    """
    Run every student through enroll_student independently.
    No batch rollback: capacity may run out part-way, and each failure is
    reported with its error code.
    """
    _get_instance(db, instance_id)

    successful = []
    failed = []
    for student_id in student_ids:
        try:
            enroll_student(db, instance_id, student_id, now=now)
        except ServiceError as exc:
            failed.append({"student_id": student_id, "reason": exc.code})
        else:
            successful.append(student_id)

    logger.info("Bulk enroll on instance %s: %s ok, %s failed", instance_id, len(successful), len(failed))
    return {"successful": successful, "failed": failed}


# ----------------------------------------------------
# Drop / complete
# ----------------------------------------------------
_STATUS_MESSAGES = {
    EnrollmentStatus.dropped: "You have been dropped from {title}",
    EnrollmentStatus.completed: "Congratulations! You have completed {title}",
}


def _apply_transition(db: Session, enrollment: Enrollment, action: EnrollmentAction,
                      now: datetime) -> Enrollment:
    previous = enrollment.status
    target = next_enrollment_status(previous, action)

    values = {"status": target}
    if target == EnrollmentStatus.completed:
        values["completed_at"] = now

    try:
        # Guarded on the status we read so two concurrent drops free one seat
        result = db.execute(
            update(Enrollment)
            .where(Enrollment.enrollment_id == enrollment.enrollment_id, Enrollment.status == previous)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("EnrollmentChanged", "Enrollment changed concurrently, retry the request")

        if previous == EnrollmentStatus.enrolled:
            _release_seat(db, enrollment.instance_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(enrollment)
    logger.info("Enrollment %s: %s -> %s", enrollment.enrollment_id, previous.value, target.value)

    notify_users(
        db,
        [enrollment.student_id],
        title="Enrollment Status Updated",
        message=_STATUS_MESSAGES[target].format(title=enrollment.instance.course.title),
        entity_type="enrollment",
        entity_id=enrollment.enrollment_id,
    )
    return enrollment


def drop_student(db: Session, instance_id: int, student_id: int, now: Optional[datetime] = None) -> Enrollment:
    enrollment = _find_enrollment(db, instance_id, student_id)
    if not enrollment:
        raise NotFoundError("EnrollmentNotFound", f"Student {student_id} has no enrollment in instance {instance_id}")
    return _apply_transition(db, enrollment, EnrollmentAction.drop, now or utcnow())


def update_enrollment_status(db: Session, enrollment_id: int, status: EnrollmentStatus,
                             now: Optional[datetime] = None) -> Enrollment:
    """Generic status change; re-enrollment only goes through enroll_student()."""
    enrollment = db.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFoundError("EnrollmentNotFound", f"Enrollment {enrollment_id} not found")

    action = STATUS_UPDATE_ACTIONS.get(status)
    if action is None:
        raise InvalidStateError(
            "InvalidTransition",
            f"Cannot set enrollment status to {status.value}; use enroll to re-activate",
        )
    return _apply_transition(db, enrollment, action, now or utcnow())


# ----------------------------------------------------
# Reads
# ----------------------------------------------------
def get_instance_enrollments(db: Session, instance_id: int,
                             status: Optional[EnrollmentStatus] = None) -> List[Enrollment]:
    _get_instance(db, instance_id)

    query = db.query(Enrollment).filter(Enrollment.instance_id == instance_id)
    if status is not None:
        query = query.filter(Enrollment.status == status)
    return query.order_by(Enrollment.enrolled_at, Enrollment.enrollment_id).all()


def get_student_enrollments(db: Session, student_id: int,
                            status: Optional[EnrollmentStatus] = None) -> List[Enrollment]:
    query = db.query(Enrollment).filter(Enrollment.student_id == student_id)
    if status is not None:
        query = query.filter(Enrollment.status == status)
    return query.order_by(Enrollment.enrolled_at.desc(), Enrollment.enrollment_id.desc()).all()


def is_student_enrolled(db: Session, instance_id: int, student_id: int) -> bool:
    enrollment = _find_enrollment(db, instance_id, student_id)
    return enrollment is not None and enrollment.status == EnrollmentStatus.enrolled


def get_enrollment_stats(db: Session, instance_id: int) -> Dict:
    instance = _get_instance(db, instance_id)

    counts = dict(
        db.query(Enrollment.status, func.count(Enrollment.enrollment_id))
        .filter(Enrollment.instance_id == instance_id)
        .group_by(Enrollment.status)
        .all()
    )
    total_enrolled = counts.get(EnrollmentStatus.enrolled, 0)

    available = None
    if instance.enrollment_limit is not None:
        available = max(0, instance.enrollment_limit - total_enrolled)

    return {
        "instance_id": instance_id,
        "total_enrolled": total_enrolled,
        "total_dropped": counts.get(EnrollmentStatus.dropped, 0),
        "total_completed": counts.get(EnrollmentStatus.completed, 0),
        "enrollment_open": instance.enrollment_open,
        "enrollment_limit": instance.enrollment_limit,
        "available_spots": available,
    }


def set_enrollment_open(db: Session, instance_id: int, is_open: bool) -> CourseInstance:
    instance = _get_instance(db, instance_id)
    try:
        instance.enrollment_open = is_open
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(instance)
    logger.info("Enrollment for instance %s %s", instance_id, "opened" if is_open else "closed")
    return instance
