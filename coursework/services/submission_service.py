from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from coursework.core.config import settings
from coursework.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from coursework.core.logger import get_logger
from coursework.core.state_machines import SubmissionAction, next_submission_status
from coursework.models.assignment_template import GradingMode
from coursework.models.enrollment import Enrollment, EnrollmentStatus
from coursework.models.published_assignment import AssignmentStatus, PublishedAssignment
from coursework.models.submission import Submission, SubmissionGrade, SubmissionStatus
from coursework.services.grade_computer import CriterionAward, CriterionBound, compute_grade
from coursework.services.notification_service import notify_users
from coursework.utils.timeutils import utcnow

logger = get_logger("submission")

_SUBMITTED_STATUSES = (SubmissionStatus.submitted, SubmissionStatus.late, SubmissionStatus.graded)


# ----------------------------------------------------
# Guards
# ----------------------------------------------------
def _get_open_assignment(db: Session, assignment_id: int) -> PublishedAssignment:
    """Every mutation needs the parent assignment to be live."""
    assignment = db.get(PublishedAssignment, assignment_id)
    if not assignment:
        raise NotFoundError("AssignmentNotFound", f"Published assignment {assignment_id} not found")
    if assignment.status != AssignmentStatus.published:
        raise ConflictError(
            "AssignmentClosed",
            f"Assignment {assignment_id} is {assignment.status.value} and does not accept changes",
        )
    return assignment


def _require_enrollment(db: Session, instance_id: int, student_id: int) -> None:
    enrolled = db.query(Enrollment).filter(
        Enrollment.instance_id == instance_id,
        Enrollment.student_id == student_id,
        Enrollment.status == EnrollmentStatus.enrolled,
    ).first()
    if not enrolled:
        raise ForbiddenError("NotEnrolled", f"Student {student_id} is not enrolled in instance {instance_id}")


def _find_submission(db: Session, assignment_id: int, student_id: int) -> Optional[Submission]:
    return db.query(Submission).filter(
        Submission.assignment_id == assignment_id,
        Submission.student_id == student_id,
    ).first()


def get_submission(db: Session, submission_id: int) -> Submission:
    submission = db.get(Submission, submission_id)
    if not submission:
        raise NotFoundError("SubmissionNotFound", f"Submission {submission_id} not found")
    return submission


# ----------------------------------------------------
# Student side
# ----------------------------------------------------
def _upsert(db: Session, assignment_id: int, student_id: int, apply) -> Submission:
    """
    Write through the single (assignment, student) row.

    `apply(submission_or_none)` returns the row to persist. If a concurrent
    request inserts the row first, the unique constraint fires and we apply
    again on top of the row that won.
    """
    for attempt in range(2):
        existing = _find_submission(db, assignment_id, student_id)
        submission = apply(existing)
        if existing is None:
            db.add(submission)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if attempt:
                raise
            logger.warning("Submission race for student %s on assignment %s, retrying", student_id, assignment_id)
            continue
        db.refresh(submission)
        return submission


def save_draft(db: Session, assignment_id: int, student_id: int,
               content: Optional[str] = None, attachments: Optional[List[Any]] = None) -> Submission:
    assignment = _get_open_assignment(db, assignment_id)
    _require_enrollment(db, assignment.instance_id, student_id)

    def apply(existing: Optional[Submission]) -> Submission:
        status = next_submission_status(existing.status if existing else None, SubmissionAction.save_draft)
        submission = existing or Submission(assignment_id=assignment_id, student_id=student_id)
        submission.status = status
        if content is not None:
            submission.content = content
        if attachments is not None:
            submission.attachments = attachments
        return submission

    return _upsert(db, assignment_id, student_id, apply)


def submit_assignment(db: Session, assignment_id: int, student_id: int,
                      now: Optional[datetime] = None) -> Submission:
    """draft (or nothing) -> submitted before the deadline, late after it."""
    now = now or utcnow()
    assignment = _get_open_assignment(db, assignment_id)
    _require_enrollment(db, assignment.instance_id, student_id)

    if assignment.late_deadline is not None and now > assignment.late_deadline:
        raise BadRequestError("LateDeadlinePassed", "Late submission deadline has passed")

    is_late = now > assignment.deadline
    action = SubmissionAction.submit_late if is_late else SubmissionAction.submit

    def apply(existing: Optional[Submission]) -> Submission:
        status = next_submission_status(existing.status if existing else None, action)
        submission = existing or Submission(assignment_id=assignment_id, student_id=student_id)
        submission.status = status
        submission.submitted_at = now
        submission.is_late = is_late
        return submission

    submission = _upsert(db, assignment_id, student_id, apply)
    logger.info("Student %s submitted assignment %s (%s)", student_id, assignment_id, submission.status.value)
    return submission


# ----------------------------------------------------
# Grader side
# ----------------------------------------------------
def _notify_graded(db: Session, submission: Submission, message: str) -> None:
    notify_users(
        db,
        [submission.student_id],
        title="Assignment Graded",
        message=message,
        entity_type="submission",
        entity_id=submission.submission_id,
    )


def grade_submission(
    db: Session,
    submission_id: int,
    criteria_grades: Sequence[CriterionAward],
    overall_feedback: Optional[str] = None,
    graded_by: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Submission:
    """
    Points-mode grading. Re-grading replaces every previous rubric row; the
    delete, the new rows and the totals land in one commit.
    """
    now = now or utcnow()
    submission = get_submission(db, submission_id)
    assignment = _get_open_assignment(db, submission.assignment_id)

    if assignment.grading_mode != GradingMode.points:
        raise BadRequestError("GradingModeMismatch", "This assignment is graded pass/fail")

    target = next_submission_status(submission.status, SubmissionAction.grade)

    bounds = [CriterionBound(c.criteria_id, c.max_points) for c in assignment.criteria]
    result = compute_grade(
        criteria_grades,
        assignment.late_penalty_percent,
        submission.is_late,
        bounds=bounds,
    )

    try:
        submission.grades.clear()
        db.flush()
        for award in criteria_grades:
            submission.grades.append(SubmissionGrade(
                criteria_id=award.criteria_id,
                points_awarded=award.points_awarded,
                feedback=award.feedback,
            ))

        submission.status = target
        submission.total_points = result.total_points
        submission.late_penalty_applied = result.late_penalty_applied
        submission.final_points = result.final_points
        submission.is_passed = None
        submission.feedback = overall_feedback
        submission.graded_by = graded_by
        submission.graded_at = now
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(submission)
    logger.info(
        "Graded submission %s: total=%s penalty=%s final=%s",
        submission_id, result.total_points, result.late_penalty_applied, result.final_points,
    )
    _notify_graded(db, submission, f'Your submission for "{assignment.title}" has been graded')
    return submission


def grade_pass_fail(
    db: Session,
    submission_id: int,
    is_passed: bool,
    feedback: Optional[str] = None,
    graded_by: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Submission:
    now = now or utcnow()
    submission = get_submission(db, submission_id)
    assignment = _get_open_assignment(db, submission.assignment_id)

    if assignment.grading_mode != GradingMode.pass_fail:
        raise BadRequestError("GradingModeMismatch", "This assignment is graded by points")

    target = next_submission_status(submission.status, SubmissionAction.grade)

    try:
        submission.grades.clear()
        submission.status = target
        submission.is_passed = is_passed
        submission.total_points = None
        submission.late_penalty_applied = None
        submission.final_points = None
        submission.feedback = feedback
        submission.graded_by = graded_by
        submission.graded_at = now
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(submission)
    logger.info("Graded submission %s pass/fail: %s", submission_id, "pass" if is_passed else "fail")
    outcome = "complete" if is_passed else "incomplete"
    _notify_graded(db, submission, f'Your submission for "{assignment.title}" has been marked as {outcome}')
    return submission


# ----------------------------------------------------
# Reads
# ----------------------------------------------------
def list_submissions(
    db: Session,
    assignment_id: Optional[int] = None,
    student_id: Optional[int] = None,
    status: Optional[SubmissionStatus] = None,
    graded: Optional[bool] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> Tuple[List[Submission], Dict]:
    limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    page = max(page, 1)

    query = db.query(Submission)
    if assignment_id is not None:
        query = query.filter(Submission.assignment_id == assignment_id)
    if student_id is not None:
        query = query.filter(Submission.student_id == student_id)
    if status is not None:
        query = query.filter(Submission.status == status)
    if graded is not None:
        if graded:
            query = query.filter(Submission.status == SubmissionStatus.graded)
        else:
            query = query.filter(Submission.status != SubmissionStatus.graded)

    total = query.count()
    items = query.order_by(Submission.created_at.desc(), Submission.submission_id.desc()) \
        .offset((page - 1) * limit) \
        .limit(limit) \
        .all()

    meta = {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": (total + limit - 1) // limit,
    }
    return items, meta


def get_submission_stats(db: Session, assignment_id: int) -> Dict:
    assignment = db.get(PublishedAssignment, assignment_id)
    if not assignment:
        raise NotFoundError("AssignmentNotFound", f"Published assignment {assignment_id} not found")

    submissions = db.query(Submission).filter(Submission.assignment_id == assignment_id).all()

    graded = [s for s in submissions if s.status == SubmissionStatus.graded]
    submitted = [s for s in submissions if s.status in _SUBMITTED_STATUSES]
    late = [s for s in submissions if s.is_late]
    scored = [s.final_points for s in graded if s.final_points is not None]

    return {
        "assignment_id": assignment_id,
        "total": len(submissions),
        "submitted": len(submitted),
        "graded": len(graded),
        "pending": len(submitted) - len(graded),
        "late": len(late),
        "average_score": round(sum(scored) / len(scored), 2) if scored else None,
    }
