"""
Transition tables for the three status machines in the core.

Each entity has exactly one `next_*_status(current, action)` function. Services
never compare statuses by hand; they ask the table and persist what it returns.
"""
import enum
from typing import Optional

from coursework.core.errors import ConflictError, InvalidStateError
from coursework.models.enrollment import EnrollmentStatus
from coursework.models.published_assignment import AssignmentStatus
from coursework.models.submission import SubmissionStatus


# ----------------------------------------------------
# PUBLISHED ASSIGNMENT: draft -> scheduled -> published -> closed
# ----------------------------------------------------
class AssignmentAction(enum.Enum):
    schedule = "schedule"
    publish = "publish"
    close = "close"
    toggle = "toggle"

ASSIGNMENT_TRANSITIONS = {
    (AssignmentStatus.draft, AssignmentAction.schedule): AssignmentStatus.scheduled,
    (AssignmentStatus.draft, AssignmentAction.publish): AssignmentStatus.published,
    (AssignmentStatus.scheduled, AssignmentAction.publish): AssignmentStatus.published,
    (AssignmentStatus.published, AssignmentAction.close): AssignmentStatus.closed,
    (AssignmentStatus.draft, AssignmentAction.toggle): AssignmentStatus.closed,
    (AssignmentStatus.scheduled, AssignmentAction.toggle): AssignmentStatus.closed,
}


def next_assignment_status(current: AssignmentStatus, action: AssignmentAction) -> AssignmentStatus:
    target = ASSIGNMENT_TRANSITIONS.get((current, action))
    if target is None:
        raise InvalidStateError(
            "InvalidTransition",
            f"Cannot {action.value} an assignment in status {current.value}",
        )
    return target


# ----------------------------------------------------
# SUBMISSION: (none) -> draft -> submitted | late -> graded
# ----------------------------------------------------
class SubmissionAction(enum.Enum):
    save_draft = "save_draft"
    submit = "submit"
    submit_late = "submit_late"
    grade = "grade"

# `None` stands for "no row yet"; the first save or submit creates it
SUBMISSION_TRANSITIONS = {
    (None, SubmissionAction.save_draft): SubmissionStatus.draft,
    (SubmissionStatus.draft, SubmissionAction.save_draft): SubmissionStatus.draft,
    (None, SubmissionAction.submit): SubmissionStatus.submitted,
    (SubmissionStatus.draft, SubmissionAction.submit): SubmissionStatus.submitted,
    (None, SubmissionAction.submit_late): SubmissionStatus.late,
    (SubmissionStatus.draft, SubmissionAction.submit_late): SubmissionStatus.late,
    (SubmissionStatus.submitted, SubmissionAction.grade): SubmissionStatus.graded,
    (SubmissionStatus.late, SubmissionAction.grade): SubmissionStatus.graded,
    # Re-grade
    (SubmissionStatus.graded, SubmissionAction.grade): SubmissionStatus.graded,
}

_SUBMISSION_REJECTIONS = {
    SubmissionAction.save_draft: (ConflictError, "AlreadySubmitted"),
    SubmissionAction.submit: (ConflictError, "AlreadySubmitted"),
    SubmissionAction.submit_late: (ConflictError, "AlreadySubmitted"),
    SubmissionAction.grade: (InvalidStateError, "NotSubmitted"),
}


def next_submission_status(current: Optional[SubmissionStatus], action: SubmissionAction) -> SubmissionStatus:
    target = SUBMISSION_TRANSITIONS.get((current, action))
    if target is None:
        error_cls, code = _SUBMISSION_REJECTIONS[action]
        state = current.value if current else "none"
        raise error_cls(code, f"Cannot {action.value} a submission in status {state}")
    return target


# ----------------------------------------------------
# ENROLLMENT: (none) | dropped -> enrolled -> dropped | completed
# ----------------------------------------------------
class EnrollmentAction(enum.Enum):
    enroll = "enroll"
    drop = "drop"
    complete = "complete"

ENROLLMENT_TRANSITIONS = {
    (None, EnrollmentAction.enroll): EnrollmentStatus.enrolled,
    (EnrollmentStatus.dropped, EnrollmentAction.enroll): EnrollmentStatus.enrolled,
    (EnrollmentStatus.enrolled, EnrollmentAction.drop): EnrollmentStatus.dropped,
    (EnrollmentStatus.enrolled, EnrollmentAction.complete): EnrollmentStatus.completed,
}

_ENROLL_REJECTIONS = {
    EnrollmentStatus.enrolled: "AlreadyEnrolled",
    EnrollmentStatus.completed: "EnrollmentCompleted",
}

# Target statuses reachable through a generic status update
STATUS_UPDATE_ACTIONS = {
    EnrollmentStatus.dropped: EnrollmentAction.drop,
    EnrollmentStatus.completed: EnrollmentAction.complete,
}


def next_enrollment_status(current: Optional[EnrollmentStatus], action: EnrollmentAction) -> EnrollmentStatus:
    target = ENROLLMENT_TRANSITIONS.get((current, action))
    if target is not None:
        return target
    if action is EnrollmentAction.enroll:
        code = _ENROLL_REJECTIONS[current]
        raise ConflictError(code, f"Cannot enroll: current enrollment status is {current.value}")
    state = current.value if current else "none"
    raise InvalidStateError("InvalidTransition", f"Cannot {action.value} an enrollment in status {state}")
