import pytest

from coursework.core.errors import ConflictError, InvalidStateError
from coursework.core.state_machines import (
    AssignmentAction,
    EnrollmentAction,
    SubmissionAction,
    next_assignment_status,
    next_enrollment_status,
    next_submission_status,
)
from coursework.models.enrollment import EnrollmentStatus
from coursework.models.published_assignment import AssignmentStatus
from coursework.models.submission import SubmissionStatus


@pytest.mark.parametrize("current, action, expected", [
    (AssignmentStatus.draft, AssignmentAction.schedule, AssignmentStatus.scheduled),
    (AssignmentStatus.draft, AssignmentAction.publish, AssignmentStatus.published),
    (AssignmentStatus.scheduled, AssignmentAction.publish, AssignmentStatus.published),
    (AssignmentStatus.published, AssignmentAction.close, AssignmentStatus.closed),
    (AssignmentStatus.scheduled, AssignmentAction.toggle, AssignmentStatus.closed),
])
def test_assignment_transitions(current, action, expected):
    assert next_assignment_status(current, action) == expected


@pytest.mark.parametrize("action", list(AssignmentAction))
def test_closed_assignment_is_terminal(action):
    with pytest.raises(InvalidStateError) as exc:
        next_assignment_status(AssignmentStatus.closed, action)
    assert exc.value.code == "InvalidTransition"


def test_published_assignment_cannot_go_back_to_scheduled():
    with pytest.raises(InvalidStateError):
        next_assignment_status(AssignmentStatus.published, AssignmentAction.schedule)


def test_first_submit_creates_submitted_or_late():
    assert next_submission_status(None, SubmissionAction.submit) == SubmissionStatus.submitted
    assert next_submission_status(None, SubmissionAction.submit_late) == SubmissionStatus.late
    assert next_submission_status(SubmissionStatus.draft, SubmissionAction.submit) == SubmissionStatus.submitted


def test_regrade_is_allowed():
    assert next_submission_status(SubmissionStatus.graded, SubmissionAction.grade) == SubmissionStatus.graded


@pytest.mark.parametrize("current", [SubmissionStatus.submitted, SubmissionStatus.late, SubmissionStatus.graded])
def test_resubmit_is_a_conflict(current):
    with pytest.raises(ConflictError) as exc:
        next_submission_status(current, SubmissionAction.submit)
    assert exc.value.code == "AlreadySubmitted"


def test_grading_a_draft_is_rejected():
    with pytest.raises(InvalidStateError) as exc:
        next_submission_status(SubmissionStatus.draft, SubmissionAction.grade)
    assert exc.value.code == "NotSubmitted"


def test_enrollment_transitions():
    assert next_enrollment_status(None, EnrollmentAction.enroll) == EnrollmentStatus.enrolled
    assert next_enrollment_status(EnrollmentStatus.dropped, EnrollmentAction.enroll) == EnrollmentStatus.enrolled
    assert next_enrollment_status(EnrollmentStatus.enrolled, EnrollmentAction.drop) == EnrollmentStatus.dropped
    assert next_enrollment_status(EnrollmentStatus.enrolled, EnrollmentAction.complete) == EnrollmentStatus.completed


@pytest.mark.parametrize("current, code", [
    (EnrollmentStatus.enrolled, "AlreadyEnrolled"),
    (EnrollmentStatus.completed, "EnrollmentCompleted"),
])
def test_enroll_rejections(current, code):
    with pytest.raises(ConflictError) as exc:
        next_enrollment_status(current, EnrollmentAction.enroll)
    assert exc.value.code == code


def test_dropping_a_dropped_enrollment_is_invalid():
    with pytest.raises(InvalidStateError):
        next_enrollment_status(EnrollmentStatus.dropped, EnrollmentAction.drop)
