from datetime import timedelta

import pytest

from coursework.core.errors import BadRequestError, ConflictError, ForbiddenError, InvalidStateError
from coursework.core.state_machines import AssignmentAction
from coursework.models.assignment_template import GradingMode
from coursework.models.submission import SubmissionGrade, SubmissionStatus
from coursework.services import publish_service, submission_service
from coursework.services.enrollment_service import enroll_student
from coursework.services.grade_computer import CriterionAward
from coursework.services.notification_service import get_notifications_for_user
from tests.factories import NOW, make_template, publish_now


def _awards(assignment, *points):
    return [CriterionAward(c.criteria_id, p) for c, p in zip(assignment.criteria, points)]


def _submit(db, assignment, student, when=NOW):
    return submission_service.submit_assignment(db, assignment.assignment_id, student.user_id, now=when)


# ----------------------------------------------------
# Drafts and submit
# ----------------------------------------------------
def test_save_draft_then_submit(db, assignment, student):
    draft = submission_service.save_draft(
        db, assignment.assignment_id, student.user_id, content="first try", attachments=["upload-1"]
    )
    assert draft.status == SubmissionStatus.draft

    draft = submission_service.save_draft(db, assignment.assignment_id, student.user_id, content="second try")
    assert draft.content == "second try"
    assert draft.attachments == ["upload-1"]

    submitted = _submit(db, assignment, student, NOW + timedelta(days=1))
    assert submitted.submission_id == draft.submission_id
    assert submitted.status == SubmissionStatus.submitted
    assert submitted.is_late is False
    assert submitted.submitted_at == NOW + timedelta(days=1)


def test_submit_after_deadline_is_late(db, assignment, student):
    submission = _submit(db, assignment, student, NOW + timedelta(days=8))
    assert submission.status == SubmissionStatus.late
    assert submission.is_late is True


def test_submit_after_late_deadline_is_rejected(db, assignment, student):
    with pytest.raises(BadRequestError) as exc:
        _submit(db, assignment, student, NOW + timedelta(days=10))
    assert exc.value.code == "LateDeadlinePassed"


def test_resubmit_is_a_conflict(db, assignment, student):
    _submit(db, assignment, student)
    with pytest.raises(ConflictError) as exc:
        _submit(db, assignment, student)
    assert exc.value.code == "AlreadySubmitted"

    with pytest.raises(ConflictError):
        submission_service.save_draft(db, assignment.assignment_id, student.user_id, content="too late")


def test_only_enrolled_students_submit(db, assignment, students):
    with pytest.raises(ForbiddenError) as exc:
        _submit(db, assignment, students[1])
    assert exc.value.code == "NotEnrolled"


def test_closed_assignment_rejects_submissions(db, assignment, student):
    publish_service.change_assignment_status(db, assignment.assignment_id, AssignmentAction.close, now=NOW)
    with pytest.raises(ConflictError) as exc:
        _submit(db, assignment, student)
    assert exc.value.code == "AssignmentClosed"


# ----------------------------------------------------
# Grading
# ----------------------------------------------------
def test_grade_on_time_submission(db, assignment, student, lecturer):
    submission = _submit(db, assignment, student)

    graded = submission_service.grade_submission(
        db, submission.submission_id, _awards(assignment, 40, 45),
        overall_feedback="Good work", graded_by=lecturer.user_id, now=NOW,
    )

    assert graded.status == SubmissionStatus.graded
    assert (graded.total_points, graded.late_penalty_applied, graded.final_points) == (85, 0, 85)
    assert graded.graded_by == lecturer.user_id
    assert graded.graded_at == NOW
    assert len(graded.grades) == 2


def test_grade_late_submission_applies_penalty(db, assignment, student):
    submission = _submit(db, assignment, student, NOW + timedelta(days=8))
    graded = submission_service.grade_submission(db, submission.submission_id, _awards(assignment, 50, 50), now=NOW)
    assert (graded.total_points, graded.late_penalty_applied, graded.final_points) == (100, 10, 90)


def test_regrade_replaces_previous_rows(db, assignment, student):
    submission = _submit(db, assignment, student)
    submission_service.grade_submission(db, submission.submission_id, _awards(assignment, 10, 10), now=NOW)

    regraded = submission_service.grade_submission(db, submission.submission_id, _awards(assignment, 30), now=NOW)

    assert regraded.total_points == 30
    rows = db.query(SubmissionGrade).filter(SubmissionGrade.submission_id == submission.submission_id).all()
    assert [(r.criteria_id, r.points_awarded) for r in rows] == [(assignment.criteria[0].criteria_id, 30)]


def test_regrade_with_same_awards_is_stable(db, assignment, student):
    submission = _submit(db, assignment, student, NOW + timedelta(days=8))

    results = []
    for _ in range(2):
        graded = submission_service.grade_submission(
            db, submission.submission_id, _awards(assignment, 50, 50), now=NOW + timedelta(days=10)
        )
        rows = (
            db.query(SubmissionGrade)
            .filter(SubmissionGrade.submission_id == submission.submission_id)
            .order_by(SubmissionGrade.criteria_id)
            .all()
        )
        results.append((
            (graded.total_points, graded.late_penalty_applied, graded.final_points),
            [(r.criteria_id, r.points_awarded) for r in rows],
        ))

    assert results[0] == results[1]
    assert results[0][0] == (100, 10, 90)
    assert len(results[0][1]) == 2


def test_grading_a_draft_is_rejected(db, assignment, student):
    draft = submission_service.save_draft(db, assignment.assignment_id, student.user_id, content="wip")
    with pytest.raises(InvalidStateError) as exc:
        submission_service.grade_submission(db, draft.submission_id, [], now=NOW)
    assert exc.value.code == "NotSubmitted"


def test_out_of_range_points_leave_submission_untouched(db, assignment, student):
    submission = _submit(db, assignment, student)
    with pytest.raises(BadRequestError):
        submission_service.grade_submission(db, submission.submission_id, _awards(assignment, 60), now=NOW)

    db.expire_all()
    assert submission_service.get_submission(db, submission.submission_id).status == SubmissionStatus.submitted


def test_empty_rubric_grades_to_zero(db, course, instance, enrolled, student):
    template = make_template(db, course, title="Reflection", criteria=())
    assignment = publish_now(db, instance, template)
    submission = _submit(db, assignment, student)

    graded = submission_service.grade_submission(db, submission.submission_id, [], now=NOW)
    assert (graded.total_points, graded.final_points) == (0, 0)


def test_grading_a_closed_assignment_is_rejected(db, assignment, student):
    submission = _submit(db, assignment, student)
    publish_service.change_assignment_status(db, assignment.assignment_id, AssignmentAction.close, now=NOW)

    with pytest.raises(ConflictError) as exc:
        submission_service.grade_submission(db, submission.submission_id, _awards(assignment, 1, 1), now=NOW)
    assert exc.value.code == "AssignmentClosed"


def test_pass_fail_grading(db, course, instance, enrolled, student):
    template = make_template(db, course, title="Attendance", grading_mode=GradingMode.pass_fail, criteria=())
    assignment = publish_now(db, instance, template)
    submission = _submit(db, assignment, student)

    with pytest.raises(BadRequestError) as exc:
        submission_service.grade_submission(db, submission.submission_id, [], now=NOW)
    assert exc.value.code == "GradingModeMismatch"

    graded = submission_service.grade_pass_fail(db, submission.submission_id, True, feedback="Present", now=NOW)
    assert graded.status == SubmissionStatus.graded
    assert graded.is_passed is True
    assert graded.final_points is None


def test_pass_fail_on_points_assignment_is_rejected(db, assignment, student):
    submission = _submit(db, assignment, student)
    with pytest.raises(BadRequestError) as exc:
        submission_service.grade_pass_fail(db, submission.submission_id, True, now=NOW)
    assert exc.value.code == "GradingModeMismatch"


def test_grading_notifies_the_student(db, assignment, student):
    submission = _submit(db, assignment, student)
    submission_service.grade_submission(db, submission.submission_id, _awards(assignment, 1, 1), now=NOW)

    notes = [n for n in get_notifications_for_user(db, student.user_id) if n["entity_type"] == "submission"]
    assert [n["entity_id"] for n in notes] == [submission.submission_id]


# ----------------------------------------------------
# Reads
# ----------------------------------------------------
def test_list_submissions_and_stats(db, instance, assignment, students):
    for s in students[1:4]:
        enroll_student(db, instance.instance_id, s.user_id, now=NOW)
    submitters = students[:3]
    for s in submitters[:2]:
        _submit(db, assignment, s)
    late = _submit(db, assignment, submitters[2], NOW + timedelta(days=8))
    submission_service.save_draft(db, assignment.assignment_id, students[3].user_id, content="wip")
    submission_service.grade_submission(db, late.submission_id, _awards(assignment, 40, 40), now=NOW)

    items, meta = submission_service.list_submissions(db, assignment_id=assignment.assignment_id, page=1, limit=3)
    assert len(items) == 3
    assert meta == {"page": 1, "limit": 3, "total": 4, "total_pages": 2}

    graded, _ = submission_service.list_submissions(db, graded=True)
    assert [s.submission_id for s in graded] == [late.submission_id]

    drafts, _ = submission_service.list_submissions(db, status=SubmissionStatus.draft)
    assert len(drafts) == 1

    stats = submission_service.get_submission_stats(db, assignment.assignment_id)
    assert stats == {
        "assignment_id": assignment.assignment_id,
        "total": 4,
        "submitted": 3,
        "graded": 1,
        "pending": 2,
        "late": 1,
        "average_score": 72.0,
    }
