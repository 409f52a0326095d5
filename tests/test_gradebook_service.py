from datetime import timedelta

import pytest

from coursework.core.errors import NotFoundError
from coursework.core.state_machines import AssignmentAction
from coursework.models.enrollment import Enrollment
from coursework.models.submission import SubmissionStatus
from coursework.services import gradebook_service, publish_service, submission_service
from coursework.services.enrollment_service import enroll_student
from coursework.services.grade_computer import CriterionAward
from tests.factories import NOW, make_template, publish_now


def _grade(db, assignment, student, *points):
    submission = submission_service.submit_assignment(db, assignment.assignment_id, student.user_id, now=NOW)
    awards = [CriterionAward(c.criteria_id, p) for c, p in zip(assignment.criteria, points)]
    return submission_service.grade_submission(db, submission.submission_id, awards, now=NOW)


@pytest.mark.parametrize("score, letter", [
    (95, "A"), (93, "A"), (92.99, "A-"), (90, "A-"), (88, "B+"), (83, "B"), (80, "B-"),
    (78, "C+"), (73, "C"), (70, "C-"), (67, "D+"), (63, "D"), (60, "D-"), (59.99, "F"), (0, "F"),
])
def test_letter_grade(score, letter):
    assert gradebook_service.letter_grade(score) == letter


def test_band_boundary():
    assert gradebook_service.grade_band(gradebook_service.percentage_of(90, 100)) == "A"
    assert gradebook_service.grade_band(gradebook_service.percentage_of(89.999, 100)) == "B"
    assert gradebook_service.grade_band(gradebook_service.percentage_of(45, 50)) == "A"
    assert gradebook_service.grade_band(gradebook_service.percentage_of(90, None)) == "A"


def test_gradebook_lists_visible_assignments_by_deadline(db, course, instance, student, enrolled):
    late_one = publish_now(db, instance, make_template(db, course, title="Essay"), deadline=NOW + timedelta(days=14))
    early_one = publish_now(db, instance, make_template(db, course, title="Quiz"), deadline=NOW + timedelta(days=3))
    closed = publish_now(db, instance, make_template(db, course, title="Old"), deadline=NOW + timedelta(days=5))
    publish_service.change_assignment_status(db, closed.assignment_id, AssignmentAction.close, now=NOW)
    publish_service.publish_assignment(
        db, instance.instance_id, make_template(db, course, title="Hidden").template_id,
        deadline=NOW + timedelta(days=1), now=NOW,
    )
    _grade(db, early_one, student, 40, 40)

    gradebook = gradebook_service.get_student_gradebook(db, instance.instance_id, student.user_id)

    titles = [entry["title"] for entry in gradebook["assignments"]]
    assert titles == ["Quiz", "Old", "Essay"]
    first = gradebook["assignments"][0]
    assert first["submission"].status == SubmissionStatus.graded
    assert [c.name for c in first["criteria"]] == ["Correctness", "Style"]
    assert gradebook["assignments"][2]["submission"] is None
    assert late_one.assignment_id == gradebook["assignments"][2]["assignment_id"]


def test_final_grade_is_weighted(db, course, instance, student, enrolled):
    project = publish_now(db, instance, make_template(db, course, title="Project", weight=40))
    exam = publish_now(db, instance, make_template(db, course, title="Exam", weight=60))
    unweighted = publish_now(db, instance, make_template(db, course, title="Practice"))
    _grade(db, project, student, 45, 45)
    _grade(db, exam, student, 40, 40)
    _grade(db, unweighted, student, 0, 0)

    result = gradebook_service.compute_final_grade(db, instance.instance_id, student.user_id)

    assert result == {"final_grade": 84.0, "final_letter": "B", "total_weight": 100.0, "graded_assignments": 2}


def test_final_grade_without_graded_work(db, instance, student, enrolled):
    result = gradebook_service.compute_final_grade(db, instance.instance_id, student.user_id)
    assert result["final_grade"] is None
    assert result["graded_assignments"] == 0


def test_calculate_all_final_grades_stores_results(db, course, instance, students, enrolled):
    enroll_student(db, instance.instance_id, students[1].user_id, now=NOW)
    exam = publish_now(db, instance, make_template(db, course, title="Exam", weight=50))
    _grade(db, exam, students[0], 50, 50)

    batch = gradebook_service.calculate_all_final_grades(db, instance.instance_id)

    assert batch["processed"] == 2
    stored = {
        e.student_id: (e.final_grade, e.final_letter)
        for e in db.query(Enrollment).filter(Enrollment.instance_id == instance.instance_id)
    }
    assert stored[students[0].user_id] == (50.0, "F")
    assert stored[students[1].user_id] == (None, None)


def test_calculate_final_grade_requires_enrollment(db, instance, students):
    with pytest.raises(NotFoundError):
        gradebook_service.calculate_final_grade(db, instance.instance_id, students[4].user_id)


def test_instance_analytics(db, instance, assignment, students):
    enroll_student(db, instance.instance_id, students[1].user_id, now=NOW)
    enroll_student(db, instance.instance_id, students[2].user_id, now=NOW)
    a = _grade(db, assignment, students[0], 45, 45)
    b = _grade(db, assignment, students[1], 45, 45)
    submission_service.submit_assignment(db, assignment.assignment_id, students[2].user_id, now=NOW)

    # Stored value just under the A band
    b.final_points = 89.999
    db.commit()

    analytics = gradebook_service.get_instance_analytics(db, instance.instance_id)

    assert analytics["grade_distribution"] == {"A": 1, "B": 1, "C": 0, "D": 0, "F": 0}
    assert analytics["total_submissions"] == 2
    assert analytics["average_grade"] == 90.0
    assert a.final_points == 90


def test_analytics_for_one_assignment(db, course, instance, assignment, student):
    other = publish_now(db, instance, make_template(db, course, title="Other"))
    _grade(db, assignment, student, 10, 10)
    _grade(db, other, student, 30, 30)

    analytics = gradebook_service.get_instance_analytics(db, instance.instance_id, other.assignment_id)
    assert analytics["grade_distribution"]["D"] == 1
    assert analytics["total_submissions"] == 1

    with pytest.raises(NotFoundError):
        gradebook_service.get_instance_analytics(db, instance.instance_id, 999)


def test_analytics_empty(db, instance):
    analytics = gradebook_service.get_instance_analytics(db, instance.instance_id)
    assert analytics == {
        "grade_distribution": {"A": 0, "B": 0, "C": 0, "D": 0, "F": 0},
        "average_grade": 0.0,
        "total_submissions": 0,
    }
