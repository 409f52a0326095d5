from datetime import timedelta

import pytest

from coursework.core.errors import BadRequestError, InvalidStateError
from coursework.core.state_machines import AssignmentAction
from coursework.models.course import Course
from coursework.models.published_assignment import AssignmentStatus
from coursework.services import criteria_service, publish_service
from coursework.services.notification_service import get_notifications_for_user
from tests.factories import NOW, make_template, publish_now


def _publish(db, instance, template, **kwargs):
    kwargs.setdefault("deadline", NOW + timedelta(days=7))
    return publish_service.publish_assignment(db, instance.instance_id, template.template_id, now=NOW, **kwargs)


def test_publish_copies_template_and_rubric(db, instance, template):
    assignment = publish_now(db, instance, template)

    assert assignment.status == AssignmentStatus.published
    assert assignment.publish_at == NOW
    assert assignment.title == template.title
    assert assignment.max_points == 100
    assert [(c.name, c.max_points, c.sort_order) for c in assignment.criteria] == [
        ("Correctness", 50, 0),
        ("Style", 50, 1),
    ]
    assert [c.template_criteria_id for c in assignment.criteria] == [c.criteria_id for c in template.criteria]


def test_template_edits_do_not_reach_published_copies(db, instance, template):
    assignment = publish_now(db, instance, template)
    criteria_id = template.criteria[0].criteria_id

    criteria_service.update_template(db, template.template_id, {"title": "Renamed", "max_points": 80})
    criteria_service.update_criteria(db, criteria_id, {"max_points": 30})
    criteria_service.add_criteria(db, template.template_id, "Extra", 10)

    db.expire_all()
    assignment = publish_service.get_published_assignment(db, assignment.assignment_id)
    assert assignment.title == "Homework 1"
    assert assignment.max_points == 100
    assert [c.max_points for c in assignment.criteria] == [50, 50]


def test_initial_status(db, instance, template):
    draft = _publish(db, instance, template)
    scheduled = _publish(db, instance, template, auto_publish=True, publish_at=NOW + timedelta(hours=1))
    published = _publish(db, instance, template, auto_publish=True, publish_at=NOW - timedelta(hours=1))

    assert draft.status == AssignmentStatus.draft
    assert scheduled.status == AssignmentStatus.scheduled
    assert published.status == AssignmentStatus.published


@pytest.mark.parametrize("kwargs, code", [
    ({"deadline": None}, "DeadlineRequired"),
    ({"deadline": NOW - timedelta(minutes=1)}, "DeadlineInPast"),
    ({"late_deadline": NOW + timedelta(days=1)}, "InvalidLateDeadline"),
    ({"late_penalty_percent": 150}, "InvalidLatePenalty"),
    ({"late_penalty_percent": -5}, "InvalidLatePenalty"),
])
def test_publish_validation(db, instance, template, kwargs, code):
    with pytest.raises(BadRequestError) as exc:
        _publish(db, instance, template, **kwargs)
    assert exc.value.code == code


def test_template_must_belong_to_the_instance_course(db, instance):
    other = Course(code="MA201", title="Linear Algebra")
    db.add(other)
    db.commit()
    template = make_template(db, other)

    with pytest.raises(BadRequestError) as exc:
        _publish(db, instance, template)
    assert exc.value.code == "TemplateCourseMismatch"


def test_publish_announces_to_enrolled_students(db, instance, template, student, enrolled):
    assignment = publish_now(db, instance, template)

    notes = [n for n in get_notifications_for_user(db, student.user_id) if n["entity_type"] == "assignment"]
    assert len(notes) == 1
    assert notes[0]["entity_id"] == assignment.assignment_id


def test_draft_publish_does_not_announce(db, instance, template, student, enrolled):
    _publish(db, instance, template)
    notes = [n for n in get_notifications_for_user(db, student.user_id) if n["entity_type"] == "assignment"]
    assert notes == []


def test_status_changes(db, instance, template):
    assignment = _publish(db, instance, template, publish_at=NOW + timedelta(hours=1))

    assignment = publish_service.change_assignment_status(db, assignment.assignment_id, AssignmentAction.schedule, now=NOW)
    assert assignment.status == AssignmentStatus.scheduled

    assignment = publish_service.change_assignment_status(db, assignment.assignment_id, AssignmentAction.publish, now=NOW)
    assert assignment.status == AssignmentStatus.published
    assert assignment.publish_at == NOW

    assignment = publish_service.change_assignment_status(db, assignment.assignment_id, AssignmentAction.close, now=NOW)
    assert assignment.status == AssignmentStatus.closed

    with pytest.raises(InvalidStateError) as exc:
        publish_service.change_assignment_status(db, assignment.assignment_id, AssignmentAction.publish, now=NOW)
    assert exc.value.code == "InvalidTransition"


def test_schedule_needs_publish_at(db, instance, template):
    assignment = _publish(db, instance, template)
    with pytest.raises(BadRequestError) as exc:
        publish_service.change_assignment_status(db, assignment.assignment_id, AssignmentAction.schedule, now=NOW)
    assert exc.value.code == "PublishAtRequired"


def test_toggle_closes_a_scheduled_assignment(db, instance, template):
    assignment = _publish(db, instance, template, auto_publish=True, publish_at=NOW + timedelta(hours=1))
    assignment = publish_service.change_assignment_status(db, assignment.assignment_id, AssignmentAction.toggle, now=NOW)
    assert assignment.status == AssignmentStatus.closed


def test_trigger_scheduled_publish(db, instance, template):
    publish_at = NOW + timedelta(hours=1)
    assignment = _publish(db, instance, template, auto_publish=True, publish_at=publish_at)

    with pytest.raises(InvalidStateError) as exc:
        publish_service.trigger_scheduled_publish(db, assignment.assignment_id, now=NOW)
    assert exc.value.code == "PublishTimeNotReached"

    assignment = publish_service.trigger_scheduled_publish(db, assignment.assignment_id, now=publish_at)
    assert assignment.status == AssignmentStatus.published

    with pytest.raises(InvalidStateError):
        publish_service.trigger_scheduled_publish(db, assignment.assignment_id, now=publish_at)


def test_trigger_without_publish_at(db, instance, template):
    assignment = _publish(db, instance, template)
    with pytest.raises(InvalidStateError) as exc:
        publish_service.trigger_scheduled_publish(db, assignment.assignment_id, now=NOW)
    assert exc.value.code == "NotScheduled"


def test_process_due_assignments(db, instance, template):
    due = _publish(db, instance, template, auto_publish=True, publish_at=NOW + timedelta(hours=1))
    later = _publish(db, instance, template, auto_publish=True, publish_at=NOW + timedelta(days=2))

    assert publish_service.process_due_assignments(db, now=NOW + timedelta(hours=2)) == 1

    db.expire_all()
    assert publish_service.get_published_assignment(db, due.assignment_id).status == AssignmentStatus.published
    assert publish_service.get_published_assignment(db, later.assignment_id).status == AssignmentStatus.scheduled


def test_instance_assignments_filter(db, instance, template):
    _publish(db, instance, template)
    publish_now(db, instance, template)

    assert len(publish_service.get_instance_assignments(db, instance.instance_id)) == 2
    published = publish_service.get_instance_assignments(db, instance.instance_id, AssignmentStatus.published)
    assert [a.status for a in published] == [AssignmentStatus.published]
