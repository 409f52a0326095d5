from typing import Dict, List, Optional, Sequence
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from coursework.core.errors import BadRequestError, ConflictError, NotFoundError
from coursework.core.logger import get_logger
from coursework.models.assignment_template import AssignmentTemplate, AssignmentType, GradingCriteria, GradingMode
from coursework.models.course import Course
from coursework.models.published_assignment import PublishedAssignment
from coursework.services.grade_computer import sum_max_points, to_decimal

logger = get_logger("criteria")

_TEMPLATE_FIELDS = {
    "title", "description", "assignment_type", "grading_mode",
    "max_points", "weight_percentage", "instructions",
}
_CRITERIA_FIELDS = {"name", "description", "max_points"}

# NOT NULL columns a partial update may not clear
_TEMPLATE_REQUIRED = {"title", "assignment_type", "grading_mode"}
_CRITERIA_REQUIRED = {"name", "max_points"}


def _check_changes(changes: Dict, allowed: set, required: set, entity: str) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise BadRequestError("UnknownField", f"Cannot update {entity} field(s): {', '.join(sorted(unknown))}")

    cleared = sorted(field for field in required if field in changes and changes[field] is None)
    if cleared:
        raise BadRequestError("NullField", f"{entity.capitalize()} field(s) cannot be null: {', '.join(cleared)}")


def get_template(db: Session, template_id: int) -> AssignmentTemplate:
    template = db.get(AssignmentTemplate, template_id)
    if not template:
        raise NotFoundError("TemplateNotFound", f"Assignment template {template_id} not found")
    return template


def create_template(
    db: Session,
    course_id: int,
    title: str,
    assignment_type: AssignmentType,
    grading_mode: GradingMode = GradingMode.points,
    max_points: Optional[float] = None,
    weight_percentage: Optional[float] = None,
    description: Optional[str] = None,
    instructions: Optional[str] = None,
    criteria: Optional[Sequence[Dict]] = None,
) -> AssignmentTemplate:
    """
    Create a template with its initial rubric lines.
    The criteria sum is not checked here, see validate_criteria().
    """
    course = db.get(Course, course_id)
    if not course:
        raise NotFoundError("CourseNotFound", f"Course {course_id} not found")

    next_order = db.query(AssignmentTemplate).filter(AssignmentTemplate.course_id == course_id).count()

    template = AssignmentTemplate(
        course_id=course_id,
        title=title,
        description=description,
        assignment_type=assignment_type,
        grading_mode=grading_mode,
        max_points=max_points,
        weight_percentage=weight_percentage,
        instructions=instructions,
        sort_order=next_order,
    )
    for index, item in enumerate(criteria or []):
        template.criteria.append(GradingCriteria(
            name=item["name"],
            description=item.get("description"),
            max_points=item["max_points"],
            sort_order=index,
        ))

    try:
        db.add(template)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(template)
    logger.info("Created template %s for course %s with %s criteria", template.template_id, course_id, len(template.criteria))
    return template


def update_template(db: Session, template_id: int, changes: Dict) -> AssignmentTemplate:
    template = get_template(db, template_id)

    _check_changes(changes, _TEMPLATE_FIELDS, _TEMPLATE_REQUIRED, "template")

    try:
        for field, value in changes.items():
            setattr(template, field, value)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(template)

    published = db.query(PublishedAssignment).filter(PublishedAssignment.template_id == template_id).count()
    if published:
        # Snapshots are independent copies; only future publishes see the edit
        logger.info("Template %s edited after %s publish(es); existing snapshots unchanged", template_id, published)
    return template


# ----------------------------------------------------
# Rubric lines
# ----------------------------------------------------
def _renumber(db: Session, rows: List[GradingCriteria]) -> None:
    # Two passes: park every row on a negative slot first so the
    # (template_id, sort_order) unique constraint never sees a duplicate mid-flush
    for index, row in enumerate(rows):
        row.sort_order = -(index + 1)
    db.flush()
    for index, row in enumerate(rows):
        row.sort_order = index
    db.flush()


def _get_criteria(db: Session, criteria_id: int) -> GradingCriteria:
    criteria = db.get(GradingCriteria, criteria_id)
    if not criteria:
        raise NotFoundError("CriteriaNotFound", f"Grading criteria {criteria_id} not found")
    return criteria


def add_criteria(db: Session, template_id: int, name: str, max_points: float,
                 description: Optional[str] = None) -> GradingCriteria:
    template = get_template(db, template_id)

    criteria = GradingCriteria(
        template_id=template.template_id,
        name=name,
        description=description,
        max_points=max_points,
        sort_order=len(template.criteria),
    )
    try:
        db.add(criteria)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("CriteriaOrderConflict", "Criteria list changed concurrently, retry the request")

    db.refresh(criteria)
    return criteria


def update_criteria(db: Session, criteria_id: int, changes: Dict) -> GradingCriteria:
    criteria = _get_criteria(db, criteria_id)

    _check_changes(changes, _CRITERIA_FIELDS, _CRITERIA_REQUIRED, "criteria")

    try:
        for field, value in changes.items():
            setattr(criteria, field, value)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(criteria)
    return criteria


def delete_criteria(db: Session, criteria_id: int) -> None:
    criteria = _get_criteria(db, criteria_id)
    template = criteria.template

    try:
        template.criteria.remove(criteria)
        db.flush()
        _renumber(db, list(template.criteria))
        db.commit()
    except Exception:
        db.rollback()
        raise


def reorder_criteria(db: Session, template_id: int, ordered_ids: Sequence[int]) -> List[GradingCriteria]:
    """Rewrite sort_order densely as 0..n-1 following `ordered_ids`."""
    template = get_template(db, template_id)
    by_id = {c.criteria_id: c for c in template.criteria}

    if len(ordered_ids) != len(set(ordered_ids)) or set(ordered_ids) != set(by_id):
        raise BadRequestError(
            "CriteriaSetMismatch",
            "Criteria ids must list every criteria of the template exactly once",
        )

    try:
        _renumber(db, [by_id[criteria_id] for criteria_id in ordered_ids])
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.expire(template, ["criteria"])
    return list(template.criteria)


def validate_criteria(db: Session, template_id: int) -> Dict:
    """
    Advisory check that the rubric adds up to the template's maxPoints.
    An empty rubric is always valid.
    """
    template = get_template(db, template_id)

    criteria_sum = sum_max_points([c.max_points for c in template.criteria])
    max_points = to_decimal(template.max_points)
    is_valid = not template.criteria or criteria_sum == max_points

    return {
        "is_valid": is_valid,
        "sum_of_criteria": float(criteria_sum),
        "max_points": float(max_points),
        "delta": float(max_points - criteria_sum),
    }
