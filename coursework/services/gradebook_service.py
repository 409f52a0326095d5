from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy import and_
from sqlalchemy.orm import Session
from coursework.core.errors import NotFoundError
from coursework.core.logger import get_logger
from coursework.models.assignment_template import GradingMode
from coursework.models.course import CourseInstance
from coursework.models.enrollment import Enrollment, EnrollmentStatus
from coursework.models.published_assignment import AssignmentStatus, PublishedAssignment
from coursework.models.submission import Submission, SubmissionStatus
from coursework.services.grade_computer import round_points, to_decimal

logger = get_logger("gradebook")

# Assignments a student can see in the gradebook
_VISIBLE_STATUSES = (AssignmentStatus.published, AssignmentStatus.closed)

DEFAULT_MAX_POINTS = 100

# (label, lower bound inclusive); the first band whose bound is met wins
GRADE_BANDS = [
    ("A", 90),
    ("B", 80),
    ("C", 70),
    ("D", 60),
    ("F", 0),
]

LETTER_GRADES = [
    (93, "A"), (90, "A-"),
    (87, "B+"), (83, "B"), (80, "B-"),
    (77, "C+"), (73, "C"), (70, "C-"),
    (67, "D+"), (63, "D"), (60, "D-"),
]


def _get_instance(db: Session, instance_id: int) -> CourseInstance:
    instance = db.get(CourseInstance, instance_id)
    if not instance:
        raise NotFoundError("InstanceNotFound", f"Course instance {instance_id} not found")
    return instance


def percentage_of(final_points, max_points) -> Decimal:
    """finalPoints as a percentage of maxPoints (100 when the assignment has none)."""
    maximum = to_decimal(max_points) if max_points else Decimal(DEFAULT_MAX_POINTS)
    # Multiply before dividing so 90/100 is exactly 90, not 89.999...
    return to_decimal(final_points) * 100 / maximum


def grade_band(percentage) -> str:
    for label, lower in GRADE_BANDS:
        if percentage >= lower:
            return label
    return GRADE_BANDS[-1][0]


def letter_grade(score) -> str:
    for lower, letter in LETTER_GRADES:
        if score >= lower:
            return letter
    return "F"


# ----------------------------------------------------
# Gradebook
# ----------------------------------------------------
def get_student_gradebook(db: Session, instance_id: int, student_id: int) -> Dict:
    """Every visible assignment of the instance with the student's submission or None, by deadline."""
    _get_instance(db, instance_id)

    rows = db.query(
        PublishedAssignment,
        Submission,
    ).outerjoin(
        Submission,
        and_(
            Submission.assignment_id == PublishedAssignment.assignment_id,
            Submission.student_id == student_id,
        ),
    ).filter(
        PublishedAssignment.instance_id == instance_id,
        PublishedAssignment.status.in_(_VISIBLE_STATUSES),
    ).order_by(
        PublishedAssignment.deadline,
        PublishedAssignment.assignment_id,
    ).all()

    entries = [
        {
            "assignment_id": assignment.assignment_id,
            "title": assignment.title,
            "assignment_type": assignment.assignment_type,
            "grading_mode": assignment.grading_mode,
            "max_points": assignment.max_points,
            "weight_percentage": assignment.weight_percentage,
            "deadline": assignment.deadline,
            "late_deadline": assignment.late_deadline,
            "status": assignment.status,
            "criteria": assignment.criteria,
            "submission": submission,
        }
        for assignment, submission in rows
    ]

    return {
        "instance_id": instance_id,
        "student_id": student_id,
        "assignments": entries,
        "final_grade": compute_final_grade(db, instance_id, student_id),
    }


# ----------------------------------------------------
# Final grade
# ----------------------------------------------------
def compute_final_grade(db: Session, instance_id: int, student_id: int) -> Dict:
    """
    Sum of percentage x weight / 100 over graded, weighted, points-mode work.

    Deliberately an estimate: it is not normalised when the graded weight is
    below 100 and it reads whatever is graded at call time.
    """
    graded = db.query(Submission, PublishedAssignment).join(
        PublishedAssignment, Submission.assignment_id == PublishedAssignment.assignment_id
    ).filter(
        PublishedAssignment.instance_id == instance_id,
        PublishedAssignment.grading_mode == GradingMode.points,
        Submission.student_id == student_id,
        Submission.status == SubmissionStatus.graded,
        Submission.final_points.isnot(None),
    ).all()

    weighted_total = Decimal("0")
    total_weight = Decimal("0")
    counted = 0
    for submission, assignment in graded:
        if not assignment.weight_percentage:
            continue
        weight = to_decimal(assignment.weight_percentage)
        weighted_total += percentage_of(submission.final_points, assignment.max_points) * weight / 100
        total_weight += weight
        counted += 1

    if counted == 0:
        return {"final_grade": None, "final_letter": None, "total_weight": 0.0, "graded_assignments": 0}

    final_grade = float(round_points(weighted_total))
    return {
        "final_grade": final_grade,
        "final_letter": letter_grade(final_grade),
        "total_weight": float(total_weight),
        "graded_assignments": counted,
    }


def calculate_final_grade(db: Session, instance_id: int, student_id: int) -> Dict:
    """Recompute and store the estimate on the student's enrollment."""
    enrollment = db.query(Enrollment).filter(
        Enrollment.instance_id == instance_id,
        Enrollment.student_id == student_id,
    ).first()
    if not enrollment:
        raise NotFoundError("EnrollmentNotFound", f"Student {student_id} has no enrollment in instance {instance_id}")

    result = compute_final_grade(db, instance_id, student_id)
    enrollment.final_grade = result["final_grade"]
    enrollment.final_letter = result["final_letter"]
    db.commit()
    return result


def calculate_all_final_grades(db: Session, instance_id: int) -> Dict:
    _get_instance(db, instance_id)

    student_ids = [
        row.student_id
        for row in db.query(Enrollment.student_id).filter(
            Enrollment.instance_id == instance_id,
            Enrollment.status == EnrollmentStatus.enrolled,
        ).all()
    ]
    results = []
    for student_id in student_ids:
        result = calculate_final_grade(db, instance_id, student_id)
        results.append({"student_id": student_id, **result})

    logger.info("Recomputed final grades for %s student(s) in instance %s", len(results), instance_id)
    return {"processed": len(results), "results": results}


# ----------------------------------------------------
# Analytics
# ----------------------------------------------------
def get_instance_analytics(db: Session, instance_id: int, assignment_id: Optional[int] = None) -> Dict:
    _get_instance(db, instance_id)

    query = db.query(
        Submission.final_points,
        PublishedAssignment.max_points,
    ).join(
        PublishedAssignment, Submission.assignment_id == PublishedAssignment.assignment_id
    ).filter(
        PublishedAssignment.instance_id == instance_id,
        Submission.status == SubmissionStatus.graded,
        Submission.final_points.isnot(None),
    )

    if assignment_id is not None:
        assignment = db.get(PublishedAssignment, assignment_id)
        if not assignment or assignment.instance_id != instance_id:
            raise NotFoundError("AssignmentNotFound", f"Assignment {assignment_id} not found in instance {instance_id}")
        query = query.filter(PublishedAssignment.assignment_id == assignment_id)

    percentages: List[Decimal] = [percentage_of(final, maximum) for final, maximum in query.all()]

    distribution = {label: 0 for label, _ in GRADE_BANDS}
    for percentage in percentages:
        distribution[grade_band(percentage)] += 1

    average = sum(percentages, Decimal("0")) / len(percentages) if percentages else Decimal("0")

    return {
        "grade_distribution": distribution,
        "average_grade": float(round_points(average)),
        "total_submissions": len(percentages),
    }
