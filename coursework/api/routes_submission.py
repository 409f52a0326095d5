from typing import Optional
from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session
from coursework.core.response import format_response, serialize
from coursework.db.database import get_db
from coursework.models.submission import SubmissionStatus
from coursework.schemas.submission_schema import (
    DraftRequest,
    GradeRequest,
    Gradebook,
    PaginationMeta,
    PassFailRequest,
    SubmissionInfo,
    SubmissionStats,
)
from coursework.services import gradebook_service, submission_service
from coursework.services.grade_computer import CriterionAward

router = APIRouter()


# ----------------------------------------------------
# Student actions
# ----------------------------------------------------
@router.post("/assignments/{assignment_id}/draft", status_code=status.HTTP_201_CREATED)
def save_draft(
    assignment_id: int,
    body: DraftRequest,
    x_user_id: int = Header(alias="X-User-Id"),
    db: Session = Depends(get_db),
):
    submission = submission_service.save_draft(
        db, assignment_id, x_user_id, content=body.content, attachments=body.attachments
    )
    return format_response(status.HTTP_201_CREATED, "Draft saved", serialize(SubmissionInfo, submission))


@router.post("/assignments/{assignment_id}/submit")
def submit(
    assignment_id: int,
    x_user_id: int = Header(alias="X-User-Id"),
    db: Session = Depends(get_db),
):
    submission = submission_service.submit_assignment(db, assignment_id, x_user_id)
    message = "Submitted late" if submission.is_late else "Submitted"
    return format_response(status.HTTP_200_OK, message, serialize(SubmissionInfo, submission))


# ----------------------------------------------------
# Reads
# ----------------------------------------------------
@router.get("")
def list_submissions(
    assignment_id: Optional[int] = Query(default=None, alias="assignmentId"),
    student_id: Optional[int] = Query(default=None, alias="studentId"),
    status_filter: Optional[SubmissionStatus] = Query(default=None, alias="status"),
    graded: Optional[bool] = None,
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    items, meta = submission_service.list_submissions(
        db,
        assignment_id=assignment_id,
        student_id=student_id,
        status=status_filter,
        graded=graded,
        page=page,
        limit=limit,
    )
    return format_response(
        status.HTTP_200_OK,
        "OK",
        serialize(SubmissionInfo, items),
        meta=serialize(PaginationMeta, meta),
    )


@router.get("/assignments/{assignment_id}/stats")
def submission_stats(assignment_id: int, db: Session = Depends(get_db)):
    stats = submission_service.get_submission_stats(db, assignment_id)
    return format_response(status.HTTP_200_OK, "OK", serialize(SubmissionStats, stats))


@router.get("/instances/{instance_id}/students/{student_id}/gradebook")
def student_gradebook(instance_id: int, student_id: int, db: Session = Depends(get_db)):
    gradebook = gradebook_service.get_student_gradebook(db, instance_id, student_id)
    return format_response(status.HTTP_200_OK, "OK", serialize(Gradebook, gradebook))


@router.get("/{submission_id}")
def get_submission(submission_id: int, db: Session = Depends(get_db)):
    submission = submission_service.get_submission(db, submission_id)
    return format_response(status.HTTP_200_OK, "OK", serialize(SubmissionInfo, submission))


# ----------------------------------------------------
# Grading
# ----------------------------------------------------
@router.post("/{submission_id}/grade")
def grade(
    submission_id: int,
    body: GradeRequest,
    x_user_id: Optional[int] = Header(default=None, alias="X-User-Id"),
    db: Session = Depends(get_db),
):
    awards = [
        CriterionAward(g.criteria_id, g.points_awarded, g.feedback)
        for g in body.criteria_grades
    ]
    submission = submission_service.grade_submission(
        db, submission_id, awards, overall_feedback=body.overall_feedback, graded_by=x_user_id
    )
    return format_response(status.HTTP_200_OK, "Submission graded", serialize(SubmissionInfo, submission))


@router.post("/{submission_id}/grade-pass-fail")
def grade_pass_fail(
    submission_id: int,
    body: PassFailRequest,
    x_user_id: Optional[int] = Header(default=None, alias="X-User-Id"),
    db: Session = Depends(get_db),
):
    submission = submission_service.grade_pass_fail(
        db, submission_id, body.is_passed, feedback=body.feedback, graded_by=x_user_id
    )
    return format_response(status.HTTP_200_OK, "Submission graded", serialize(SubmissionInfo, submission))
