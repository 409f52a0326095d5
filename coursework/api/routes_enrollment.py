from typing import Optional
from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session
from coursework.core.errors import BadRequestError
from coursework.core.response import format_response, serialize
from coursework.db.database import get_db
from coursework.models.enrollment import EnrollmentStatus
from coursework.schemas.enrollment_schema import (
    BulkEnrollRequest,
    BulkEnrollResult,
    EnrollmentInfo,
    EnrollmentOpenRequest,
    EnrollmentStats,
    EnrollmentStatusRequest,
    EnrollRequest,
    FinalGradeBatch,
    InstanceEnrollmentState,
)
from coursework.services import enrollment_service, gradebook_service

router = APIRouter()


@router.post("/instances/{instance_id}/enroll", status_code=status.HTTP_201_CREATED)
def enroll(
    instance_id: int,
    body: Optional[EnrollRequest] = None,
    x_user_id: Optional[int] = Header(default=None, alias="X-User-Id"),
    db: Session = Depends(get_db),
):
    student_id = body.student_id if body and body.student_id is not None else x_user_id
    if student_id is None:
        raise BadRequestError("StudentRequired", "Provide studentId in the body or an X-User-Id header")

    enrollment = enrollment_service.enroll_student(db, instance_id, student_id)
    return format_response(status.HTTP_201_CREATED, "Enrolled", serialize(EnrollmentInfo, enrollment))


@router.post("/instances/{instance_id}/bulk-enroll")
def bulk_enroll(instance_id: int, body: BulkEnrollRequest, db: Session = Depends(get_db)):
    result = enrollment_service.bulk_enroll(db, instance_id, body.student_ids)
    message = f"{len(result['successful'])} enrolled, {len(result['failed'])} failed"
    return format_response(status.HTTP_200_OK, message, serialize(BulkEnrollResult, result))


@router.delete("/instances/{instance_id}/students/{student_id}")
def drop(instance_id: int, student_id: int, db: Session = Depends(get_db)):
    enrollment = enrollment_service.drop_student(db, instance_id, student_id)
    return format_response(status.HTTP_200_OK, "Dropped", serialize(EnrollmentInfo, enrollment))


@router.patch("/{enrollment_id}/status")
def update_status(enrollment_id: int, body: EnrollmentStatusRequest, db: Session = Depends(get_db)):
    enrollment = enrollment_service.update_enrollment_status(db, enrollment_id, body.status)
    return format_response(
        status.HTTP_200_OK,
        f"Enrollment is now {enrollment.status.value}",
        serialize(EnrollmentInfo, enrollment),
    )


@router.get("/instances/{instance_id}")
def roster(
    instance_id: int,
    status_filter: Optional[EnrollmentStatus] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    enrollments = enrollment_service.get_instance_enrollments(db, instance_id, status_filter)
    return format_response(status.HTTP_200_OK, "OK", serialize(EnrollmentInfo, enrollments))


@router.get("/instances/{instance_id}/stats")
def stats(instance_id: int, db: Session = Depends(get_db)):
    result = enrollment_service.get_enrollment_stats(db, instance_id)
    return format_response(status.HTTP_200_OK, "OK", serialize(EnrollmentStats, result))


@router.patch("/instances/{instance_id}/open")
def set_open(instance_id: int, body: EnrollmentOpenRequest, db: Session = Depends(get_db)):
    instance = enrollment_service.set_enrollment_open(db, instance_id, body.is_open)
    message = "Enrollment opened" if instance.enrollment_open else "Enrollment closed"
    return format_response(status.HTTP_200_OK, message, serialize(InstanceEnrollmentState, instance))


@router.post("/instances/{instance_id}/final-grades")
def final_grades(instance_id: int, db: Session = Depends(get_db)):
    result = gradebook_service.calculate_all_final_grades(db, instance_id)
    return format_response(status.HTTP_200_OK, "Final grades recomputed", serialize(FinalGradeBatch, result))


@router.get("/students/{student_id}")
def student_enrollments(
    student_id: int,
    status_filter: Optional[EnrollmentStatus] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    enrollments = enrollment_service.get_student_enrollments(db, student_id, status_filter)
    return format_response(status.HTTP_200_OK, "OK", serialize(EnrollmentInfo, enrollments))
