from typing import List, Optional
from datetime import datetime
from pydantic import Field
from coursework.core.config import settings
from coursework.models.enrollment import EnrollmentStatus
from coursework.schemas.base_schema import CamelModel
from coursework.schemas.submission_schema import FinalGradeInfo

class EnrollRequest(CamelModel):
    # Defaults to the acting user when omitted
    student_id: Optional[int] = None

class BulkEnrollRequest(CamelModel):
    student_ids: List[int] = Field(min_length=1, max_length=settings.MAX_BULK_ENROLL)

class EnrollmentStatusRequest(CamelModel):
    status: EnrollmentStatus

class EnrollmentOpenRequest(CamelModel):
    is_open: bool

class EnrollmentInfo(CamelModel):
    enrollment_id: int
    instance_id: int
    student_id: int
    status: EnrollmentStatus
    enrolled_at: datetime
    completed_at: Optional[datetime] = None
    final_grade: Optional[float] = None
    final_letter: Optional[str] = None

class BulkEnrollFailure(CamelModel):
    student_id: int
    reason: str

class BulkEnrollResult(CamelModel):
    successful: List[int]
    failed: List[BulkEnrollFailure]

class EnrollmentStats(CamelModel):
    instance_id: int
    total_enrolled: int
    total_dropped: int
    total_completed: int
    enrollment_open: bool
    enrollment_limit: Optional[int] = None
    available_spots: Optional[int] = None

class InstanceEnrollmentState(CamelModel):
    instance_id: int
    enrollment_open: bool
    enrollment_limit: Optional[int] = None
    enrolled_count: int

class StudentFinalGrade(FinalGradeInfo):
    student_id: int

class FinalGradeBatch(CamelModel):
    processed: int
    results: List[StudentFinalGrade]
