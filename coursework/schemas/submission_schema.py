from typing import Any, List, Optional
from datetime import datetime
from pydantic import Field
from coursework.models.assignment_template import AssignmentType, GradingMode
from coursework.models.published_assignment import AssignmentStatus
from coursework.models.submission import SubmissionStatus
from coursework.schemas.assignment_schema import PublishedCriteriaInfo
from coursework.schemas.base_schema import CamelModel

class DraftRequest(CamelModel):
    content: Optional[str] = None
    attachments: Optional[List[Any]] = None

class CriteriaGradeInput(CamelModel):
    criteria_id: int
    points_awarded: float
    feedback: Optional[str] = None

class GradeRequest(CamelModel):
    criteria_grades: List[CriteriaGradeInput] = []
    overall_feedback: Optional[str] = None

class PassFailRequest(CamelModel):
    is_passed: bool
    feedback: Optional[str] = None

class SubmissionGradeInfo(CamelModel):
    grade_id: int
    criteria_id: int
    points_awarded: float
    feedback: Optional[str] = None

class SubmissionInfo(CamelModel):
    submission_id: int
    assignment_id: int
    student_id: int
    content: Optional[str] = None
    attachments: Optional[List[Any]] = None
    status: SubmissionStatus
    submitted_at: Optional[datetime] = None
    is_late: bool
    graded_at: Optional[datetime] = None
    graded_by: Optional[int] = None
    feedback: Optional[str] = None
    total_points: Optional[float] = None
    late_penalty_applied: Optional[float] = None
    final_points: Optional[float] = None
    is_passed: Optional[bool] = None
    grades: List[SubmissionGradeInfo] = []

class SubmissionStats(CamelModel):
    assignment_id: int
    total: int
    submitted: int
    graded: int
    pending: int
    late: int
    average_score: Optional[float] = None

class FinalGradeInfo(CamelModel):
    final_grade: Optional[float] = None
    final_letter: Optional[str] = None
    total_weight: float
    graded_assignments: int

class GradebookEntry(CamelModel):
    assignment_id: int
    title: str
    assignment_type: AssignmentType
    grading_mode: GradingMode
    max_points: Optional[float] = None
    weight_percentage: Optional[float] = None
    deadline: datetime
    late_deadline: Optional[datetime] = None
    status: AssignmentStatus
    criteria: List[PublishedCriteriaInfo] = []
    submission: Optional[SubmissionInfo] = None

class Gradebook(CamelModel):
    instance_id: int
    student_id: int
    assignments: List[GradebookEntry]
    final_grade: FinalGradeInfo

class PaginationMeta(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(ge=0)
