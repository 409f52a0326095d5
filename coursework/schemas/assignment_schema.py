from typing import List, Optional
from datetime import datetime
from pydantic import Field, field_validator
from coursework.core.state_machines import AssignmentAction
from coursework.models.assignment_template import AssignmentType, GradingMode
from coursework.models.published_assignment import AssignmentStatus
from coursework.schemas.base_schema import CamelModel
from coursework.utils.timeutils import to_naive_utc

# ----------------------------------------------------
# Templates & rubric lines
# ----------------------------------------------------
class CriteriaCreateRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    max_points: float = Field(ge=0, le=1000)

class CriteriaUpdateRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    max_points: Optional[float] = Field(default=None, ge=0, le=1000)

class CriteriaReorderRequest(CamelModel):
    criteria_ids: List[int]

class CriteriaInfo(CamelModel):
    criteria_id: int
    name: str
    description: Optional[str] = None
    max_points: float
    sort_order: int

class TemplateCreateRequest(CamelModel):
    course_id: int
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    assignment_type: AssignmentType
    grading_mode: GradingMode = GradingMode.points
    max_points: Optional[float] = Field(default=None, ge=0)
    weight_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    instructions: Optional[str] = None
    grading_criteria: Optional[List[CriteriaCreateRequest]] = None

class TemplateUpdateRequest(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    assignment_type: Optional[AssignmentType] = None
    grading_mode: Optional[GradingMode] = None
    max_points: Optional[float] = Field(default=None, ge=0)
    weight_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    instructions: Optional[str] = None

class TemplateInfo(CamelModel):
    template_id: int
    course_id: int
    title: str
    description: Optional[str] = None
    assignment_type: AssignmentType
    grading_mode: GradingMode
    max_points: Optional[float] = None
    weight_percentage: Optional[float] = None
    instructions: Optional[str] = None
    sort_order: int
    criteria: List[CriteriaInfo] = []

class CriteriaValidation(CamelModel):
    is_valid: bool
    sum_of_criteria: float
    max_points: float
    delta: float

# ----------------------------------------------------
# Published assignments
# ----------------------------------------------------
class PublishAssignmentRequest(CamelModel):
    template_id: int
    deadline: datetime
    publish_at: Optional[datetime] = None
    late_deadline: Optional[datetime] = None
    # Range is checked by the service so the error carries its own code
    late_penalty_percent: Optional[float] = None
    auto_publish: bool = False

    @field_validator("deadline", "publish_at", "late_deadline")
    @classmethod
    def _as_naive_utc(cls, value):
        return to_naive_utc(value)

class AssignmentStatusRequest(CamelModel):
    action: AssignmentAction

class PublishedCriteriaInfo(CamelModel):
    criteria_id: int
    template_criteria_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    max_points: float
    sort_order: int

class PublishedAssignmentInfo(CamelModel):
    assignment_id: int
    instance_id: int
    template_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    assignment_type: AssignmentType
    grading_mode: GradingMode
    max_points: Optional[float] = None
    weight_percentage: Optional[float] = None
    instructions: Optional[str] = None
    publish_at: Optional[datetime] = None
    deadline: datetime
    late_deadline: Optional[datetime] = None
    late_penalty_percent: Optional[float] = None
    auto_publish: bool
    status: AssignmentStatus
    criteria: List[PublishedCriteriaInfo] = []
