from sqlalchemy import Column, Integer, String, Float, Text, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from coursework.db.database import Base
from coursework.models.assignment_template import AssignmentType, GradingMode
import enum

class AssignmentStatus(enum.Enum):
    draft = "draft"
    scheduled = "scheduled"
    published = "published"
    closed = "closed"

class PublishedAssignment(Base):
    """
    Snapshot of an AssignmentTemplate activated for one course instance.

    Scalar template fields are copied at publish time and never read back from
    the template, so later template edits leave this row untouched.
    """
    __tablename__ = "PUBLISHED_ASSIGNMENTS"

    assignment_id = Column(Integer, primary_key=True, autoincrement=True)
    instance_id = Column(Integer, ForeignKey("COURSE_INSTANCES.instance_id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)
    template_id = Column(Integer, ForeignKey("ASSIGNMENT_TEMPLATES.template_id", onupdate="CASCADE", ondelete="SET NULL"), nullable=True)

    # --- Snapshot ---
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    assignment_type = Column(Enum(AssignmentType), nullable=False)
    grading_mode = Column(Enum(GradingMode), nullable=False)
    max_points = Column(Float, nullable=True)
    weight_percentage = Column(Float, nullable=True)
    instructions = Column(Text, nullable=True)

    # --- Scheduling ---
    publish_at = Column(DateTime, nullable=True)
    deadline = Column(DateTime, nullable=False)
    late_deadline = Column(DateTime, nullable=True)
    late_penalty_percent = Column(Float, nullable=True)
    auto_publish = Column(Boolean, default=False, nullable=False)
    status = Column(Enum(AssignmentStatus), default=AssignmentStatus.draft, nullable=False)

    published_by = Column(Integer, ForeignKey("USERS.user_id", onupdate="CASCADE", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    instance = relationship("CourseInstance", back_populates="published_assignments")
    template = relationship("AssignmentTemplate")
    criteria = relationship(
        "PublishedGradingCriteria",
        back_populates="assignment",
        order_by="PublishedGradingCriteria.sort_order",
        cascade="all, delete-orphan",
    )
    submissions = relationship("Submission", back_populates="assignment", cascade="all, delete-orphan")

class PublishedGradingCriteria(Base):
    __tablename__ = "PUBLISHED_GRADING_CRITERIA"

    criteria_id = Column(Integer, primary_key=True, autoincrement=True)
    assignment_id = Column(Integer, ForeignKey("PUBLISHED_ASSIGNMENTS.assignment_id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)
    # Informational link back to the row this was copied from
    template_criteria_id = Column(Integer, ForeignKey("GRADING_CRITERIA.criteria_id", onupdate="CASCADE", ondelete="SET NULL"), nullable=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    max_points = Column(Float, nullable=False)
    sort_order = Column(Integer, nullable=False)

    assignment = relationship("PublishedAssignment", back_populates="criteria")
