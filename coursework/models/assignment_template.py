from sqlalchemy import Column, Integer, String, Float, Text, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from coursework.db.database import Base
import enum

class AssignmentType(enum.Enum):
    homework = "homework"
    quiz = "quiz"
    midterm = "midterm"
    final = "final"
    project = "project"
    participation = "participation"

class GradingMode(enum.Enum):
    points = "points"
    pass_fail = "pass_fail"

class AssignmentTemplate(Base):
    __tablename__ = "ASSIGNMENT_TEMPLATES"

    template_id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("COURSES.course_id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    assignment_type = Column(Enum(AssignmentType), nullable=False)
    grading_mode = Column(Enum(GradingMode), default=GradingMode.points, nullable=False)
    max_points = Column(Float, nullable=True)
    weight_percentage = Column(Float, nullable=True)
    instructions = Column(Text, nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    course = relationship("Course", back_populates="templates")
    criteria = relationship(
        "GradingCriteria",
        back_populates="template",
        order_by="GradingCriteria.sort_order",
        cascade="all, delete-orphan",
    )

class GradingCriteria(Base):
    __tablename__ = "GRADING_CRITERIA"

    criteria_id = Column(Integer, primary_key=True, autoincrement=True)
    template_id = Column(Integer, ForeignKey("ASSIGNMENT_TEMPLATES.template_id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    max_points = Column(Float, nullable=False)
    sort_order = Column(Integer, nullable=False)

    __table_args__ = (UniqueConstraint("template_id", "sort_order", name="uq_criteria_template_sort"),)

    template = relationship("AssignmentTemplate", back_populates="criteria")
