from sqlalchemy import Column, Integer, Float, Text, Boolean, DateTime, Enum, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from coursework.db.database import Base
import enum

class SubmissionStatus(enum.Enum):
    draft = "draft"
    submitted = "submitted"
    late = "late"
    graded = "graded"

class Submission(Base):
    __tablename__ = "SUBMISSIONS"

    submission_id = Column(Integer, primary_key=True, autoincrement=True)
    assignment_id = Column(Integer, ForeignKey("PUBLISHED_ASSIGNMENTS.assignment_id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("USERS.user_id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)

    content = Column(Text, nullable=True)
    # Opaque references handed over by the upload service
    attachments = Column(JSON, nullable=True)
    status = Column(Enum(SubmissionStatus), default=SubmissionStatus.draft, nullable=False)
    submitted_at = Column(DateTime, nullable=True)
    is_late = Column(Boolean, default=False, nullable=False)

    # --- Grading ---
    graded_at = Column(DateTime, nullable=True)
    graded_by = Column(Integer, ForeignKey("USERS.user_id", onupdate="CASCADE", ondelete="SET NULL"), nullable=True)
    feedback = Column(Text, nullable=True)
    total_points = Column(Float, nullable=True)
    late_penalty_applied = Column(Float, nullable=True)
    final_points = Column(Float, nullable=True)
    is_passed = Column(Boolean, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("assignment_id", "student_id", name="uq_submission_assignment_student"),)

    assignment = relationship("PublishedAssignment", back_populates="submissions")
    student = relationship("User", back_populates="submissions", foreign_keys=[student_id])
    grader = relationship("User", foreign_keys=[graded_by])
    grades = relationship("SubmissionGrade", back_populates="submission", cascade="all, delete-orphan")

class SubmissionGrade(Base):
    __tablename__ = "SUBMISSION_GRADES"

    grade_id = Column(Integer, primary_key=True, autoincrement=True)
    submission_id = Column(Integer, ForeignKey("SUBMISSIONS.submission_id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)
    criteria_id = Column(Integer, ForeignKey("PUBLISHED_GRADING_CRITERIA.criteria_id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)
    points_awarded = Column(Float, nullable=False)
    feedback = Column(Text, nullable=True)

    __table_args__ = (UniqueConstraint("submission_id", "criteria_id", name="uq_grade_submission_criteria"),)

    submission = relationship("Submission", back_populates="grades")
    criteria = relationship("PublishedGradingCriteria")
