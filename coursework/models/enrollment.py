from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from coursework.db.database import Base
import enum

class EnrollmentStatus(enum.Enum):
    enrolled = "enrolled"
    dropped = "dropped"
    completed = "completed"

class Enrollment(Base):
    __tablename__ = "ENROLLMENTS"

    enrollment_id = Column(Integer, primary_key=True, autoincrement=True)
    instance_id = Column(Integer, ForeignKey("COURSE_INSTANCES.instance_id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("USERS.user_id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)
    status = Column(Enum(EnrollmentStatus), default=EnrollmentStatus.enrolled, nullable=False)
    enrolled_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    # Recomputed estimate, see gradebook_service.calculate_final_grade
    final_grade = Column(Float, nullable=True)
    final_letter = Column(String(3), nullable=True)

    __table_args__ = (UniqueConstraint("instance_id", "student_id", name="uq_enrollment_instance_student"),)

    instance = relationship("CourseInstance", back_populates="enrollments")
    student = relationship("User", back_populates="enrollments")
