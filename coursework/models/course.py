from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from coursework.db.database import Base
import enum

class InstanceStatus(enum.Enum):
    draft = "draft"
    scheduled = "scheduled"
    active = "active"
    completed = "completed"
    archived = "archived"

class Course(Base):
    __tablename__ = "COURSES"

    course_id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(20), unique=True, nullable=False)
    title = Column(String(200), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    instances = relationship("CourseInstance", back_populates="course")
    templates = relationship("AssignmentTemplate", back_populates="course", order_by="AssignmentTemplate.sort_order")

class CourseInstance(Base):
    __tablename__ = "COURSE_INSTANCES"

    instance_id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("COURSES.course_id", onupdate="CASCADE", ondelete="RESTRICT"), nullable=False)
    semester = Column(String(50), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    status = Column(Enum(InstanceStatus), default=InstanceStatus.active, nullable=False)
    enrollment_limit = Column(Integer, nullable=True)
    enrollment_open = Column(Boolean, default=True, nullable=False)
    # Seats held by rows in status `enrolled`; only moved by enrollment_service
    enrolled_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    course = relationship("Course", back_populates="instances")
    enrollments = relationship("Enrollment", back_populates="instance")
    published_assignments = relationship("PublishedAssignment", back_populates="instance")
