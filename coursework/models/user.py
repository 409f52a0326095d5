from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLAEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from coursework.db.database import Base
import enum


class UserRole(enum.Enum):
    student = "student"
    lecturer = "lecturer"
    admin = "admin"

class User(Base):
    """Read-only mirror of the account service; only what the core joins on."""
    __tablename__ = "USERS"

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, nullable=False)
    role = Column(SQLAEnum(UserRole, native_enum=False), default=UserRole.student, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    enrollments = relationship("Enrollment", back_populates="student")
    submissions = relationship("Submission", back_populates="student", foreign_keys="[Submission.student_id]")
    notifications = relationship("Notification", back_populates="user")
