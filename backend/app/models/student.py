"""
Student and StudentGuardian models.

A student is never owned by a single guardian column; access is expressed
only through student_guardians rows.
"""
from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String(32), unique=True, index=True, nullable=False)  # Human-readable identifier
    name = Column(String(255), nullable=False)
    birth_date = Column(Date, nullable=True)
    graduation_date = Column(Date, nullable=True)
    school_id = Column(Integer, nullable=True, index=True)
    profile_id = Column(Integer, ForeignKey('profiles.id'), nullable=True, unique=True)  # Student's own account, set by a student invitation
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    guardians = relationship("StudentGuardian", back_populates="student", cascade="all, delete-orphan")
    invitations = relationship("Invitation", back_populates="student", cascade="all, delete-orphan")
    account = relationship("Profile", foreign_keys=[profile_id])


class StudentGuardian(Base):
    __tablename__ = "student_guardians"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey('students.id'), nullable=False, index=True)
    guardian_id = Column(Integer, ForeignKey('profiles.id'), nullable=False, index=True)
    is_primary = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    student = relationship("Student", back_populates="guardians")
    guardian = relationship("Profile", foreign_keys=[guardian_id])

    __table_args__ = (
        UniqueConstraint('student_id', 'guardian_id', name='uq_student_guardians_student_guardian'),
    )
