"""
Invitation model for email-based access delegation.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from app.core.database import Base


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    REVOKED = "revoked"


class InvitationRole(str, enum.Enum):
    GUARDIAN = "guardian"
    STUDENT = "student"


def make_pending_key(student_id: int, email: str) -> str:
    """Value of Invitation.pending_key while an invitation is pending."""
    return f"{student_id}:{email}"


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)  # Stored lower-cased
    role = Column(String(20), nullable=False)  # 'guardian' or 'student'
    student_id = Column(Integer, ForeignKey('students.id'), nullable=False, index=True)
    inviter_id = Column(Integer, ForeignKey('profiles.id'), nullable=False)
    token = Column(String(255), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=InvitationStatus.PENDING.value, index=True)
    # "<student_id>:<email>" while pending, NULL otherwise; unique so only one pending invitation per pair
    pending_key = Column(String(300), unique=True, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    accepted_by = Column(Integer, ForeignKey('profiles.id'), nullable=True)
    reminded_at = Column(DateTime(timezone=True), nullable=True)  # Expiry reminder sent; cleared on resend
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    student = relationship("Student", back_populates="invitations")
    inviter = relationship("Profile", foreign_keys=[inviter_id])

    @property
    def is_pending(self) -> bool:
        return self.status == InvitationStatus.PENDING.value
