"""
Profile model for authenticated principals (guardians and students).
"""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
import enum
from app.core.database import Base


class ProfileRole(str, enum.Enum):
    GUARDIAN = "guardian"
    STUDENT = "student"


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)  # Stored lower-cased
    role = Column(String(20), nullable=False, default=ProfileRole.GUARDIAN.value)  # 'guardian' or 'student', never changes
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def is_guardian(self) -> bool:
        """Check if profile is a guardian account."""
        return self.role == ProfileRole.GUARDIAN.value

    @property
    def display_name(self) -> str:
        return self.name or self.email
