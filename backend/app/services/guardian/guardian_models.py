"""
Guardian relationship result and view classes.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional
from app.core.errors import AccessErrorCode, message_for


@dataclass
class GuardianView:
    """Access edge joined with the guardian's profile."""
    id: int
    student_id: int
    guardian_id: int
    email: str
    name: Optional[str]
    is_primary: bool
    created_at: Optional[datetime]

    @classmethod
    def from_db_row(cls, edge, profile) -> "GuardianView":
        """Create GuardianView from a StudentGuardian row and its Profile."""
        return cls(
            id=edge.id,
            student_id=edge.student_id,
            guardian_id=edge.guardian_id,
            email=profile.email if profile else '',
            name=profile.name if profile else None,
            is_primary=bool(edge.is_primary),
            created_at=edge.created_at,
        )


@dataclass
class StudentView:
    """Student as seen by one of its guardians."""
    id: int
    student_id: str
    name: str
    birth_date: Optional[date]
    graduation_date: Optional[date]
    school_id: Optional[int]
    is_primary: bool

    @classmethod
    def from_db_row(cls, student, is_primary: bool = False) -> "StudentView":
        return cls(
            id=student.id,
            student_id=student.student_id,
            name=student.name,
            birth_date=student.birth_date,
            graduation_date=student.graduation_date,
            school_id=student.school_id,
            is_primary=bool(is_primary),
        )


@dataclass
class GuardianResult:
    """
    Outcome of an access-graph mutation.

    On success `guardians` holds the student's guardian list as committed,
    so callers refresh from the return value instead of re-querying.
    """
    success: bool
    guardian: Optional[GuardianView] = None
    guardians: List[GuardianView] = field(default_factory=list)
    reason: Optional[AccessErrorCode] = None
    message: Optional[str] = None

    @classmethod
    def fail(cls, reason: AccessErrorCode, message: Optional[str] = None) -> "GuardianResult":
        return cls(success=False, reason=reason, message=message_for(reason, message))


@dataclass
class StudentResult:
    """Outcome of registering a student."""
    success: bool
    student: Optional[StudentView] = None
    reason: Optional[AccessErrorCode] = None
    message: Optional[str] = None

    @classmethod
    def fail(cls, reason: AccessErrorCode, message: Optional[str] = None) -> "StudentResult":
        return cls(success=False, reason=reason, message=message_for(reason, message))
