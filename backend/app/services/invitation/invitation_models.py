"""
Invitation result and view classes.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from app.core.errors import AccessErrorCode, message_for


@dataclass
class InvitationView:
    """Invitation data class, safe to hand to the UI (no token)."""
    id: int
    email: str
    role: str
    student_id: int
    student_name: str
    inviter_id: int
    inviter_name: Optional[str]
    status: str  # pending, accepted, expired, revoked
    created_at: Optional[datetime]
    expires_at: datetime
    accepted_at: Optional[datetime]

    @classmethod
    def from_db_row(cls, row) -> "InvitationView":
        """Create InvitationView from an Invitation ORM row."""
        student = getattr(row, 'student', None)
        inviter = getattr(row, 'inviter', None)
        return cls(
            id=row.id,
            email=row.email,
            role=row.role,
            student_id=row.student_id,
            student_name=student.name if student else '',
            inviter_id=row.inviter_id,
            inviter_name=inviter.display_name if inviter else None,
            status=row.status,
            created_at=row.created_at,
            expires_at=row.expires_at,
            accepted_at=row.accepted_at,
        )


@dataclass
class InvitationResult:
    """Outcome of create / resend / delete."""
    success: bool
    invitation: Optional[InvitationView] = None
    reason: Optional[AccessErrorCode] = None
    message: Optional[str] = None
    email_sent: bool = False

    @classmethod
    def ok(cls, invitation: Optional[InvitationView] = None, message: Optional[str] = None, email_sent: bool = False) -> "InvitationResult":
        return cls(success=True, invitation=invitation, message=message, email_sent=email_sent)

    @classmethod
    def fail(cls, reason: AccessErrorCode, message: Optional[str] = None) -> "InvitationResult":
        return cls(success=False, reason=reason, message=message_for(reason, message))


@dataclass
class InvitationValidation:
    """Outcome of validating a token."""
    valid: bool
    invitation: Optional[InvitationView] = None
    reason: Optional[AccessErrorCode] = None
    message: Optional[str] = None

    @classmethod
    def fail(cls, reason: AccessErrorCode, message: Optional[str] = None) -> "InvitationValidation":
        return cls(valid=False, reason=reason, message=message_for(reason, message))


@dataclass
class AcceptResult:
    """Outcome of accepting an invitation."""
    success: bool
    invitation: Optional[InvitationView] = None
    reason: Optional[AccessErrorCode] = None
    message: Optional[str] = None

    @classmethod
    def fail(cls, reason: AccessErrorCode, message: Optional[str] = None) -> "AcceptResult":
        return cls(success=False, reason=reason, message=message_for(reason, message))
