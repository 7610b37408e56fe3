"""
Invitation API endpoints.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr
from typing import Optional, List
from datetime import datetime
from app.core.database import get_db
from app.core.auth import get_current_principal
from app.core.errors import AccessErrorCode, raise_for_reason
from app.models.profile import Profile
from app.services.access_policy import can_invite
from app.services.invitation import (
    create_invitation,
    validate_invitation,
    accept_invitation,
    resend_invitation,
    delete_invitation,
    list_by_student,
    list_pending_for_email,
)

router = APIRouter()


class CreateInvitationRequest(BaseModel):
    email: EmailStr
    role: str = "guardian"  # 'guardian' or 'student'


class ValidateInvitationRequest(BaseModel):
    token: str


class AcceptInvitationRequest(BaseModel):
    token: str


class InvitationResponse(BaseModel):
    id: int
    email: str
    role: str
    student_id: int
    student_name: str
    inviter_id: int
    inviter_name: Optional[str]
    status: str
    created_at: Optional[datetime]
    expires_at: datetime
    accepted_at: Optional[datetime]

    class Config:
        from_attributes = True


class InvitationSentResponse(InvitationResponse):
    email_sent: bool
    message: Optional[str] = None


class ValidateInvitationResponse(BaseModel):
    valid: bool
    invitation: Optional[InvitationResponse] = None
    reason: Optional[str] = None
    message: Optional[str] = None


class AcceptInvitationResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    invitation: Optional[InvitationResponse] = None


def _sent_response(result) -> InvitationSentResponse:
    if not result.success:
        raise_for_reason(result.reason, result.message)
    return InvitationSentResponse(
        **InvitationResponse.model_validate(result.invitation).model_dump(),
        email_sent=result.email_sent,
        message=result.message
    )


@router.post(
    "/students/{student_id}/invitations",
    response_model=InvitationSentResponse,
    status_code=status.HTTP_201_CREATED
)
async def invite_to_student(
    student_id: int,
    request: CreateInvitationRequest,
    current_user: Profile = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Invite a guardian or the student themselves by email."""
    result = create_invitation(
        db,
        email=request.email,
        role=request.role,
        student_id=student_id,
        inviter_id=current_user.id
    )
    return _sent_response(result)


@router.get("/students/{student_id}/invitations", response_model=List[InvitationResponse])
async def get_student_invitations(
    student_id: int,
    current_user: Profile = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """List all invitations for a student, newest first."""
    if not can_invite(db, current_user.id, student_id):
        raise_for_reason(AccessErrorCode.UNAUTHORIZED)
    return [InvitationResponse.model_validate(i) for i in list_by_student(db, student_id)]


@router.get("/invitations/pending", response_model=List[InvitationResponse])
async def get_my_pending_invitations(
    current_user: Profile = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """List pending invitations addressed to the current user."""
    return [InvitationResponse.model_validate(i) for i in list_pending_for_email(db, current_user.email)]


@router.post("/invitations/validate", response_model=ValidateInvitationResponse)
async def check_invitation(
    request: ValidateInvitationRequest,
    db: Session = Depends(get_db)
):
    """
    Check an invitation token before sign-in.

    Always 200; an unusable token is reported through valid/reason.
    """
    result = validate_invitation(db, request.token)
    if result.reason == AccessErrorCode.STORE_UNAVAILABLE:
        raise_for_reason(result.reason, result.message)
    return ValidateInvitationResponse(
        valid=result.valid,
        invitation=InvitationResponse.model_validate(result.invitation) if result.invitation else None,
        reason=result.reason.value if result.reason else None,
        message=result.message
    )


@router.post("/invitations/accept", response_model=AcceptInvitationResponse)
async def accept(
    request: AcceptInvitationRequest,
    current_user: Profile = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Accept an invitation as the current user."""
    result = accept_invitation(db, request.token, accepting_user_id=current_user.id)
    if not result.success:
        raise_for_reason(result.reason, result.message)
    return AcceptInvitationResponse(
        success=True,
        message=result.message,
        invitation=InvitationResponse.model_validate(result.invitation) if result.invitation else None
    )


@router.post("/invitations/{invitation_id}/resend", response_model=InvitationSentResponse)
async def resend(
    invitation_id: int,
    current_user: Profile = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Issue a fresh token for a pending invitation and email it again."""
    result = resend_invitation(db, invitation_id, requested_by=current_user.id)
    return _sent_response(result)


@router.delete("/invitations/{invitation_id}")
async def cancel_invitation(
    invitation_id: int,
    current_user: Profile = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Cancel an invitation. Safe to repeat."""
    result = delete_invitation(db, invitation_id, requested_by=current_user.id)
    if not result.success:
        raise_for_reason(result.reason, result.message)
    return {"success": True, "message": result.message}
