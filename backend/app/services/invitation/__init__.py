"""
Invitation service for email-based access delegation.
"""
from app.services.invitation.invitation_service import (
    create_invitation,
    validate_invitation,
    accept_invitation,
    resend_invitation,
    delete_invitation,
    list_by_student,
    list_pending_for_email,
    send_expiry_reminders,
    expire_stale_invitations,
)
from app.services.invitation.invitation_models import (
    InvitationView,
    InvitationResult,
    InvitationValidation,
    AcceptResult,
)

__all__ = [
    "create_invitation",
    "validate_invitation",
    "accept_invitation",
    "resend_invitation",
    "delete_invitation",
    "list_by_student",
    "list_pending_for_email",
    "send_expiry_reminders",
    "expire_stale_invitations",
    "InvitationView",
    "InvitationResult",
    "InvitationValidation",
    "AcceptResult",
]
