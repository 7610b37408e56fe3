"""
Database models.
"""
from app.models.profile import Profile, ProfileRole
from app.models.student import Student, StudentGuardian
from app.models.invitation import Invitation, InvitationStatus, InvitationRole

__all__ = [
    "Profile",
    "ProfileRole",
    "Student",
    "StudentGuardian",
    "Invitation",
    "InvitationStatus",
    "InvitationRole",
]
