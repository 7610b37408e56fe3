"""
Error taxonomy shared by the invitation and guardian services.

Services report rejections as typed results carrying one of these codes
plus a human-readable message; routers map the code to an HTTP status.
"""
import enum
from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy.exc import OperationalError, InterfaceError, DisconnectionError


class AccessErrorCode(str, enum.Enum):
    UNAUTHORIZED = "Unauthorized"
    NOT_FOUND = "NotFound"
    EXPIRED = "Expired"
    ALREADY_ACCEPTED = "AlreadyAccepted"
    REVOKED = "Revoked"
    DUPLICATE_INVITATION = "DuplicateInvitation"
    ALREADY_LINKED = "AlreadyLinked"
    EMAIL_MISMATCH = "EmailMismatch"
    ROLE_MISMATCH = "RoleMismatch"
    LAST_GUARDIAN = "LastGuardian"
    PRIMARY_REQUIRED = "PrimaryRequired"
    NOT_PENDING = "NotPending"
    NOT_A_GUARDIAN = "NotAGuardian"
    INVALID_ROLE = "InvalidRole"
    EMAIL_IN_USE = "EmailInUse"
    STORE_UNAVAILABLE = "StoreUnavailable"


DEFAULT_MESSAGES = {
    AccessErrorCode.UNAUTHORIZED: "You do not have access to manage this student",
    AccessErrorCode.NOT_FOUND: "The requested record was not found",
    AccessErrorCode.EXPIRED: "Invitation has expired",
    AccessErrorCode.ALREADY_ACCEPTED: "Invitation has already been accepted",
    AccessErrorCode.REVOKED: "Invitation has been cancelled",
    AccessErrorCode.DUPLICATE_INVITATION: "An invitation is already pending for this email and student",
    AccessErrorCode.ALREADY_LINKED: "This account already has access to this student",
    AccessErrorCode.EMAIL_MISMATCH: "This invitation is for a different email address",
    AccessErrorCode.ROLE_MISMATCH: "This invitation is for a different account type",
    AccessErrorCode.LAST_GUARDIAN: "Cannot remove the only guardian of a student",
    AccessErrorCode.PRIMARY_REQUIRED: "Choose a new primary guardian before removing the current one",
    AccessErrorCode.NOT_PENDING: "Only pending invitations can be resent",
    AccessErrorCode.NOT_A_GUARDIAN: "This account is not a guardian of the student",
    AccessErrorCode.INVALID_ROLE: "Role must be 'guardian' or 'student'",
    AccessErrorCode.EMAIL_IN_USE: "This email address belongs to a different account",
    AccessErrorCode.STORE_UNAVAILABLE: "The service is temporarily unavailable, please try again",
}

HTTP_STATUS = {
    AccessErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    AccessErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    AccessErrorCode.EXPIRED: status.HTTP_410_GONE,
    AccessErrorCode.ALREADY_ACCEPTED: status.HTTP_409_CONFLICT,
    AccessErrorCode.REVOKED: status.HTTP_410_GONE,
    AccessErrorCode.DUPLICATE_INVITATION: status.HTTP_409_CONFLICT,
    AccessErrorCode.ALREADY_LINKED: status.HTTP_409_CONFLICT,
    AccessErrorCode.EMAIL_MISMATCH: status.HTTP_403_FORBIDDEN,
    AccessErrorCode.ROLE_MISMATCH: status.HTTP_403_FORBIDDEN,
    AccessErrorCode.LAST_GUARDIAN: status.HTTP_409_CONFLICT,
    AccessErrorCode.PRIMARY_REQUIRED: status.HTTP_409_CONFLICT,
    AccessErrorCode.NOT_PENDING: status.HTTP_409_CONFLICT,
    AccessErrorCode.NOT_A_GUARDIAN: status.HTTP_404_NOT_FOUND,
    AccessErrorCode.INVALID_ROLE: status.HTTP_400_BAD_REQUEST,
    AccessErrorCode.EMAIL_IN_USE: status.HTTP_409_CONFLICT,
    AccessErrorCode.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}

# Transient infrastructure failures; the only class of error worth retrying
STORE_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


def message_for(code: AccessErrorCode, message: Optional[str] = None) -> str:
    """Return the given message or the stable default for the code."""
    return message or DEFAULT_MESSAGES[code]


def raise_for_reason(reason: AccessErrorCode, message: Optional[str] = None):
    """Raise the HTTPException a router returns for a rejected operation."""
    raise HTTPException(
        status_code=HTTP_STATUS.get(reason, status.HTTP_400_BAD_REQUEST),
        detail={"reason": reason.value, "message": message_for(reason, message)}
    )
