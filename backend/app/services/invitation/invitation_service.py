"""
Invitation service: the token-based invitation state machine.

pending -> accepted | expired | revoked; all three are terminal. Expiry is
evaluated lazily when a token is validated or accepted (and by the optional
sweeper), never on a timer per row.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from app.core.config import INVITATION_REMINDER_HOURS
from app.core.errors import AccessErrorCode, STORE_ERRORS
from app.core.retry import retry_read
from app.models.invitation import Invitation, InvitationStatus, InvitationRole, make_pending_key
from app.models.profile import Profile
from app.models.student import Student, StudentGuardian
from app.services.access_policy import normalize_email, can_invite, can_manage_guardians, can_accept_as
from app.services.email import (
    send_invitation_email,
    send_invitation_reminder_email,
    send_invitation_accepted_email,
)
from app.services.guardian.guardian_service import lock_student, link_guardian
from app.services.invitation import token_codec
from app.services.invitation.invitation_models import (
    InvitationView,
    InvitationResult,
    InvitationValidation,
    AcceptResult,
)

logger = logging.getLogger(__name__)

VALID_ROLES = (InvitationRole.GUARDIAN.value, InvitationRole.STUDENT.value)

# Terminal status -> reason reported when a token is presented again
_STATUS_REASONS = {
    InvitationStatus.ACCEPTED.value: AccessErrorCode.ALREADY_ACCEPTED,
    InvitationStatus.EXPIRED.value: AccessErrorCode.EXPIRED,
    InvitationStatus.REVOKED.value: AccessErrorCode.REVOKED,
}


def _get_by_token(db: Session, token: str) -> Optional[Invitation]:
    if not token:
        return None
    return db.query(Invitation).options(
        joinedload(Invitation.student),
        joinedload(Invitation.inviter)
    ).filter(Invitation.token == token).first()


def _expire_pending(db: Session, invitation_id: int) -> int:
    """Move one invitation pending -> expired. No-op if it already left pending."""
    updated = db.query(Invitation).filter(
        Invitation.id == invitation_id,
        Invitation.status == InvitationStatus.PENDING.value
    ).update(
        {Invitation.status: InvitationStatus.EXPIRED.value, Invitation.pending_key: None},
        synchronize_session=False
    )
    if updated:
        logger.info(f"Invitation {invitation_id} expired")
    return updated


def _status_reason(invitation: Invitation) -> AccessErrorCode:
    return _STATUS_REASONS.get(invitation.status, AccessErrorCode.NOT_FOUND)


def _is_already_linked(db: Session, student: Student, role: str, email: str) -> bool:
    """True if the invitee already holds the access the invitation would grant."""
    if role == InvitationRole.STUDENT.value:
        # One account per student
        return student.profile_id is not None

    return db.query(StudentGuardian.id).join(
        Profile, Profile.id == StudentGuardian.guardian_id
    ).filter(
        StudentGuardian.student_id == student.id,
        Profile.email == email
    ).first() is not None


def _claim_invitation(db: Session, invitation_id: int, token: str, accepting_user_id: int, now: datetime) -> bool:
    """
    Atomically move a pending invitation to accepted.

    The UPDATE only matches while the row is still pending, still carries
    this token and has not expired, so of two concurrent claims exactly one
    affects a row.
    """
    updated = db.query(Invitation).filter(
        Invitation.id == invitation_id,
        Invitation.status == InvitationStatus.PENDING.value,
        Invitation.token == token,
        Invitation.expires_at > now
    ).update(
        {
            Invitation.status: InvitationStatus.ACCEPTED.value,
            Invitation.accepted_at: now,
            Invitation.accepted_by: accepting_user_id,
            Invitation.pending_key: None,
        },
        synchronize_session=False
    )
    return updated == 1


def _lost_claim_result(db: Session, token: str, now: datetime) -> AcceptResult:
    """Report the state that beat us to an invitation."""
    db.expire_all()
    invitation = _get_by_token(db, token)
    if not invitation:
        # Token rotated by a resend
        return AcceptResult.fail(AccessErrorCode.NOT_FOUND, "Invitation not found")
    if invitation.is_pending and token_codec.is_expired(invitation.expires_at, now):
        _expire_pending(db, invitation.id)
        db.commit()
        return AcceptResult.fail(AccessErrorCode.EXPIRED)
    if invitation.is_pending:
        return AcceptResult.fail(AccessErrorCode.NOT_FOUND, "Invitation not found")
    return AcceptResult.fail(_status_reason(invitation))


def create_invitation(db: Session, email: str, role: str, student_id: int, inviter_id: int) -> InvitationResult:
    """
    Create a pending invitation and email the invitee.

    Args:
        db: Database session
        email: Invitee email (normalized before storage)
        role: 'guardian' or 'student'
        student_id: Student the invitation grants access to
        inviter_id: Profile ID of the inviting guardian

    Returns:
        InvitationResult; email_sent reports delivery, which never rolls back
        the invitation
    """
    email = normalize_email(email)
    if role not in VALID_ROLES:
        return InvitationResult.fail(AccessErrorCode.INVALID_ROLE)

    now = token_codec.utcnow()
    try:
        student = lock_student(db, student_id)
        if not student:
            db.rollback()
            return InvitationResult.fail(AccessErrorCode.NOT_FOUND, "Student not found")

        if not can_invite(db, inviter_id, student_id):
            db.rollback()
            return InvitationResult.fail(AccessErrorCode.UNAUTHORIZED)

        pending_key = make_pending_key(student_id, email)
        existing = db.query(Invitation).filter(Invitation.pending_key == pending_key).first()
        if existing:
            if not token_codec.is_expired(existing.expires_at, now):
                db.rollback()
                return InvitationResult.fail(AccessErrorCode.DUPLICATE_INVITATION)
            _expire_pending(db, existing.id)

        if _is_already_linked(db, student, role, email):
            db.rollback()
            return InvitationResult.fail(
                AccessErrorCode.ALREADY_LINKED,
                "This student already has an account linked" if role == InvitationRole.STUDENT.value
                else "This guardian is already associated with this student"
            )

        token, expires_at = token_codec.generate(now)
        invitation = Invitation(
            email=email,
            role=role,
            student_id=student_id,
            inviter_id=inviter_id,
            token=token,
            status=InvitationStatus.PENDING.value,
            pending_key=pending_key,
            expires_at=expires_at,
            created_at=now
        )
        db.add(invitation)
        db.commit()
    except IntegrityError:
        # Concurrent create won the pending_key
        db.rollback()
        return InvitationResult.fail(AccessErrorCode.DUPLICATE_INVITATION)
    except STORE_ERRORS as e:
        db.rollback()
        logger.error(f"Failed to create invitation for student {student_id}: {e}", exc_info=True)
        return InvitationResult.fail(AccessErrorCode.STORE_UNAVAILABLE)

    db.refresh(invitation)
    view = InvitationView.from_db_row(invitation)
    logger.info(
        f"Invitation {invitation.id} ({role}) created for student {student_id} by {inviter_id}, "
        f"{token_codec.mask_token(token)}"
    )

    email_sent = send_invitation_email(
        email=email,
        token=token,
        student_name=view.student_name,
        inviter_name=view.inviter_name or "A guardian",
        role=role
    )
    if not email_sent:
        logger.warning(f"Invitation {invitation.id} created but email delivery failed")

    return InvitationResult.ok(
        invitation=view,
        message=f"Invitation sent to {email}" if email_sent else "Invitation created but the email could not be sent",
        email_sent=email_sent
    )


def validate_invitation(db: Session, token: str) -> InvitationValidation:
    """
    Check whether a token names an acceptable invitation.

    A pending invitation past its expiry is marked expired here.
    """
    try:
        invitation = _get_by_token(db, token)
        if not invitation:
            return InvitationValidation.fail(AccessErrorCode.NOT_FOUND, "Invitation not found")

        if not invitation.is_pending:
            return InvitationValidation.fail(_status_reason(invitation))

        if token_codec.is_expired(invitation.expires_at):
            _expire_pending(db, invitation.id)
            db.commit()
            return InvitationValidation.fail(AccessErrorCode.EXPIRED)
    except STORE_ERRORS as e:
        db.rollback()
        logger.error(f"Failed to validate invitation {token_codec.mask_token(token)}: {e}", exc_info=True)
        return InvitationValidation.fail(AccessErrorCode.STORE_UNAVAILABLE)

    return InvitationValidation(valid=True, invitation=InvitationView.from_db_row(invitation))


def accept_invitation(db: Session, token: str, accepting_user_id: int) -> AcceptResult:
    """
    Accept an invitation on behalf of the signed-in user.

    Exactly one caller can win a given invitation. The access edge (or the
    student account link) is written in the same transaction as the claim.
    """
    now = token_codec.utcnow()
    try:
        invitation = _get_by_token(db, token)
        if not invitation:
            return AcceptResult.fail(AccessErrorCode.NOT_FOUND, "Invitation not found")

        if not invitation.is_pending:
            return AcceptResult.fail(_status_reason(invitation))

        if token_codec.is_expired(invitation.expires_at, now):
            _expire_pending(db, invitation.id)
            db.commit()
            return AcceptResult.fail(AccessErrorCode.EXPIRED)

        profile = db.query(Profile).filter(Profile.id == accepting_user_id).first()
        if not profile:
            return AcceptResult.fail(AccessErrorCode.NOT_FOUND, "Account not found")

        if not can_accept_as(profile.email, invitation):
            return AcceptResult.fail(AccessErrorCode.EMAIL_MISMATCH)

        if profile.role != invitation.role:
            return AcceptResult.fail(
                AccessErrorCode.ROLE_MISMATCH,
                f"This invitation is for a {invitation.role} account"
            )

        student = lock_student(db, invitation.student_id)
        if not student:
            db.rollback()
            return AcceptResult.fail(AccessErrorCode.NOT_FOUND, "Student not found")

        if _is_already_linked(db, student, invitation.role, profile.email):
            db.rollback()
            return AcceptResult.fail(AccessErrorCode.ALREADY_LINKED)

        invitation_id = invitation.id
        if not _claim_invitation(db, invitation_id, token, profile.id, now):
            db.rollback()
            logger.info(f"Invitation {invitation_id} claim lost by user {profile.id}")
            return _lost_claim_result(db, token, now)

        if invitation.role == InvitationRole.GUARDIAN.value:
            link_guardian(db, student, profile.id)
        else:
            student.profile_id = profile.id
        db.commit()
    except IntegrityError:
        # Edge or student account link created concurrently
        db.rollback()
        return AcceptResult.fail(AccessErrorCode.ALREADY_LINKED)
    except STORE_ERRORS as e:
        db.rollback()
        logger.error(f"Failed to accept invitation {token_codec.mask_token(token)}: {e}", exc_info=True)
        return AcceptResult.fail(AccessErrorCode.STORE_UNAVAILABLE)

    db.refresh(invitation)
    view = InvitationView.from_db_row(invitation)
    logger.info(f"Invitation {invitation_id} accepted by user {profile.id} for student {view.student_id}")

    if invitation.inviter:
        send_invitation_accepted_email(
            email=invitation.inviter.email,
            invitee_name=profile.display_name,
            student_name=view.student_name,
            role=view.role
        )

    return AcceptResult(
        success=True,
        invitation=view,
        message=f"You now have access to {view.student_name}"
    )


def resend_invitation(db: Session, invitation_id: int, requested_by: int) -> InvitationResult:
    """Rotate a pending invitation's token and expiry and email it again."""
    now = token_codec.utcnow()
    try:
        invitation = db.query(Invitation).filter(Invitation.id == invitation_id).with_for_update().first()
        if not invitation:
            db.rollback()
            return InvitationResult.fail(AccessErrorCode.NOT_FOUND, "Invitation not found")

        if not can_invite(db, requested_by, invitation.student_id):
            db.rollback()
            return InvitationResult.fail(AccessErrorCode.UNAUTHORIZED)

        if not invitation.is_pending:
            db.rollback()
            return InvitationResult.fail(AccessErrorCode.NOT_PENDING)

        if token_codec.is_expired(invitation.expires_at, now):
            _expire_pending(db, invitation.id)
            db.commit()
            return InvitationResult.fail(
                AccessErrorCode.NOT_PENDING,
                "Invitation has expired, send a new invitation instead"
            )

        token, expires_at = token_codec.generate(now)
        invitation.token = token
        invitation.expires_at = expires_at
        invitation.reminded_at = None
        db.commit()
    except STORE_ERRORS as e:
        db.rollback()
        logger.error(f"Failed to resend invitation {invitation_id}: {e}", exc_info=True)
        return InvitationResult.fail(AccessErrorCode.STORE_UNAVAILABLE)

    db.refresh(invitation)
    view = InvitationView.from_db_row(invitation)
    logger.info(f"Invitation {invitation_id} resent by {requested_by}, now {token_codec.mask_token(token)}")

    email_sent = send_invitation_email(
        email=invitation.email,
        token=token,
        student_name=view.student_name,
        inviter_name=view.inviter_name or "A guardian",
        role=invitation.role
    )
    return InvitationResult.ok(
        invitation=view,
        message="Invitation resent" if email_sent else "Invitation renewed but the email could not be sent",
        email_sent=email_sent
    )


def delete_invitation(db: Session, invitation_id: int, requested_by: int) -> InvitationResult:
    """
    Revoke an invitation.

    Idempotent: deleting a missing or already-terminal invitation succeeds
    without changing anything. A pending invitation past its expiry is
    recorded as expired rather than revoked.
    """
    try:
        invitation = db.query(Invitation).filter(Invitation.id == invitation_id).first()
        if not invitation:
            return InvitationResult.ok(message="Invitation already removed")

        if not can_manage_guardians(db, requested_by, invitation.student_id):
            return InvitationResult.fail(AccessErrorCode.UNAUTHORIZED)

        revoked = 0
        if invitation.is_pending and token_codec.is_expired(invitation.expires_at, token_codec.utcnow()):
            _expire_pending(db, invitation_id)
        else:
            revoked = db.query(Invitation).filter(
                Invitation.id == invitation_id,
                Invitation.status == InvitationStatus.PENDING.value
            ).update(
                {Invitation.status: InvitationStatus.REVOKED.value, Invitation.pending_key: None},
                synchronize_session=False
            )
        db.commit()
    except STORE_ERRORS as e:
        db.rollback()
        logger.error(f"Failed to delete invitation {invitation_id}: {e}", exc_info=True)
        return InvitationResult.fail(AccessErrorCode.STORE_UNAVAILABLE)

    if revoked:
        logger.info(f"Invitation {invitation_id} revoked by {requested_by}")
    db.refresh(invitation)
    return InvitationResult.ok(
        invitation=InvitationView.from_db_row(invitation),
        message="Invitation cancelled" if revoked else "Invitation is no longer pending"
    )


@retry_read
def list_by_student(db: Session, student_id: int) -> List[InvitationView]:
    """List all invitations for a student, newest first."""
    invitations = db.query(Invitation).options(
        joinedload(Invitation.student),
        joinedload(Invitation.inviter)
    ).filter(
        Invitation.student_id == student_id
    ).order_by(Invitation.created_at.desc(), Invitation.id.desc()).all()
    return [InvitationView.from_db_row(i) for i in invitations]


@retry_read
def list_pending_for_email(db: Session, email: str) -> List[InvitationView]:
    """List pending, unexpired invitations addressed to an email."""
    now = token_codec.utcnow()
    invitations = db.query(Invitation).options(
        joinedload(Invitation.student),
        joinedload(Invitation.inviter)
    ).filter(
        Invitation.email == normalize_email(email),
        Invitation.status == InvitationStatus.PENDING.value,
        Invitation.expires_at > now
    ).order_by(Invitation.created_at.desc(), Invitation.id.desc()).all()
    return [InvitationView.from_db_row(i) for i in invitations]


def send_expiry_reminders(db: Session, within_hours: Optional[int] = None) -> int:
    """
    Email a reminder for each pending invitation about to expire.

    Each invitation is reminded at most once per token; resend clears the
    marker.

    Returns:
        Number of reminders sent
    """
    hours = within_hours if within_hours is not None else INVITATION_REMINDER_HOURS
    now = token_codec.utcnow()
    invitations = db.query(Invitation).options(
        joinedload(Invitation.student)
    ).filter(
        Invitation.status == InvitationStatus.PENDING.value,
        Invitation.expires_at > now,
        Invitation.expires_at <= now + timedelta(hours=hours),
        Invitation.reminded_at.is_(None)
    ).all()

    sent = 0
    for invitation in invitations:
        if send_invitation_reminder_email(
            email=invitation.email,
            token=invitation.token,
            student_name=invitation.student.name if invitation.student else '',
            expires_at=token_codec.as_utc(invitation.expires_at)
        ):
            invitation.reminded_at = now
            sent += 1
        else:
            logger.warning(f"Reminder for invitation {invitation.id} could not be sent")

    db.commit()
    if sent:
        logger.info(f"Sent {sent} invitation expiry reminders")
    return sent


def expire_stale_invitations(db: Session, now: Optional[datetime] = None) -> int:
    """Mark every pending invitation past its expiry as expired."""
    now = token_codec.as_utc(now) if now else token_codec.utcnow()
    expired = db.query(Invitation).filter(
        Invitation.status == InvitationStatus.PENDING.value,
        Invitation.expires_at < now
    ).update(
        {Invitation.status: InvitationStatus.EXPIRED.value, Invitation.pending_key: None},
        synchronize_session=False
    )
    db.commit()
    if expired:
        logger.info(f"Expired {expired} stale invitations")
    return expired
