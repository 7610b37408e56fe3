"""
Authorization predicates for the student access graph.

All checks are pure reads; nothing here holds state.
"""
from typing import Optional
from sqlalchemy.orm import Session
from app.models.student import StudentGuardian


def normalize_email(email: Optional[str]) -> str:
    """Lower-case and trim an email address for storage and comparison."""
    return (email or "").strip().lower()


def is_guardian_of(db: Session, user_id: int, student_id: int) -> bool:
    """True if the user has an access edge to the student."""
    if user_id is None or student_id is None:
        return False
    return db.query(StudentGuardian.id).filter(
        StudentGuardian.student_id == student_id,
        StudentGuardian.guardian_id == user_id
    ).first() is not None


def can_invite(db: Session, user_id: int, student_id: int) -> bool:
    """Only current guardians of a student may invite others to it."""
    return is_guardian_of(db, user_id, student_id)


def can_manage_guardians(db: Session, user_id: int, student_id: int) -> bool:
    """
    Check whether the user may add, remove or re-rank the student's guardians.

    Currently the same predicate as can_invite; kept separate so either
    policy can change without touching callers.
    """
    return is_guardian_of(db, user_id, student_id)


def can_accept_as(email: Optional[str], invitation) -> bool:
    """The accepting account's email must match the invited address."""
    if not email or invitation is None:
        return False
    return normalize_email(email) == normalize_email(invitation.email)
