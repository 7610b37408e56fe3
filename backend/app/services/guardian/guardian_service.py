"""
Guardian relationship service: the student access graph.

Invariant kept by every mutation here: a student with at least one guardian
has exactly one primary guardian. All writes for a student run under a row
lock on the student (and its edges) inside a single transaction.
"""
import logging
import secrets
from datetime import date
from typing import List, Optional
from sqlalchemy import case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.core.auth import lookup_profile_by_email
from app.core.errors import AccessErrorCode, STORE_ERRORS
from app.core.retry import retry_read
from app.models.profile import Profile, ProfileRole
from app.models.student import Student, StudentGuardian
from app.services.access_policy import can_manage_guardians
from app.services.guardian.guardian_models import GuardianView, StudentView, GuardianResult, StudentResult

logger = logging.getLogger(__name__)


def lock_student(db: Session, student_id: int) -> Optional[Student]:
    """Load a student with a row lock, serializing access-graph writes for it."""
    return db.query(Student).filter(Student.id == student_id).with_for_update().first()


def _lock_edges(db: Session, student_id: int) -> List[StudentGuardian]:
    return db.query(StudentGuardian).filter(
        StudentGuardian.student_id == student_id
    ).order_by(StudentGuardian.id).with_for_update().all()


def _assign_primary(db: Session, student_id: int, guardian_id: int) -> None:
    """Clear and set the primary flag for all of a student's edges in one statement."""
    db.query(StudentGuardian).filter(
        StudentGuardian.student_id == student_id
    ).update(
        {StudentGuardian.is_primary: case((StudentGuardian.guardian_id == guardian_id, True), else_=False)},
        synchronize_session=False
    )


def link_guardian(db: Session, student: Student, guardian_id: int) -> StudentGuardian:
    """
    Insert an access edge for a guardian.

    The edge is primary iff the student had no guardian yet. The caller must
    hold the student lock and owns the commit.
    """
    has_guardians = db.query(StudentGuardian.id).filter(
        StudentGuardian.student_id == student.id
    ).first() is not None

    edge = StudentGuardian(
        student_id=student.id,
        guardian_id=guardian_id,
        is_primary=not has_guardians
    )
    db.add(edge)
    db.flush()
    return edge


def _generate_student_code(db: Session) -> str:
    """Human-readable student identifier, unique across students."""
    code = f"S-{secrets.token_hex(3).upper()}"
    while db.query(Student.id).filter(Student.student_id == code).first():
        code = f"S-{secrets.token_hex(3).upper()}"
    return code


def _guardian_views(db: Session, student_id: int) -> List[GuardianView]:
    rows = db.query(StudentGuardian, Profile).join(
        Profile, Profile.id == StudentGuardian.guardian_id
    ).filter(
        StudentGuardian.student_id == student_id
    ).order_by(StudentGuardian.is_primary.desc(), StudentGuardian.id).all()
    return [GuardianView.from_db_row(edge, profile) for edge, profile in rows]


def register_student(
    db: Session,
    creator_id: int,
    name: str,
    birth_date: Optional[date] = None,
    graduation_date: Optional[date] = None,
    school_id: Optional[int] = None
) -> StudentResult:
    """
    Create a student and make the creating guardian its primary guardian.

    Args:
        db: Database session
        creator_id: Profile ID of the guardian creating the record
        name: Student's name
        birth_date: Optional birth date
        graduation_date: Optional expected graduation date
        school_id: Optional school reference

    Returns:
        StudentResult with the new student
    """
    creator = db.query(Profile).filter(Profile.id == creator_id).first()
    if not creator or not creator.is_guardian():
        return StudentResult.fail(AccessErrorCode.UNAUTHORIZED, "Only guardian accounts can register students")

    try:
        student = Student(
            student_id=_generate_student_code(db),
            name=name,
            birth_date=birth_date,
            graduation_date=graduation_date,
            school_id=school_id
        )
        db.add(student)
        db.flush()  # Flush to get the ID

        link_guardian(db, student, creator.id)
        db.commit()
    except STORE_ERRORS as e:
        db.rollback()
        logger.error(f"Failed to register student for guardian {creator_id}: {e}", exc_info=True)
        return StudentResult.fail(AccessErrorCode.STORE_UNAVAILABLE)

    db.refresh(student)
    logger.info(f"Guardian {creator_id} registered student {student.id} ({student.student_id})")
    return StudentResult(success=True, student=StudentView.from_db_row(student, is_primary=True))


def add_guardian(db: Session, student_id: int, guardian_email: str, requested_by: int) -> GuardianResult:
    """
    Link an existing guardian account to a student by email.

    The new edge is primary only when it is the student's first guardian.
    """
    try:
        student = lock_student(db, student_id)
        if not student:
            db.rollback()
            return GuardianResult.fail(AccessErrorCode.NOT_FOUND, "Student not found")

        if not can_manage_guardians(db, requested_by, student_id):
            db.rollback()
            return GuardianResult.fail(AccessErrorCode.UNAUTHORIZED)

        profile = lookup_profile_by_email(db, guardian_email, role=ProfileRole.GUARDIAN.value)
        if not profile:
            db.rollback()
            return GuardianResult.fail(
                AccessErrorCode.NOT_FOUND,
                f"No guardian account found with email {guardian_email}"
            )

        existing = db.query(StudentGuardian.id).filter(
            StudentGuardian.student_id == student_id,
            StudentGuardian.guardian_id == profile.id
        ).first()
        if existing:
            db.rollback()
            return GuardianResult.fail(
                AccessErrorCode.ALREADY_LINKED,
                "This guardian is already associated with this student"
            )

        edge = link_guardian(db, student, profile.id)
        db.commit()
    except IntegrityError:
        db.rollback()
        return GuardianResult.fail(
            AccessErrorCode.ALREADY_LINKED,
            "This guardian is already associated with this student"
        )
    except STORE_ERRORS as e:
        db.rollback()
        logger.error(f"Failed to add guardian to student {student_id}: {e}", exc_info=True)
        return GuardianResult.fail(AccessErrorCode.STORE_UNAVAILABLE)

    logger.info(f"Guardian {profile.id} linked to student {student_id} by {requested_by} (primary={edge.is_primary})")
    guardians = _guardian_views(db, student_id)
    return GuardianResult(
        success=True,
        guardian=next((g for g in guardians if g.guardian_id == profile.id), None),
        guardians=guardians,
        message=f"Guardian {profile.display_name} added successfully"
    )


def remove_guardian(
    db: Session,
    student_id: int,
    guardian_id: int,
    requested_by: int,
    new_primary_id: Optional[int] = None
) -> GuardianResult:
    """
    Remove a guardian's access to a student.

    The only guardian can never be removed (LastGuardian). The primary
    guardian can only be removed when new_primary_id names another current
    guardian; the promotion and the removal commit together.
    """
    try:
        student = lock_student(db, student_id)
        if not student:
            db.rollback()
            return GuardianResult.fail(AccessErrorCode.NOT_FOUND, "Student not found")

        if not can_manage_guardians(db, requested_by, student_id):
            db.rollback()
            return GuardianResult.fail(AccessErrorCode.UNAUTHORIZED)

        edges = _lock_edges(db, student_id)
        target = next((e for e in edges if e.guardian_id == guardian_id), None)
        if not target:
            db.rollback()
            return GuardianResult.fail(AccessErrorCode.NOT_A_GUARDIAN)

        if len(edges) == 1:
            db.rollback()
            return GuardianResult.fail(AccessErrorCode.LAST_GUARDIAN)

        if new_primary_id is not None and new_primary_id != guardian_id:
            if not any(e.guardian_id == new_primary_id for e in edges):
                db.rollback()
                return GuardianResult.fail(
                    AccessErrorCode.NOT_A_GUARDIAN,
                    "The new primary guardian must already be a guardian of this student"
                )
            _assign_primary(db, student_id, new_primary_id)
        elif target.is_primary:
            db.rollback()
            return GuardianResult.fail(AccessErrorCode.PRIMARY_REQUIRED)

        db.delete(target)
        db.commit()
    except STORE_ERRORS as e:
        db.rollback()
        logger.error(f"Failed to remove guardian {guardian_id} from student {student_id}: {e}", exc_info=True)
        return GuardianResult.fail(AccessErrorCode.STORE_UNAVAILABLE)

    logger.info(
        f"Guardian {guardian_id} removed from student {student_id} by {requested_by}"
        + (f", primary now {new_primary_id}" if new_primary_id else "")
    )
    return GuardianResult(
        success=True,
        guardians=_guardian_views(db, student_id),
        message="Guardian removed successfully"
    )


def set_primary_guardian(db: Session, student_id: int, guardian_id: int, requested_by: int) -> GuardianResult:
    """
    Make one guardian the student's primary guardian.

    The student's edges are locked and the flag is rewritten for all of
    them in a single UPDATE, so there is never a committed state with zero
    or two primaries, and concurrent calls for one student serialize.
    """
    try:
        student = lock_student(db, student_id)
        if not student:
            db.rollback()
            return GuardianResult.fail(AccessErrorCode.NOT_FOUND, "Student not found")

        if not can_manage_guardians(db, requested_by, student_id):
            db.rollback()
            return GuardianResult.fail(AccessErrorCode.UNAUTHORIZED)

        edges = _lock_edges(db, student_id)
        if not any(e.guardian_id == guardian_id for e in edges):
            db.rollback()
            return GuardianResult.fail(AccessErrorCode.NOT_A_GUARDIAN)

        _assign_primary(db, student_id, guardian_id)
        db.commit()
    except STORE_ERRORS as e:
        db.rollback()
        logger.error(f"Failed to set primary guardian for student {student_id}: {e}", exc_info=True)
        return GuardianResult.fail(AccessErrorCode.STORE_UNAVAILABLE)

    logger.info(f"Primary guardian of student {student_id} set to {guardian_id} by {requested_by}")
    guardians = _guardian_views(db, student_id)
    return GuardianResult(
        success=True,
        guardian=next((g for g in guardians if g.guardian_id == guardian_id), None),
        guardians=guardians,
        message="Primary guardian updated successfully"
    )


@retry_read
def list_guardians(db: Session, student_id: int) -> List[GuardianView]:
    """List a student's guardians with profile details, primary first."""
    return _guardian_views(db, student_id)


@retry_read
def list_students_for_guardian(db: Session, guardian_id: int) -> List[StudentView]:
    """List the students a guardian has access to, with the guardian's primary flag."""
    rows = db.query(Student, StudentGuardian.is_primary).join(
        StudentGuardian, StudentGuardian.student_id == Student.id
    ).filter(
        StudentGuardian.guardian_id == guardian_id
    ).order_by(Student.name, Student.id).all()
    return [StudentView.from_db_row(student, is_primary) for student, is_primary in rows]
