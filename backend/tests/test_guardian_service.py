"""Unit tests for the guardian relationship service."""
import pytest

from app.core.errors import AccessErrorCode
from app.models.profile import ProfileRole
from app.models.student import Student, StudentGuardian
from app.services.guardian import (
    add_guardian,
    list_guardians,
    list_students_for_guardian,
    register_student,
    remove_guardian,
    set_primary_guardian,
)


def primaries(db, student_id):
    db.expire_all()
    edges = db.query(StudentGuardian).filter(StudentGuardian.student_id == student_id).all()
    return [e.guardian_id for e in edges if e.is_primary]


def edge_count(db, student_id):
    db.expire_all()
    return db.query(StudentGuardian).filter(StudentGuardian.student_id == student_id).count()


@pytest.fixture
def third_guardian(make_profile):
    return make_profile("guardian3@example.com", name="Katherine Johnson")


@pytest.fixture
def linked(db, guardian, second_guardian, student):
    """Student with guardian (primary) and second_guardian."""
    result = add_guardian(db, student.id, second_guardian.email, requested_by=guardian.id)
    assert result.success
    return student


class TestRegisterStudent:
    """Tests for student registration."""

    def test_creator_becomes_primary(self, db, guardian):
        result = register_student(db, guardian.id, "Ada Lovelace")

        assert result.success
        assert result.student.is_primary is True
        assert result.student.student_id.startswith("S-")
        assert primaries(db, result.student.id) == [guardian.id]

    def test_student_ids_are_unique(self, db, guardian):
        first = register_student(db, guardian.id, "One")
        second = register_student(db, guardian.id, "Two")
        assert first.student.student_id != second.student.student_id

    def test_student_account_cannot_register(self, db, make_profile):
        pupil = make_profile("pupil@example.com", role=ProfileRole.STUDENT.value)
        result = register_student(db, pupil.id, "Nobody")

        assert not result.success
        assert result.reason == AccessErrorCode.UNAUTHORIZED
        assert db.query(Student).count() == 0


class TestAddGuardian:
    """Tests for linking guardians by email."""

    def test_second_guardian_is_not_primary(self, db, guardian, second_guardian, student):
        result = add_guardian(db, student.id, "Guardian2@Example.com", requested_by=guardian.id)

        assert result.success
        assert result.guardian.guardian_id == second_guardian.id
        assert result.guardian.is_primary is False
        assert [g.guardian_id for g in result.guardians] == [guardian.id, second_guardian.id]
        assert primaries(db, student.id) == [guardian.id]

    def test_duplicate_link_rejected(self, db, guardian, second_guardian, linked):
        result = add_guardian(db, linked.id, second_guardian.email, requested_by=guardian.id)

        assert not result.success
        assert result.reason == AccessErrorCode.ALREADY_LINKED
        assert edge_count(db, linked.id) == 2

    def test_unknown_email(self, db, guardian, student):
        result = add_guardian(db, student.id, "nobody@example.com", requested_by=guardian.id)
        assert result.reason == AccessErrorCode.NOT_FOUND

    def test_student_account_cannot_be_added_as_guardian(self, db, guardian, student, make_profile):
        make_profile("pupil@example.com", role=ProfileRole.STUDENT.value)
        result = add_guardian(db, student.id, "pupil@example.com", requested_by=guardian.id)
        assert result.reason == AccessErrorCode.NOT_FOUND

    def test_requester_must_be_guardian(self, db, second_guardian, third_guardian, student):
        result = add_guardian(db, student.id, third_guardian.email, requested_by=second_guardian.id)

        assert result.reason == AccessErrorCode.UNAUTHORIZED
        assert edge_count(db, student.id) == 1

    def test_unknown_student(self, db, guardian, second_guardian):
        result = add_guardian(db, 999, second_guardian.email, requested_by=guardian.id)
        assert result.reason == AccessErrorCode.NOT_FOUND


class TestSetPrimaryGuardian:
    """Tests for the primary guardian swap."""

    def test_swap_leaves_exactly_one_primary(self, db, guardian, second_guardian, linked):
        """Scenario D: u2 becomes primary, u1 is demoted."""
        result = set_primary_guardian(db, linked.id, second_guardian.id, requested_by=guardian.id)

        assert result.success
        assert result.guardian.is_primary is True
        by_id = {g.guardian_id: g for g in list_guardians(db, linked.id)}
        assert by_id[guardian.id].is_primary is False
        assert by_id[second_guardian.id].is_primary is True
        assert primaries(db, linked.id) == [second_guardian.id]

    def test_setting_current_primary_is_a_no_op(self, db, guardian, linked):
        result = set_primary_guardian(db, linked.id, guardian.id, requested_by=guardian.id)

        assert result.success
        assert primaries(db, linked.id) == [guardian.id]

    def test_target_must_be_linked(self, db, guardian, third_guardian, linked):
        result = set_primary_guardian(db, linked.id, third_guardian.id, requested_by=guardian.id)

        assert result.reason == AccessErrorCode.NOT_A_GUARDIAN
        assert primaries(db, linked.id) == [guardian.id]

    def test_requester_must_be_guardian(self, db, second_guardian, third_guardian, student):
        result = set_primary_guardian(db, student.id, second_guardian.id, requested_by=third_guardian.id)
        assert result.reason == AccessErrorCode.UNAUTHORIZED

    def test_repeated_swaps_keep_invariant(self, db, guardian, second_guardian, third_guardian, linked):
        add_guardian(db, linked.id, third_guardian.email, requested_by=guardian.id)
        for target in (third_guardian, guardian, second_guardian, third_guardian):
            assert set_primary_guardian(db, linked.id, target.id, requested_by=guardian.id).success
            assert primaries(db, linked.id) == [target.id]


class TestRemoveGuardian:
    """Tests for removing access."""

    def test_only_guardian_cannot_be_removed(self, db, guardian, student):
        """Scenario E: LastGuardian, nothing removed."""
        result = remove_guardian(db, student.id, guardian.id, requested_by=guardian.id)

        assert not result.success
        assert result.reason == AccessErrorCode.LAST_GUARDIAN
        assert edge_count(db, student.id) == 1

    def test_non_primary_removed(self, db, guardian, second_guardian, linked):
        result = remove_guardian(db, linked.id, second_guardian.id, requested_by=guardian.id)

        assert result.success
        assert [g.guardian_id for g in result.guardians] == [guardian.id]
        assert primaries(db, linked.id) == [guardian.id]

    def test_self_removal_allowed(self, db, second_guardian, linked):
        result = remove_guardian(db, linked.id, second_guardian.id, requested_by=second_guardian.id)
        assert result.success
        assert edge_count(db, linked.id) == 1

    def test_primary_requires_replacement(self, db, guardian, linked):
        result = remove_guardian(db, linked.id, guardian.id, requested_by=guardian.id)

        assert result.reason == AccessErrorCode.PRIMARY_REQUIRED
        assert edge_count(db, linked.id) == 2
        assert primaries(db, linked.id) == [guardian.id]

    def test_primary_removed_with_replacement(self, db, guardian, second_guardian, linked):
        result = remove_guardian(
            db, linked.id, guardian.id, requested_by=guardian.id, new_primary_id=second_guardian.id
        )

        assert result.success
        assert [(g.guardian_id, g.is_primary) for g in result.guardians] == [(second_guardian.id, True)]
        assert primaries(db, linked.id) == [second_guardian.id]

    def test_replacement_must_be_linked(self, db, guardian, third_guardian, linked):
        result = remove_guardian(
            db, linked.id, guardian.id, requested_by=guardian.id, new_primary_id=third_guardian.id
        )

        assert result.reason == AccessErrorCode.NOT_A_GUARDIAN
        assert edge_count(db, linked.id) == 2
        assert primaries(db, linked.id) == [guardian.id]

    def test_target_must_be_linked(self, db, guardian, third_guardian, linked):
        result = remove_guardian(db, linked.id, third_guardian.id, requested_by=guardian.id)
        assert result.reason == AccessErrorCode.NOT_A_GUARDIAN

    def test_requester_must_be_guardian(self, db, second_guardian, third_guardian, linked):
        result = remove_guardian(db, linked.id, second_guardian.id, requested_by=third_guardian.id)

        assert result.reason == AccessErrorCode.UNAUTHORIZED
        assert edge_count(db, linked.id) == 2


class TestListings:
    """Tests for read-side listings."""

    def test_guardians_listed_primary_first(self, db, guardian, second_guardian, linked):
        set_primary_guardian(db, linked.id, second_guardian.id, requested_by=guardian.id)
        guardians = list_guardians(db, linked.id)

        assert [g.guardian_id for g in guardians] == [second_guardian.id, guardian.id]
        assert guardians[0].email == second_guardian.email
        assert guardians[0].name == "Alan Turing"

    def test_students_for_guardian_carry_primary_flag(self, db, guardian, second_guardian, linked):
        own = register_student(db, second_guardian.id, "Bob")

        students = {s.id: s for s in list_students_for_guardian(db, second_guardian.id)}
        assert students[linked.id].is_primary is False
        assert students[own.student.id].is_primary is True
        assert list_students_for_guardian(db, 999) == []
