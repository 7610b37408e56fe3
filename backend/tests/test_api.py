"""Integration tests for the HTTP API."""
from datetime import timedelta

import pytest

from conftest import last_token, login
from app.core.config import SESSION_COOKIE_NAME
from app.models.invitation import Invitation, InvitationStatus
from app.services.invitation import token_codec


@pytest.fixture
def guardian_client(client, guardian):
    return login(client, guardian)


@pytest.fixture
def student_id(guardian_client):
    response = guardian_client.post("/api/students", json={"name": "Ada Lovelace", "birth_date": "2012-05-01"})
    assert response.status_code == 201
    return response.json()["id"]


class TestAuthentication:
    """Tests for session handling."""

    def test_missing_session_rejected(self, client):
        assert client.get("/api/students").status_code == 401

    def test_tampered_session_rejected(self, client):
        client.cookies.set(SESSION_COOKIE_NAME, '{"user_id": 1}.deadbeef')
        assert client.get("/api/students").status_code == 401

    def test_profile_created_on_first_request(self, client, db):
        from app.core.auth import create_session
        from app.models.profile import Profile

        client.cookies.set(SESSION_COOKIE_NAME, create_session(42, "New.Parent@Example.com", "guardian", "New Parent"))

        assert client.get("/api/students").json() == []
        db.expire_all()
        profile = db.query(Profile).filter(Profile.id == 42).one()
        assert profile.email == "new.parent@example.com"
        assert profile.role == "guardian"

    def test_email_held_by_another_profile(self, client, db, guardian):
        from app.core.auth import create_session
        from app.models.profile import Profile

        client.cookies.set(SESSION_COOKIE_NAME, create_session(77, "Guardian1@Example.com", "guardian"))

        response = client.get("/api/students")

        assert response.status_code == 409
        assert response.json()["detail"]["reason"] == "EmailInUse"
        db.expire_all()
        assert db.query(Profile).filter(Profile.id == 77).first() is None
        assert db.query(Profile).count() == 1


class TestStudentsApi:
    """Tests for student and guardian routes."""

    def test_register_and_list(self, guardian_client, student_id):
        students = guardian_client.get("/api/students").json()

        assert [s["id"] for s in students] == [student_id]
        assert students[0]["is_primary"] is True
        assert students[0]["birth_date"] == "2012-05-01"

    def test_add_guardian_and_swap_primary(self, guardian_client, guardian, second_guardian, student_id):
        added = guardian_client.post(f"/api/students/{student_id}/guardians", json={"email": second_guardian.email})
        assert added.status_code == 201
        assert added.json()["guardian"]["is_primary"] is False

        swapped = guardian_client.put(f"/api/students/{student_id}/guardians/{second_guardian.id}/primary")
        assert swapped.status_code == 200
        guardians = guardian_client.get(f"/api/students/{student_id}/guardians").json()
        assert [(g["guardian_id"], g["is_primary"]) for g in guardians] == [
            (second_guardian.id, True),
            (guardian.id, False),
        ]

    def test_remove_last_guardian_conflict(self, guardian_client, guardian, student_id):
        response = guardian_client.delete(f"/api/students/{student_id}/guardians/{guardian.id}")

        assert response.status_code == 409
        assert response.json()["detail"]["reason"] == "LastGuardian"

    def test_remove_primary_with_replacement(self, guardian_client, guardian, second_guardian, student_id):
        guardian_client.post(f"/api/students/{student_id}/guardians", json={"email": second_guardian.email})

        blocked = guardian_client.delete(f"/api/students/{student_id}/guardians/{guardian.id}")
        assert blocked.json()["detail"]["reason"] == "PrimaryRequired"

        response = guardian_client.delete(
            f"/api/students/{student_id}/guardians/{guardian.id}",
            params={"new_primary_id": second_guardian.id}
        )
        assert response.status_code == 200
        assert [(g["guardian_id"], g["is_primary"]) for g in response.json()["guardians"]] == [
            (second_guardian.id, True)
        ]

    def test_outsider_cannot_list_guardians(self, client, guardian, second_guardian, student_id):
        login(client, second_guardian)

        response = client.get(f"/api/students/{student_id}/guardians")

        assert response.status_code == 403
        assert response.json()["detail"]["reason"] == "Unauthorized"

    def test_invalid_email_rejected(self, guardian_client, student_id):
        response = guardian_client.post(f"/api/students/{student_id}/guardians", json={"email": "not-an-email"})
        assert response.status_code == 422


class TestInvitationsApi:
    """Tests for the invitation flow over HTTP."""

    def test_full_invitation_flow(self, client, guardian, second_guardian, student_id, sent_emails):
        login(client, guardian)
        created = client.post(
            f"/api/students/{student_id}/invitations",
            json={"email": second_guardian.email, "role": "guardian"}
        )
        assert created.status_code == 201
        body = created.json()
        assert body["status"] == "pending"
        assert body["email_sent"] is True
        assert "token" not in body
        token = last_token(sent_emails)

        validated = client.post("/api/invitations/validate", json={"token": token}).json()
        assert validated["valid"] is True
        assert validated["invitation"]["student_name"] == "Ada Lovelace"

        login(client, second_guardian)
        pending = client.get("/api/invitations/pending").json()
        assert [p["id"] for p in pending] == [body["id"]]

        accepted = client.post("/api/invitations/accept", json={"token": token})
        assert accepted.status_code == 200
        assert accepted.json()["success"] is True

        again = client.post("/api/invitations/accept", json={"token": token})
        assert again.status_code == 409
        assert again.json()["detail"]["reason"] == "AlreadyAccepted"

        students = client.get("/api/students").json()
        assert [(s["id"], s["is_primary"]) for s in students] == [(student_id, False)]

    def test_duplicate_invitation_conflict(self, guardian_client, student_id):
        payload = {"email": "guardian2@example.com", "role": "guardian"}
        assert guardian_client.post(f"/api/students/{student_id}/invitations", json=payload).status_code == 201

        response = guardian_client.post(f"/api/students/{student_id}/invitations", json=payload)

        assert response.status_code == 409
        assert response.json()["detail"]["reason"] == "DuplicateInvitation"

    def test_invalid_role(self, guardian_client, student_id):
        response = guardian_client.post(
            f"/api/students/{student_id}/invitations",
            json={"email": "guardian2@example.com", "role": "admin"}
        )
        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "InvalidRole"

    def test_expired_token_validation(self, guardian_client, db, student_id, sent_emails):
        created = guardian_client.post(
            f"/api/students/{student_id}/invitations",
            json={"email": "guardian2@example.com"}
        ).json()
        db.expire_all()
        invitation = db.query(Invitation).filter(Invitation.id == created["id"]).one()
        invitation.expires_at = token_codec.utcnow() - timedelta(minutes=1)
        db.commit()

        response = guardian_client.post("/api/invitations/validate", json={"token": last_token(sent_emails)})

        assert response.status_code == 200
        assert response.json() == {
            "valid": False,
            "invitation": None,
            "reason": "Expired",
            "message": "Invitation has expired",
        }

    def test_email_mismatch_forbidden(self, client, guardian, make_profile, student_id, sent_emails):
        client.post(f"/api/students/{student_id}/invitations", json={"email": "guardian2@example.com"})
        login(client, make_profile("intruder@example.com"))

        response = client.post("/api/invitations/accept", json={"token": last_token(sent_emails)})

        assert response.status_code == 403
        assert response.json()["detail"]["reason"] == "EmailMismatch"

    def test_resend_and_delete(self, guardian_client, db, student_id, sent_emails):
        created = guardian_client.post(
            f"/api/students/{student_id}/invitations",
            json={"email": "guardian2@example.com"}
        ).json()
        old_token = last_token(sent_emails)

        resent = guardian_client.post(f"/api/invitations/{created['id']}/resend")
        assert resent.status_code == 200
        assert last_token(sent_emails) != old_token
        assert guardian_client.post(
            "/api/invitations/validate", json={"token": old_token}
        ).json()["reason"] == "NotFound"

        assert guardian_client.delete(f"/api/invitations/{created['id']}").status_code == 200
        assert guardian_client.delete(f"/api/invitations/{created['id']}").status_code == 200
        db.expire_all()
        assert db.query(Invitation).filter(Invitation.id == created["id"]).one().status == InvitationStatus.REVOKED.value

        listed = guardian_client.get(f"/api/students/{student_id}/invitations").json()
        assert [(i["id"], i["status"]) for i in listed] == [(created["id"], "revoked")]

        resend_revoked = guardian_client.post(f"/api/invitations/{created['id']}/resend")
        assert resend_revoked.status_code == 409
        assert resend_revoked.json()["detail"]["reason"] == "NotPending"

    def test_validate_rejects_query_token(self, client, guardian_client, student_id, sent_emails):
        guardian_client.post(f"/api/students/{student_id}/invitations", json={"email": "guardian2@example.com"})

        response = client.get("/api/invitations/validate", params={"token": last_token(sent_emails)})

        assert response.status_code == 405

    def test_outsider_cannot_list_invitations(self, client, guardian, second_guardian, student_id):
        login(client, second_guardian)
        assert client.get(f"/api/students/{student_id}/invitations").status_code == 403


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": "ok"}
