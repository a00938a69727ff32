"""API tests for team members and invitations."""

import pytest


@pytest.fixture
def invitee(make_user):
    return make_user(email="sam@harborcafe.com", full_name="Sam Server")


def _invite(client, headers, business, email="sam@harborcafe.com", role="Member"):
    return client.post(f"/api/v1/team/{business.id}/invite", json={"email": email, "role": role}, headers=headers)


class TestInvitations:
    def test_invite_and_accept(self, client, headers, auth_headers, business, invitee, fake_email):
        response = _invite(client, headers, business, email="Sam@HarborCafe.com", role="Admin")

        assert response.status_code == 201
        invitation = response.json()
        assert invitation["email"] == "sam@harborcafe.com"
        assert invitation["status"] == "Pending"
        fake_email.send_team_invitation.assert_awaited_once()
        token = fake_email.send_team_invitation.await_args.kwargs["invitation_token"]

        accepted = client.post(f"/api/v1/team/accept/{token}", headers=auth_headers(invitee))

        assert accepted.status_code == 200
        members = client.get(f"/api/v1/team/{business.id}/members", headers=headers).json()
        assert [(m["email"], m["role"]) for m in members] == [
            ("owner@harborcafe.com", "Owner"),
            ("sam@harborcafe.com", "Admin"),
        ]
        assert client.get(f"/api/v1/team/{business.id}/invitations", headers=headers).json() == []

    def test_duplicate_pending_invitation(self, client, headers, business):
        _invite(client, headers, business)

        response = _invite(client, headers, business)

        assert response.status_code == 400

    def test_owner_cannot_be_invited(self, client, headers, business, owner):
        response = _invite(client, headers, business, email=owner.email)

        assert response.status_code == 400

    def test_invalid_role(self, client, headers, business):
        response = _invite(client, headers, business, role="Owner")

        assert response.status_code == 422

    def test_outsider_cannot_invite(self, client, auth_headers, business, outsider):
        response = _invite(client, auth_headers(outsider), business)

        assert response.status_code == 403

    def test_accept_with_wrong_account(self, client, headers, auth_headers, business, outsider, fake_email):
        _invite(client, headers, business)
        token = fake_email.send_team_invitation.await_args.kwargs["invitation_token"]

        response = client.post(f"/api/v1/team/accept/{token}", headers=auth_headers(outsider))

        assert response.status_code == 400

    def test_accept_unknown_token(self, client, headers):
        response = client.post("/api/v1/team/accept/not-a-token", headers=headers)

        assert response.status_code == 400

    def test_revoke(self, client, headers, business):
        invitation = _invite(client, headers, business).json()

        response = client.delete(f"/api/v1/team/invitations/{invitation['id']}", headers=headers)

        assert response.status_code == 200
        assert client.get(f"/api/v1/team/{business.id}/invitations", headers=headers).json() == []

    def test_revoke_unknown(self, client, headers):
        response = client.delete("/api/v1/team/invitations/999", headers=headers)

        assert response.status_code == 404


class TestMembers:
    @pytest.fixture
    def member(self, client, headers, auth_headers, business, invitee, fake_email):
        _invite(client, headers, business)
        token = fake_email.send_team_invitation.await_args.kwargs["invitation_token"]
        client.post(f"/api/v1/team/accept/{token}", headers=auth_headers(invitee))
        return invitee

    def test_member_can_list_but_not_manage(self, client, auth_headers, business, member):
        listed = client.get(f"/api/v1/team/{business.id}/members", headers=auth_headers(member))
        invite = _invite(client, auth_headers(member), business, email="another@example.com")

        assert listed.status_code == 200
        assert invite.status_code == 403

    def test_outsider_cannot_list(self, client, auth_headers, business, outsider):
        response = client.get(f"/api/v1/team/{business.id}/members", headers=auth_headers(outsider))

        assert response.status_code == 403

    def test_missing_business(self, client, headers):
        assert client.get("/api/v1/team/999/members", headers=headers).status_code == 404

    def test_change_role(self, client, headers, business, member):
        response = client.put(
            f"/api/v1/team/{business.id}/members/{member.id}/role", json={"role": "Admin"}, headers=headers
        )

        assert response.status_code == 200
        roles = {m["userId"]: m["role"] for m in client.get(f"/api/v1/team/{business.id}/members", headers=headers).json()}
        assert roles[member.id] == "Admin"

    def test_owner_role_is_fixed(self, client, headers, business, owner, member):
        response = client.put(
            f"/api/v1/team/{business.id}/members/{owner.id}/role", json={"role": "Member"}, headers=headers
        )

        assert response.status_code == 400

    def test_remove_member(self, client, headers, business, member):
        response = client.delete(f"/api/v1/team/{business.id}/members/{member.id}", headers=headers)

        assert response.status_code == 200
        members = client.get(f"/api/v1/team/{business.id}/members", headers=headers).json()
        assert [m["userId"] for m in members] == [business.user_id]

    def test_remove_non_member(self, client, headers, business, outsider):
        response = client.delete(f"/api/v1/team/{business.id}/members/{outsider.id}", headers=headers)

        assert response.status_code == 404
