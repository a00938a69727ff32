"""API tests for registration, profile and bearer-token handling."""


class TestBearerToken:
    """Token checks shared by every protected route."""

    def test_missing_token(self, client):
        response = client.get("/api/v1/businesses")

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing bearer token"

    def test_token_signed_with_wrong_secret(self, client, owner, bearer):
        response = client.get("/api/v1/businesses", headers=bearer(owner.auth0_id, secret="not-the-secret"))

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"

    def test_unknown_subject(self, client, bearer):
        response = client.get("/api/v1/businesses", headers=bearer("auth0|nobody"))

        assert response.status_code == 401
        assert response.json()["detail"] == "User not found"

    def test_inactive_user_is_forbidden(self, client, make_user, auth_headers):
        user = make_user(is_active=False)

        response = client.get("/api/v1/businesses", headers=auth_headers(user))

        assert response.status_code == 403


class TestRegister:
    """POST /auth/register"""

    def test_new_identity(self, client, bearer, fake_email):
        """A first registration creates a Free user and sends the welcome email."""
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "New.Person@Example.com", "fullName": "New Person", "companyName": "Bakery"},
            headers=bearer("auth0|newcomer"),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Registration successful"
        assert body["user"]["email"] == "new.person@example.com"
        assert body["user"]["subscriptionPlan"] == "Free"
        assert body["user"]["companyName"] == "Bakery"
        fake_email.send_welcome_email.assert_awaited_once_with("new.person@example.com", "New Person")

    def test_existing_identity_is_returned(self, client, owner, headers, fake_email):
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "other@example.com", "fullName": "Someone Else"},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "User already registered"
        assert body["user"]["id"] == owner.id
        assert body["user"]["email"] == owner.email
        fake_email.send_welcome_email.assert_not_awaited()

    def test_duplicate_email(self, client, owner, bearer):
        response = client.post(
            "/api/v1/auth/register",
            json={"email": owner.email.upper(), "fullName": "Copycat"},
            headers=bearer("auth0|second-identity"),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Email already registered"

    def test_invalid_email_is_rejected(self, client, bearer):
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "not-an-email", "fullName": "Typo"},
            headers=bearer("auth0|typo"),
        )

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"


class TestMe:
    """GET /auth/me and PUT /auth/profile"""

    def test_me(self, client, headers):
        response = client.get("/api/v1/auth/me", headers=headers)

        assert response.status_code == 200
        assert response.json()["fullName"] == "Olive Owner"

    def test_unregistered_identity_needs_registration(self, client, bearer):
        response = client.get("/api/v1/auth/me", headers=bearer("auth0|fresh"))

        assert response.status_code == 404
        assert response.json()["detail"] == {"message": "User not found", "needsRegistration": True}

    def test_inactive_account(self, client, make_user, auth_headers):
        user = make_user(is_active=False)

        response = client.get("/api/v1/auth/me", headers=auth_headers(user))

        assert response.status_code == 403

    def test_update_profile_changes_given_fields_only(self, client, headers):
        response = client.put(
            "/api/v1/auth/profile",
            json={"phoneNumber": "+15550101010"},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["phoneNumber"] == "+15550101010"
        assert body["fullName"] == "Olive Owner"
