"""
Tests for signin, signout and the current session.

These tests verify:
- Credential checks and the order of the signin gates
- Disabled and unverified accounts
- The validate_user hook and its session claims
- Server administrators signing in without a returned name
- Signout and GET /current
"""

from account_gateway.core.errors import GatewayError
from account_gateway.core.security import hash_password
from account_gateway.hooks import GatewayHooks


class TestSigninCredentials:
    """Tests for POST /api/user/signin credential handling."""

    def test_signin_without_password_returns_400(self, client, assert_error_response):
        response = client.post("/api/user/signin", json={"name": "alice"})

        assert_error_response(response, 400, "A name, and password are required.")

    def test_signin_without_body_returns_400(self, client, assert_error_response):
        response = client.post("/api/user/signin")

        assert_error_response(response, 400)

    def test_signin_with_non_string_name_returns_400(self, client, assert_error_response):
        response = client.post("/api/user/signin", json={"name": 123, "password": "x"})

        assert_error_response(response, 400, "name", code="invalid_params")
        assert "detail" not in response.json()

    def test_signin_with_malformed_json_returns_400(self, client, assert_error_response):
        response = client.post(
            "/api/user/signin",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )

        assert_error_response(response, 400, code="invalid_params")

    def test_signin_with_wrong_password_returns_401(self, client, seed_user, assert_error_response):
        seed_user("alice")

        response = client.post("/api/user/signin", json={"name": "alice", "password": "WrongPassword1!"})

        assert_error_response(response, 401, "Name or password is incorrect.")

    def test_signin_unknown_user_returns_401(self, client, assert_error_response):
        response = client.post("/api/user/signin", json={"name": "ghost", "password": "whatever"})

        assert_error_response(response, 401)

    def test_signin_success_returns_redacted_user(self, client, seed_user, signin):
        seed_user("alice", code="reset-token")

        response = signin(client, "alice")

        data = response.json()
        assert data["ok"] is True
        assert data["user"] == {"name": "alice", "email": "alice@example.com", "roles": ["user"]}


class TestSigninGates:
    """Tests for disabled and unverified accounts."""

    def test_disabled_user_with_correct_password_returns_403(
        self, client, seed_user, test_password, assert_error_response
    ):
        seed_user("alice", enabled=False)

        response = client.post("/api/user/signin", json={"name": "alice", "password": test_password})

        assert_error_response(response, 403, "no longer enabled")

    def test_disabled_user_with_wrong_password_returns_403(self, client, seed_user, assert_error_response):
        seed_user("alice", enabled=False)

        response = client.post("/api/user/signin", json={"name": "alice", "password": "WrongPassword1!"})

        assert_error_response(response, 403, "no longer enabled")

    def test_unverified_user_returns_401_when_verification_required(
        self, make_client, seed_user, test_password, assert_error_response
    ):
        client = make_client(verify=True)
        seed_user("alice")

        response = client.post("/api/user/signin", json={"name": "alice", "password": test_password})

        assert_error_response(response, 401, "You must verify your account")

    def test_verified_user_signs_in_when_verification_required(self, make_client, seed_user, signin):
        client = make_client(verify=True)
        seed_user("alice", verified="2024-01-01T00:00:00+00:00")

        signin(client, "alice")

    def test_unverified_user_signs_in_when_verification_off(self, client, seed_user, signin):
        seed_user("alice")

        signin(client, "alice")

    def test_failed_signin_does_not_start_session(self, client, seed_user, assert_error_response):
        seed_user("alice", enabled=False)
        client.post("/api/user/signin", json={"name": "alice", "password": "WrongPassword1!"})

        response = client.get("/api/user/current")

        assert_error_response(response, 401, "Not currently logged in.")


class TestValidateUserHook:
    """Tests for the validate_user override."""

    def test_rejecting_hook_defaults_to_401(
        self, make_client, seed_user, test_password, assert_error_response
    ):
        async def validate_user(data):
            raise GatewayError()

        client = make_client(hooks=GatewayHooks(validate_user=validate_user))
        seed_user("alice")

        response = client.post("/api/user/signin", json={"name": "alice", "password": test_password})

        assert_error_response(response, 401, "Invalid User Login")
        assert response.json()["error"] == "unauthorized"

    def test_rejecting_hook_status_is_kept(self, make_client, seed_user, test_password, assert_error_response):
        async def validate_user(data):
            raise GatewayError("Account on hold", 423)

        client = make_client(hooks=GatewayHooks(validate_user=validate_user))
        seed_user("alice")

        response = client.post("/api/user/signin", json={"name": "alice", "password": test_password})

        assert_error_response(response, 423, "Account on hold")

    def test_hook_receives_user_and_store_headers(self, make_client, seed_user, signin):
        seen = {}

        async def validate_user(data):
            seen["name"] = data.user["name"]
            seen["headers"] = data.headers
            return None

        client = make_client(hooks=GatewayHooks(validate_user=validate_user))
        seed_user("alice")

        signin(client, "alice")

        assert seen["name"] == "alice"
        assert seen["headers"]["set-cookie"].startswith("AuthSession=")

    def test_hook_claims_do_not_leak_into_response(self, make_client, seed_user, signin):
        async def validate_user(data):
            return {"tenant": "acme"}

        client = make_client(hooks=GatewayHooks(validate_user=validate_user))
        seed_user("alice")

        response = signin(client, "alice")

        assert "tenant" not in response.json()
        assert "tenant" not in response.json()["user"]


class TestServerAdminSignin:
    """Tests for store administrators, whose auth result carries no name."""

    def test_server_admin_name_is_resolved_from_session(self, make_client, seed_user, signin):
        client = make_client(store_admins={"root": hash_password("RootPassword123!")})
        seed_user("root", roles=["_admin"])

        response = signin(client, "root", "RootPassword123!")

        assert response.json()["user"]["name"] == "root"


class TestSignoutAndCurrent:
    """Tests for POST /signout and GET /current."""

    def test_current_without_session_returns_401(self, client, assert_error_response):
        response = client.get("/api/user/current")

        assert_error_response(response, 401, "Not currently logged in.")

    def test_current_after_signin_returns_session_user(self, client, seed_user, signin):
        seed_user("alice")
        signin(client, "alice")

        response = client.get("/api/user/current")

        assert response.status_code == 200
        assert response.json()["user"] == {"name": "alice", "email": "alice@example.com", "roles": ["user"]}

    def test_session_keeps_roles_when_not_a_safe_field(self, make_client, seed_user, signin):
        client = make_client(safe_user_fields="name email", admin_roles="admin")
        seed_user("boss", roles=["admin"])
        seed_user("alice")
        signin(client, "boss")

        # Roles are not exposed, but the session still authorizes admin routes
        assert "roles" not in client.get("/api/user/current").json()["user"]
        assert client.get("/api/user", params={"roles": "user"}).status_code == 200

    def test_signout_ends_session(self, client, seed_user, signin, assert_error_response):
        seed_user("alice")
        signin(client, "alice")

        response = client.post("/api/user/signout")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "message": "You have successfully logged out."}
        assert_error_response(client.get("/api/user/current"), 401)

    def test_signout_without_session_is_ok(self, client):
        response = client.post("/api/user/signout")

        assert response.status_code == 200
        assert response.json()["ok"] is True
