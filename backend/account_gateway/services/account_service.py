"""
Account service: registration, signin, token flows and profile management.
"""
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder

from account_gateway.core.errors import GatewayError, StoreError
from account_gateway.core.redaction import redact, redact_all
from account_gateway.core.security import generate_token, is_token_expired
from account_gateway.database.store import USER_TYPE, AuthResult, user_doc_id
from account_gateway.hooks import ValidationInput
from account_gateway.services.email_service import CONFIRM, FORGOT

if TYPE_CHECKING:
    from account_gateway.context import GatewayContext

logger = logging.getLogger(__name__)

SIGNUP_FIELDS = ("name", "password", "email")

# Always kept on the session copy so authorization keeps working
SESSION_FIELDS = ("name", "roles")

DISABLED_MESSAGE = (
    "Your account is no longer enabled.  "
    "Please contact an Administrator to enable your account."
)
UNVERIFIED_MESSAGE = (
    "You must verify your account before you can log in.  "
    "Please check your email (including spam folder) for more details."
)
LOGIN_REQUIRED_MESSAGE = "You must be logged in to use this function."
FORBIDDEN_MESSAGE = "You do not have permission to use this function."


def _is_text(value: Any) -> bool:
    """True for a non-empty string."""
    return isinstance(value, str) and bool(value)


def _disabled() -> GatewayError:
    return GatewayError(DISABLED_MESSAGE, status.HTTP_403_FORBIDDEN)


def _email_exists() -> GatewayError:
    return GatewayError(
        "A user with this email address already exists. Try resetting your password instead.",
        status.HTTP_400_BAD_REQUEST,
        code="email_already_exists",
    )


class AccountService:
    """Workflow logic behind the user account routes."""

    def __init__(self, context: "GatewayContext"):
        """Initialize with the gateway context."""
        self.context = context
        self.settings = context.settings
        self.store = context.store
        self.mailer = context.mailer
        self.hooks = context.hooks
        self.admin_policy = context.admin_policy

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def redact(self, user: Optional[dict[str, Any]]) -> dict[str, Any]:
        return redact(user, self.context.safe_fields)

    def has_admin_permission(self, user: Optional[dict[str, Any]]) -> bool:
        return self.admin_policy.has_admin_permission(user)

    def _session_copy(self, user: dict[str, Any]) -> dict[str, Any]:
        fields = self.context.safe_fields + tuple(
            f for f in SESSION_FIELDS if f not in self.context.safe_fields
        )
        return jsonable_encoder(redact(user, fields))

    def _app_info(self, request: Request) -> dict[str, str]:
        return {
            "name": self.settings.app.name,
            "url": self.settings.app.url or str(request.base_url).rstrip("/"),
            "api_prefix": self.settings.api_prefix,
        }

    def _check_expiry(self, user: dict[str, Any], issued_field: str) -> None:
        if is_token_expired(user.get(issued_field), self.settings.token_ttl_hours):
            raise GatewayError(
                "This code has expired. Please request a new one.",
                status.HTTP_400_BAD_REQUEST,
                code="code_expired",
            )

    def _require_session(self, request: Request, message: str = LOGIN_REQUIRED_MESSAGE) -> dict[str, Any]:
        user = request.session.get("user")
        if not user:
            raise GatewayError(message, status.HTTP_401_UNAUTHORIZED)
        return user

    def _require_admin(self, session_user: dict[str, Any]) -> None:
        if self.admin_policy.enabled and not self.has_admin_permission(session_user):
            raise GatewayError(FORBIDDEN_MESSAGE, status.HTTP_403_FORBIDDEN)

    # ------------------------------------------------------------------
    # Registration and signin
    # ------------------------------------------------------------------

    async def signup(self, request: Request, body: dict[str, Any]) -> dict[str, Any]:
        """
        Register a new user.

        Args:
            request: Incoming request, handed to the populate hook
            body: Signup payload with name, password, email and roles

        Returns:
            The redacted user, plus the new revision when verification is off

        Raises:
            GatewayError 400: If fields are missing or the email is taken
            GatewayError: If sending the verification email fails
        """
        user_data = await self.hooks.populate_user(request, body)

        if (
            not user_data
            or not all(_is_text(user_data.get(f)) for f in SIGNUP_FIELDS)
            or not isinstance(user_data.get("roles"), list)
        ):
            raise GatewayError(
                "A name, password, email address and roles are required.",
                status.HTTP_400_BAD_REQUEST,
                code="missing_params",
            )

        user_data["type"] = USER_TYPE
        email = user_data["email"]

        if await self.store.view("all", key=email):
            raise _email_exists()

        try:
            result = await self.store.insert(user_data, user_doc_id(user_data["name"]))
        except StoreError as e:
            # Lost a race with a concurrent signup for the same email
            if e.status_code == status.HTTP_409_CONFLICT and await self.store.view("all", key=email):
                raise _email_exists() from e
            raise

        if self.settings.verify:
            await self.issue_verification(email, request)
            user = await self.store.get(result["id"])
            return {"ok": True, "user": self.redact(user)}

        return {**self.redact(user_data), "_rev": result["rev"], "ok": True}

    async def signin(self, request: Request, body: dict[str, Any]) -> dict[str, Any]:
        """
        Authenticate a user and start a session.

        Gates, in order: store credentials, verification (when enabled),
        enabled flag, then the ``validate_user`` hook.

        Raises:
            GatewayError 400: If name or password is missing
            GatewayError 401: On bad credentials, an unverified account or a
                rejecting validation hook
            GatewayError 403: If the account is disabled
        """
        name = body.get("name")
        password = body.get("password")
        if not name or not password:
            raise GatewayError("A name, and password are required.", status.HTTP_400_BAD_REQUEST)

        try:
            auth = await self.store.auth(name, password)
        except StoreError as e:
            if e.status_code == status.HTTP_401_UNAUTHORIZED and await self._is_disabled(name):
                raise _disabled() from e
            raise

        user = await self.store.get(await self._principal_name(auth))

        if self.settings.verify and not user.get("verified"):
            raise GatewayError(UNVERIFIED_MESSAGE, status.HTTP_401_UNAUTHORIZED)

        if user.get("enabled") is False:
            raise _disabled()

        try:
            claims = await self.hooks.validate_user(
                ValidationInput(request=request, user=user, headers=auth.headers)
            )
        except GatewayError as e:
            raise e.with_defaults(status.HTTP_401_UNAUTHORIZED, "Invalid User Login", "unauthorized")

        # Regenerate: nothing from a previous session survives signin
        request.session.clear()
        request.session["user"] = self._session_copy(user)
        for key, value in (claims or {}).items():
            request.session[key] = jsonable_encoder(value)

        return {"ok": True, "user": self.redact(user)}

    async def _principal_name(self, auth: AuthResult) -> str:
        if auth.name:
            return auth.name
        # Server administrators come back without a name; ask the store who logged in
        session = await self.store.session(auth.cookie)
        return session["userCtx"]["name"]

    async def _is_disabled(self, name: str) -> bool:
        try:
            user = await self.store.get(name)
        except StoreError:
            return False
        return user.get("enabled") is False

    async def signout(self, request: Request) -> dict[str, Any]:
        user = request.session.get("user") or {}
        request.session.clear()
        logger.info("Session destroyed for %s", user.get("name", "anonymous"))
        return {"ok": True, "message": "You have successfully logged out."}

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    async def forgot(self, request: Request, body: dict[str, Any]) -> dict[str, Any]:
        """
        Issue a password reset code and email it to the user.

        Raises:
            GatewayError 400: If no email is given
            GatewayError 403: If the account is disabled
            GatewayError 500: If no user has the email, or mail fails
        """
        email = body.get("email")
        if not email:
            raise GatewayError("An email address is required.", status.HTTP_400_BAD_REQUEST)

        rows = await self.store.view("all", key=email)
        if not rows:
            raise GatewayError("No user found with that email.", status.HTTP_500_INTERNAL_SERVER_ERROR)

        user = rows[0]["value"]
        if user.get("enabled") is False:
            raise _disabled()

        user["code"] = generate_token()
        user["code_issued_at"] = datetime.now(timezone.utc)
        result = await self.store.insert(user, user["_id"])
        user["_rev"] = result["rev"]

        await self.mailer.send(FORGOT, user, request, self._app_info(request))
        return {"ok": True, "message": "forgot password link sent..."}

    async def lookup_code(self, code: str) -> dict[str, Any]:
        """Resolve a reset code to the redacted user holding it."""
        rows = await self.store.view("code", key=code)
        if len(rows) > 1:
            raise GatewayError("More than one user found.", status.HTTP_500_INTERNAL_SERVER_ERROR)
        if not rows:
            raise GatewayError("Reset code is not valid.", status.HTTP_500_INTERNAL_SERVER_ERROR)

        user = rows[0]["value"]
        self._check_expiry(user, "code_issued_at")
        return {"ok": True, "user": self.redact(user)}

    async def reset(self, body: dict[str, Any]) -> dict[str, Any]:
        """
        Consume a reset code and set a new password.

        Raises:
            GatewayError 400: If code or password is missing, or the code expired
            GatewayError 500: If the code matches no user
        """
        code = body.get("code")
        password = body.get("password")
        if not code or not password:
            raise GatewayError(
                "A password and valid password reset code are required.",
                status.HTTP_400_BAD_REQUEST,
            )

        rows = await self.store.view("code", key=code)
        if not rows:
            raise GatewayError("Not Found", status.HTTP_500_INTERNAL_SERVER_ERROR)

        user = rows[0]["value"]
        self._check_expiry(user, "code_issued_at")

        user["password"] = password
        user.pop("code", None)
        user.pop("code_issued_at", None)
        result = await self.store.insert(user, user["_id"])
        user.pop("password")
        user["_rev"] = result["rev"]

        return {"ok": True, "user": self.redact(user)}

    # ------------------------------------------------------------------
    # Email verification
    # ------------------------------------------------------------------

    async def issue_verification(self, email: str, request: Request) -> None:
        """
        Store a fresh verification code on the user and email it.

        The code is persisted before sending, so a failed send leaves it in
        place; the caller sees the send error.

        Raises:
            GatewayError 404: If no user has the email
            GatewayError 500: If mail cannot be rendered or sent
        """
        rows = await self.store.view("all", key=email)
        if not rows:
            raise GatewayError(
                "No user found with the specified email address.",
                status.HTTP_404_NOT_FOUND,
            )

        user = rows[0]["value"]
        user["verification_code"] = generate_token()
        user["verification_issued_at"] = datetime.now(timezone.utc)
        result = await self.store.insert(user, user["_id"])
        user["_rev"] = result["rev"]

        await self.mailer.send(CONFIRM, user, request, self._app_info(request))

    async def request_verification(self, request: Request, body: dict[str, Any]) -> dict[str, Any]:
        email = body.get("email")
        if not email:
            raise GatewayError(
                "An email address must be passed as part of the query string "
                "before a verification code can be sent.",
                status.HTTP_400_BAD_REQUEST,
            )

        await self.issue_verification(email, request)
        return {"ok": True, "message": "Verification code sent..."}

    async def accept_verification(self, code: str) -> dict[str, Any]:
        """
        Consume a verification code and mark the user verified.

        Raises:
            GatewayError 400: If the code matches no user, does not match the
                stored code, or has expired
        """
        rows = await self.store.view("verification_code", key=code)
        if not rows:
            raise GatewayError("Invalid verification code.", status.HTTP_400_BAD_REQUEST)

        user = rows[0]["value"]
        if user.get("verification_code") != code:
            raise GatewayError(
                "The verification code you attempted to use does not match our records.",
                status.HTTP_400_BAD_REQUEST,
            )
        self._check_expiry(user, "verification_issued_at")

        user.pop("verification_code", None)
        user.pop("verification_issued_at", None)
        user["verified"] = datetime.now(timezone.utc)

        await self.hooks.populate_verified_user(user)
        await self.store.insert(user, user["_id"])
        return {"ok": True, "message": "Account verified."}

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    async def current(self, request: Request) -> dict[str, Any]:
        user = self._require_session(request, "Not currently logged in.")
        return {"ok": True, "user": self.redact(user)}

    async def get_user(self, request: Request, name: str) -> dict[str, Any]:
        self._require_session(request)
        user = await self.store.get(name)
        return {"ok": True, "user": self.redact(user)}

    async def update_user(self, request: Request, name: str, body: dict[str, Any]) -> dict[str, Any]:
        """
        Apply the safe subset of ``body`` to a user record.

        Non-admins may only edit themselves (when admin roles are
        configured) and never change roles; a submitted role change is
        dropped, not rejected.

        Raises:
            GatewayError 401: If not signed in
            GatewayError 403: If editing someone else without admin permission
            StoreError: If the user does not exist or the write conflicts
        """
        session_user = self._require_session(request)
        is_admin = self.has_admin_permission(session_user)
        is_self = session_user.get("name") == name
        if self.admin_policy.enabled and not is_admin and not is_self:
            raise GatewayError(FORBIDDEN_MESSAGE, status.HTTP_403_FORBIDDEN)

        user = await self.store.get(name)
        for key, value in self.redact(body).items():
            if key == "roles" and not is_admin:
                logger.info(
                    "Stripped updated role information, non-admin users are not allowed to change roles."
                )
                continue
            user[key] = value

        result = await self.store.insert(user, user_doc_id(name))
        user["_rev"] = result["rev"]

        if is_self:
            request.session["user"] = self._session_copy(user)

        return {"ok": True, "user": self.redact(user)}

    async def delete_user(self, request: Request, name: str) -> dict[str, Any]:
        """Delete a user; deleting yourself also ends your session."""
        session_user = self._require_session(request)
        self._require_admin(session_user)

        user = await self.store.get(name)
        await self.store.destroy(user["_id"], user["_rev"])

        if session_user.get("name") == name:
            request.session.clear()
            logger.info("Session destroyed for deleted user %s", name)

        return {"ok": True, "message": f"User {name} deleted."}

    async def create_user(self, request: Request, body: dict[str, Any]) -> dict[str, Any]:
        session_user = self._require_session(request)
        self._require_admin(session_user)

        if not _is_text(body.get("name")):
            raise GatewayError("A name is required.", status.HTTP_400_BAD_REQUEST, code="missing_params")
        if any(f in body and not _is_text(body[f]) for f in ("password", "email")):
            raise GatewayError(
                "Password and email must be strings.",
                status.HTTP_400_BAD_REQUEST,
                code="missing_params",
            )

        doc = dict(body)
        doc["type"] = USER_TYPE
        data = await self.store.insert(doc, user_doc_id(doc["name"]))
        return {"ok": True, "data": data}

    async def list_users(self, request: Request, roles: Optional[str]) -> dict[str, Any]:
        """List users holding any of the comma separated ``roles``."""
        session_user = self._require_session(request)
        self._require_admin(session_user)

        if not roles:
            raise GatewayError("Roles are required!", status.HTTP_400_BAD_REQUEST)

        keys = [role.strip() for role in roles.split(",") if role.strip()]
        rows = await self.store.view("role", keys=keys)
        return {"ok": True, "users": redact_all([row["value"] for row in rows], self.context.safe_fields)}
