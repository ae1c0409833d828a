"""
User account router: signup, signin, password reset, verification and profiles.
"""
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request

from account_gateway.context import GatewayContext
from account_gateway.schemas.user import (
    ForgotRequest,
    ResetRequest,
    SigninRequest,
    VerifyRequest,
)
from account_gateway.services.account_service import AccountService


def _as_dict(body: Optional[Any]) -> dict[str, Any]:
    if body is None:
        return {}
    return body.model_dump(exclude_none=True)


def build_router(context: GatewayContext) -> APIRouter:
    """
    Build the user account routes for one gateway instance.

    Routes are mounted under ``context.settings.api_prefix``. Fixed paths
    are registered before ``/{name}`` so they take precedence.
    """
    router = APIRouter(prefix=context.settings.api_prefix, tags=["Users"])
    service = AccountService(context)

    def get_account_service() -> AccountService:
        return service

    @router.post("/signup", summary="Register a new user")
    async def signup(
        request: Request,
        body: dict[str, Any] = Body(default_factory=dict),
        account_service: AccountService = Depends(get_account_service),
    ):
        """
        Register a new user account.

        - **name**, **password**, **email**, **roles**: required
        - any other fields are stored on the record as-is
        """
        return await account_service.signup(request, body)

    @router.post("/signin", summary="Sign in and start a session")
    async def signin(
        request: Request,
        body: Optional[SigninRequest] = None,
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.signin(request, _as_dict(body))

    @router.post("/signout", summary="End the current session")
    async def signout(
        request: Request,
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.signout(request)

    @router.post("/forgot", summary="Email a password reset link")
    async def forgot(
        request: Request,
        body: Optional[ForgotRequest] = None,
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.forgot(request, _as_dict(body))

    @router.get("/code/{code}", summary="Look up the user holding a reset code")
    async def lookup_code(
        code: str,
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.lookup_code(code)

    @router.post("/reset", summary="Reset a password with a reset code")
    async def reset(
        body: Optional[ResetRequest] = None,
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.reset(_as_dict(body))

    @router.post("/verify", summary="Send (or resend) a verification email")
    async def request_verification(
        request: Request,
        body: Optional[VerifyRequest] = None,
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.request_verification(request, _as_dict(body))

    @router.get("/verify/{code}", summary="Accept a verification code")
    async def accept_verification(
        code: str,
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.accept_verification(code)

    @router.get("/current", summary="Get the signed-in user")
    async def current(
        request: Request,
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.current(request)

    @router.get("/{name}", summary="Get a user by name")
    async def get_user(
        name: str,
        request: Request,
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.get_user(request, name)

    @router.put("/{name}", summary="Update a user")
    async def update_user(
        name: str,
        request: Request,
        body: dict[str, Any] = Body(default_factory=dict),
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.update_user(request, name, body)

    @router.delete("/{name}", summary="Delete a user")
    async def delete_user(
        name: str,
        request: Request,
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.delete_user(request, name)

    @router.post("", summary="Create a user (admin)")
    async def create_user(
        request: Request,
        body: dict[str, Any] = Body(default_factory=dict),
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.create_user(request, body)

    @router.get("", summary="List users by role")
    async def list_users(
        request: Request,
        roles: Optional[str] = Query(None, description="Comma separated role names"),
        account_service: AccountService = Depends(get_account_service),
    ):
        return await account_service.list_users(request, roles)

    return router
