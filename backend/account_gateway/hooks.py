"""
Override hooks for customizing the account workflows.

Every hook is an async callable. A hook signals failure by raising
:class:`~account_gateway.core.errors.GatewayError`.
"""
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from fastapi import Request

LocaleResolver = Callable[[dict[str, Any], Request], Awaitable[Optional[str]]]


@dataclass
class ValidationInput:
    """Arguments handed to ``validate_user`` during signin."""

    request: Request
    user: dict[str, Any]
    headers: dict[str, str]


async def default_populate_user(request: Request, body: dict[str, Any]) -> dict[str, Any]:
    """Use the signup body as the new user record, minus the confirmation field."""
    body = dict(body)
    body.pop("confirm_password", None)
    return body


async def default_email_locale(user: dict[str, Any], request: Request) -> Optional[str]:
    return None


async def default_populate_verified_user(user: dict[str, Any]) -> None:
    return None


async def default_validate_user(data: ValidationInput) -> Optional[dict[str, Any]]:
    return None


@dataclass
class GatewayHooks:
    """
    Hooks consulted by the gateway.

    Attributes:
        populate_user: Builds the user record from a signup request
        populate_verified_user: Mutates a user in place once verified
        validate_user: Extra signin gate; may return session claims
        get_email_locale: Picks the template locale for a user
    """

    populate_user: Callable[[Request, dict[str, Any]], Awaitable[dict[str, Any]]] = default_populate_user
    populate_verified_user: Callable[[dict[str, Any]], Awaitable[None]] = default_populate_verified_user
    validate_user: Callable[[ValidationInput], Awaitable[Optional[dict[str, Any]]]] = default_validate_user
    get_email_locale: LocaleResolver = field(default=default_email_locale)
