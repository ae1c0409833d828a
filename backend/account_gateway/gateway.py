"""
Mounting the user account gateway onto a FastAPI application.
"""
import logging
from typing import Optional

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from account_gateway.config import Settings, get_settings
from account_gateway.context import GatewayContext
from account_gateway.core.errors import register_exception_handlers
from account_gateway.database.store import UserStore
from account_gateway.hooks import GatewayHooks
from account_gateway.routers.users import build_router
from account_gateway.services.email_service import Mailer, Transport

logger = logging.getLogger(__name__)


def mount_gateway(
    app: FastAPI,
    store: UserStore,
    settings: Optional[Settings] = None,
    hooks: Optional[GatewayHooks] = None,
    mailer: Optional[Mailer] = None,
    transport: Optional[Transport] = None,
) -> GatewayContext:
    """
    Add the user account routes, cookie sessions and error handling to ``app``.

    Args:
        app: Application to extend (before it starts serving)
        store: User document store
        settings: Gateway settings, defaults to the environment
        hooks: Override hooks
        mailer: Preassembled mailer; otherwise built from settings
        transport: Mail transport to use instead of SMTP

    Returns:
        The gateway context, also stored on ``app.state.gateway``

    Raises:
        ConfigurationError: If the settings are invalid
    """
    settings = settings or get_settings()
    context = GatewayContext.build(
        settings,
        store,
        hooks=hooks,
        mailer=mailer,
        transport=transport,
    )

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age,
    )
    register_exception_handlers(app)
    app.include_router(build_router(context))
    app.state.gateway = context

    logger.info(
        "User gateway mounted at %s (verify=%s, admin policy=%r)",
        settings.api_prefix,
        settings.verify,
        context.admin_policy,
    )
    return context
