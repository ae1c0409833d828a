"""
Per-gateway context shared by every handler.
"""
from dataclasses import dataclass
from typing import Optional

from account_gateway.config import Settings
from account_gateway.core.permissions import AdminPolicy, resolve_admin_policy
from account_gateway.core.redaction import parse_safe_fields
from account_gateway.database.store import UserStore
from account_gateway.hooks import GatewayHooks
from account_gateway.services.email_service import Mailer, Transport


@dataclass
class GatewayContext:
    """Everything a gateway instance needs, resolved once at startup."""

    settings: Settings
    store: UserStore
    mailer: Mailer
    hooks: GatewayHooks
    admin_policy: AdminPolicy
    safe_fields: tuple[str, ...]

    @classmethod
    def build(
        cls,
        settings: Settings,
        store: UserStore,
        hooks: Optional[GatewayHooks] = None,
        mailer: Optional[Mailer] = None,
        transport: Optional[Transport] = None,
    ) -> "GatewayContext":
        """
        Validate configuration and assemble the context.

        Raises:
            ConfigurationError: If admin_roles or safe_user_fields is invalid
        """
        hooks = hooks or GatewayHooks()
        if mailer is None:
            mailer = Mailer(
                settings.email,
                transport=transport,
                get_email_locale=hooks.get_email_locale,
            )
        return cls(
            settings=settings,
            store=store,
            mailer=mailer,
            hooks=hooks,
            admin_policy=resolve_admin_policy(settings.admin_roles),
            safe_fields=parse_safe_fields(settings.safe_user_fields),
        )
